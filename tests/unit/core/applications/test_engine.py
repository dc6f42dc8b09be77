#!/usr/bin/env python3
"""
Tests for the application lifecycle engine.

Runs every transition against an in-memory SQLite database through the real
UnitOfWork. The notification dispatcher is mocked so the tests can inspect
the intents each transition emits after commit.
"""

import unittest
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from core.applications.engine import ApplicationLifecycleEngine, OperationResult
from core.exceptions import (
    AccessDeniedError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from core.scheduling.conflicts import ConflictResolver
from database.models import ApplicationStatus, JobStatus, Preference, UserRole
from notification.service import NotificationDispatcher, SoftFailure
from tests.fixtures.factories import (
    TODAY,
    create_application,
    create_job,
    create_reference,
    create_user,
    fixed_clock,
    get_application,
    get_job,
    make_session_factory,
)

pytestmark = pytest.mark.db


class EngineTestCase(unittest.TestCase):

    def setUp(self):
        self.sf = make_session_factory()
        self.dispatcher = MagicMock()
        self.dispatcher.dispatch.return_value = []
        self.admin_id = create_user(self.sf, role=UserRole.ADMIN)
        self.engine = ApplicationLifecycleEngine(
            self.sf,
            dispatcher=self.dispatcher,
            conflict_resolver=ConflictResolver(strict=True),
            clock=fixed_clock(),
            admin_user_id=self.admin_id,
        )
        self.owner_id = create_user(self.sf, role=UserRole.INDIVIDUAL, name="Poster")
        self.worker_id = create_user(self.sf, role=UserRole.HEALTHCARE, name="Worker")

    def last_intents(self):
        return self.dispatcher.dispatch.call_args[0][0]


class TestApplyForJob(EngineTestCase):

    def test_apply_creates_pending_application_and_notifies_owner(self):
        pref = create_reference(self.sf, Preference, "Non-smoker")
        job_id = create_job(self.sf, self.owner_id, preference_ids=[pref])

        result = self.engine.apply_for_job(job_id, self.worker_id, "Happy to help", [str(pref)])

        self.assertIsInstance(result, OperationResult)
        self.assertEqual(result.value['status'], ApplicationStatus.PENDING)
        self.assertEqual(result.value['application_message'], "Happy to help")
        self.assertEqual([p['id'] for p in result.value['preferences']], [str(pref)])
        self.assertEqual(result.soft_failures, [])

        intents = self.last_intents()
        self.assertEqual(len(intents), 1)
        self.assertEqual(intents[0].template_key, 'JOB_APPLICATION_RECEIVED')
        self.assertEqual(intents[0].target_user_id, self.owner_id)
        self.assertEqual(intents[0].variables['applicant_name'], "Worker")
        self.assertTrue(intents[0].context['send_email'])

    def test_applying_twice_conflicts(self):
        job_id = create_job(self.sf, self.owner_id)
        self.engine.apply_for_job(job_id, self.worker_id)

        with self.assertRaises(ConflictError) as ctx:
            self.engine.apply_for_job(job_id, self.worker_id)
        self.assertEqual(ctx.exception.message, "You have already applied for this job")

    def test_missing_job_is_not_found(self):
        with self.assertRaises(NotFoundError):
            self.engine.apply_for_job("00000000-0000-0000-0000-000000000000", self.worker_id)

    def test_job_that_is_not_open_rejects_applications(self):
        job_id = create_job(self.sf, self.owner_id, status=JobStatus.CLOSED)

        with self.assertRaises(InvalidStateError):
            self.engine.apply_for_job(job_id, self.worker_id)

    def test_past_job_rejects_applications(self):
        job_id = create_job(self.sf, self.owner_id, job_date=TODAY - timedelta(days=1))

        with self.assertRaises(InvalidStateError) as ctx:
            self.engine.apply_for_job(job_id, self.worker_id)
        self.assertEqual(ctx.exception.message, "Cannot apply for past jobs")

    def test_job_with_accepted_applicant_rejects_new_applications(self):
        job_id = create_job(self.sf, self.owner_id)
        other = create_user(self.sf)
        create_application(self.sf, job_id, other, status=ApplicationStatus.ACCEPTED)

        with self.assertRaises(ConflictError) as ctx:
            self.engine.apply_for_job(job_id, self.worker_id)
        self.assertEqual(ctx.exception.message, "This job already has an accepted applicant")

    def test_overlap_with_accepted_job_conflicts(self):
        booked = create_job(self.sf, self.owner_id, start_time="08:00", end_time="12:00")
        create_application(self.sf, booked, self.worker_id, status=ApplicationStatus.ACCEPTED)
        job_id = create_job(self.sf, self.owner_id, start_time="11:00", end_time="15:00")

        with self.assertRaises(ConflictError) as ctx:
            self.engine.apply_for_job(job_id, self.worker_id)
        self.assertEqual(len(ctx.exception.details), 1)

    def test_back_to_back_shift_is_allowed(self):
        booked = create_job(self.sf, self.owner_id, start_time="08:00", end_time="12:00")
        create_application(self.sf, booked, self.worker_id, status=ApplicationStatus.ACCEPTED)
        job_id = create_job(self.sf, self.owner_id, start_time="12:00", end_time="16:00")

        result = self.engine.apply_for_job(job_id, self.worker_id)
        self.assertEqual(result.value['status'], ApplicationStatus.PENDING)

    def test_overlap_with_pending_application_is_allowed(self):
        other_job = create_job(self.sf, self.owner_id, start_time="08:00", end_time="12:00")
        create_application(self.sf, other_job, self.worker_id)
        job_id = create_job(self.sf, self.owner_id, start_time="10:00", end_time="14:00")

        result = self.engine.apply_for_job(job_id, self.worker_id)
        self.assertEqual(result.value['status'], ApplicationStatus.PENDING)

    def test_preference_outside_job_preferences_is_rejected(self):
        job_pref = create_reference(self.sf, Preference, "Drives")
        other_pref = create_reference(self.sf, Preference, "Cooks")
        job_id = create_job(self.sf, self.owner_id, preference_ids=[job_pref])

        with self.assertRaises(ValidationError) as ctx:
            self.engine.apply_for_job(job_id, self.worker_id, preference_ids=[other_pref])
        self.assertIn(str(other_pref), ctx.exception.errors[0])

    def test_non_healthcare_user_cannot_apply(self):
        job_id = create_job(self.sf, self.owner_id)
        poster = create_user(self.sf, role=UserRole.ORGANIZATION)

        with self.assertRaises(AccessDeniedError):
            self.engine.apply_for_job(job_id, poster)

    def test_inactive_worker_cannot_apply(self):
        job_id = create_job(self.sf, self.owner_id)
        inactive = create_user(self.sf, is_active=False)

        with self.assertRaises(AccessDeniedError):
            self.engine.apply_for_job(job_id, inactive)

    def test_soft_failures_are_returned_without_undoing_the_application(self):
        job_id = create_job(self.sf, self.owner_id)
        failure = SoftFailure(kind='notification', template_key='JOB_APPLICATION_RECEIVED',
                              target_user_id=str(self.owner_id), error='smtp down')
        self.dispatcher.dispatch.return_value = [failure]

        result = self.engine.apply_for_job(job_id, self.worker_id)

        self.assertEqual(result.soft_failures, [failure])
        stored = get_application(self.sf, result.value['id'])
        self.assertEqual(stored.status, ApplicationStatus.PENDING)


class TestUpdateApplicationStatus(EngineTestCase):

    def test_accept_approves_job_and_marks_overlapping_pending_not_available(self):
        job_j = create_job(self.sf, self.owner_id, start_time="09:00", end_time="13:00", title="Morning care")
        job_k = create_job(self.sf, self.owner_id, start_time="12:00", end_time="16:00")
        job_l = create_job(self.sf, self.owner_id, start_time="13:00", end_time="17:00")
        app_a = create_application(self.sf, job_j, self.worker_id)
        app_b = create_application(self.sf, job_k, self.worker_id)
        app_c = create_application(self.sf, job_l, self.worker_id)

        result = self.engine.update_application_status(app_a, self.owner_id, ApplicationStatus.ACCEPTED, "Welcome")

        self.assertEqual(result.value['status'], ApplicationStatus.ACCEPTED)
        self.assertEqual(result.value['not_available_application_ids'], [str(app_b)])
        self.assertEqual(get_job(self.sf, job_j).status, JobStatus.APPROVED)

        demoted = get_application(self.sf, app_b)
        self.assertEqual(demoted.status, ApplicationStatus.NOT_AVAILABLE)
        self.assertIsNotNone(demoted.responded_at)
        self.assertIn('"Morning care"', demoted.response_message)
        self.assertEqual(get_application(self.sf, app_c).status, ApplicationStatus.PENDING)

        intents = self.last_intents()
        self.assertEqual(intents[0].template_key, 'APPLICATION_ACCEPTED')
        self.assertEqual(intents[0].target_user_id, self.worker_id)

    def test_cascade_leaves_other_workers_untouched(self):
        job_j = create_job(self.sf, self.owner_id)
        job_k = create_job(self.sf, self.owner_id, start_time="10:00", end_time="12:00")
        other = create_user(self.sf)
        app_a = create_application(self.sf, job_j, self.worker_id)
        app_other = create_application(self.sf, job_k, other)

        self.engine.update_application_status(app_a, self.owner_id, ApplicationStatus.ACCEPTED)

        self.assertEqual(get_application(self.sf, app_other).status, ApplicationStatus.PENDING)

    def test_reject_has_no_cascade(self):
        job_j = create_job(self.sf, self.owner_id)
        job_k = create_job(self.sf, self.owner_id, start_time="10:00", end_time="12:00")
        app_a = create_application(self.sf, job_j, self.worker_id)
        app_b = create_application(self.sf, job_k, self.worker_id)

        result = self.engine.update_application_status(app_a, self.owner_id, ApplicationStatus.REJECTED, "Sorry")

        self.assertEqual(result.value['status'], ApplicationStatus.REJECTED)
        self.assertEqual(result.value['response_message'], "Sorry")
        self.assertEqual(get_application(self.sf, app_b).status, ApplicationStatus.PENDING)
        self.assertEqual(get_job(self.sf, job_j).status, JobStatus.OPEN)
        self.assertEqual(self.last_intents()[0].template_key, 'APPLICATION_REJECTED')

    def test_only_owner_can_respond(self):
        job_id = create_job(self.sf, self.owner_id)
        app_id = create_application(self.sf, job_id, self.worker_id)
        stranger = create_user(self.sf, role=UserRole.INDIVIDUAL)

        with self.assertRaises(AccessDeniedError):
            self.engine.update_application_status(app_id, stranger, ApplicationStatus.ACCEPTED)

    def test_approved_job_cannot_be_modified(self):
        job_id = create_job(self.sf, self.owner_id)
        first = create_application(self.sf, job_id, self.worker_id)
        second = create_application(self.sf, job_id, create_user(self.sf))
        self.engine.update_application_status(first, self.owner_id, ApplicationStatus.ACCEPTED)

        with self.assertRaises(InvalidStateError) as ctx:
            self.engine.update_application_status(second, self.owner_id, ApplicationStatus.ACCEPTED)
        self.assertEqual(ctx.exception.message, "Job post has already been approved and cannot be modified")

    def test_only_pending_applications_can_be_processed(self):
        job_id = create_job(self.sf, self.owner_id)
        app_id = create_application(self.sf, job_id, self.worker_id, status=ApplicationStatus.REJECTED)

        with self.assertRaises(InvalidStateError) as ctx:
            self.engine.update_application_status(app_id, self.owner_id, ApplicationStatus.ACCEPTED)
        self.assertEqual(ctx.exception.message, "Application has already been processed")

    def test_invalid_status_is_rejected(self):
        job_id = create_job(self.sf, self.owner_id)
        app_id = create_application(self.sf, job_id, self.worker_id)

        with self.assertRaises(ValidationError):
            self.engine.update_application_status(app_id, self.owner_id, ApplicationStatus.COMPLETED)

    def test_accept_revalidates_worker_schedule(self):
        booked = create_job(self.sf, self.owner_id, start_time="08:00", end_time="12:00")
        create_application(self.sf, booked, self.worker_id, status=ApplicationStatus.ACCEPTED)
        job_id = create_job(self.sf, self.owner_id, start_time="11:00", end_time="15:00")
        app_id = create_application(self.sf, job_id, self.worker_id)

        with self.assertRaises(ConflictError):
            self.engine.update_application_status(app_id, self.owner_id, ApplicationStatus.ACCEPTED)

        self.assertEqual(get_application(self.sf, app_id).status, ApplicationStatus.PENDING)
        self.assertEqual(get_job(self.sf, job_id).status, JobStatus.OPEN)

    def test_unparseable_schedule_fails_closed_in_strict_mode(self):
        broken = create_job(self.sf, self.owner_id, start_time="9am", end_time="5pm")
        create_application(self.sf, broken, self.worker_id, status=ApplicationStatus.ACCEPTED)
        job_id = create_job(self.sf, self.owner_id)
        app_id = create_application(self.sf, job_id, self.worker_id)

        with self.assertRaises(InvalidStateError):
            self.engine.update_application_status(app_id, self.owner_id, ApplicationStatus.ACCEPTED)

    def test_unparseable_schedule_is_skipped_in_lenient_mode(self):
        lenient = ApplicationLifecycleEngine(
            self.sf, dispatcher=self.dispatcher,
            conflict_resolver=ConflictResolver(strict=False), clock=fixed_clock(),
        )
        broken = create_job(self.sf, self.owner_id, start_time="9am", end_time="5pm")
        create_application(self.sf, broken, self.worker_id, status=ApplicationStatus.ACCEPTED)
        job_id = create_job(self.sf, self.owner_id)
        app_id = create_application(self.sf, job_id, self.worker_id)

        result = lenient.update_application_status(app_id, self.owner_id, ApplicationStatus.ACCEPTED)
        self.assertEqual(result.value['status'], ApplicationStatus.ACCEPTED)


class TestCancelApplication(EngineTestCase):

    def test_worker_cancelling_accepted_application_reopens_job(self):
        job_id = create_job(self.sf, self.owner_id, status=JobStatus.APPROVED)
        app_id = create_application(self.sf, job_id, self.worker_id, status=ApplicationStatus.ACCEPTED)

        result = self.engine.cancel_application(app_id, self.worker_id, 'health_issues', "Unwell")

        self.assertEqual(result.value['status'], ApplicationStatus.CANCELLED)
        self.assertEqual(result.value['cancellation_reason'], 'health_issues')
        self.assertEqual(result.value['cancelled_by'], str(self.worker_id))
        self.assertIsNotNone(result.value['cancelled_at'])
        self.assertEqual(get_job(self.sf, job_id).status, JobStatus.OPEN)

        intent = self.last_intents()[0]
        self.assertEqual(intent.template_key, 'APPLICATION_CANCELLED')
        self.assertEqual(intent.target_user_id, self.owner_id)
        self.assertEqual(intent.context['metadata'], {
            'cancellation_reason': 'health_issues',
            'cancelled_by': 'healthcare',
        })

    def test_owner_cancelling_notifies_worker(self):
        job_id = create_job(self.sf, self.owner_id)
        app_id = create_application(self.sf, job_id, self.worker_id)

        self.engine.cancel_application(app_id, self.owner_id, 'other')

        intent = self.last_intents()[0]
        self.assertEqual(intent.target_user_id, self.worker_id)
        self.assertEqual(intent.context['metadata']['cancelled_by'], 'poster')
        self.assertEqual(get_job(self.sf, job_id).status, JobStatus.OPEN)

    def test_terminal_application_cannot_be_cancelled(self):
        job_id = create_job(self.sf, self.owner_id)
        app_id = create_application(self.sf, job_id, self.worker_id, status=ApplicationStatus.COMPLETED)

        with self.assertRaises(InvalidStateError):
            self.engine.cancel_application(app_id, self.worker_id, 'other')

    def test_unknown_reason_is_rejected(self):
        job_id = create_job(self.sf, self.owner_id)
        app_id = create_application(self.sf, job_id, self.worker_id)

        with self.assertRaises(ValidationError):
            self.engine.cancel_application(app_id, self.worker_id, 'bored')

    def test_third_party_cannot_cancel(self):
        job_id = create_job(self.sf, self.owner_id)
        app_id = create_application(self.sf, job_id, self.worker_id)

        with self.assertRaises(AccessDeniedError):
            self.engine.cancel_application(app_id, create_user(self.sf), 'other')


class TestAttendance(EngineTestCase):

    def test_checkin_rejects_every_other_live_application_on_the_job(self):
        job_id = create_job(self.sf, self.owner_id, status=JobStatus.APPROVED)
        app_id = create_application(self.sf, job_id, self.worker_id, status=ApplicationStatus.ACCEPTED)
        pending = create_application(self.sf, job_id, create_user(self.sf))
        declined = create_application(self.sf, job_id, create_user(self.sf), status=ApplicationStatus.CANCELLED)

        result = self.engine.checkin_to_job(app_id, self.worker_id, "Front door")

        self.assertIsNotNone(result.value['checked_in_at'])
        self.assertEqual(result.value['checkin_location'], "Front door")
        self.assertEqual(result.value['rejected_application_ids'], [str(pending)])
        rejected = get_application(self.sf, pending)
        self.assertEqual(rejected.status, ApplicationStatus.REJECTED)
        self.assertEqual(rejected.response_message, "Selected candidate has started the job")
        self.assertEqual(get_application(self.sf, declined).status, ApplicationStatus.CANCELLED)

        intent = self.last_intents()[0]
        self.assertEqual(intent.template_key, 'JOB_STARTED')
        self.assertEqual(intent.target_user_id, self.owner_id)

    def test_second_checkin_conflicts(self):
        job_id = create_job(self.sf, self.owner_id, status=JobStatus.APPROVED)
        app_id = create_application(self.sf, job_id, self.worker_id, status=ApplicationStatus.ACCEPTED)
        self.engine.checkin_to_job(app_id, self.worker_id)

        with self.assertRaises(ConflictError):
            self.engine.checkin_to_job(app_id, self.worker_id)

    def test_checkin_only_on_job_date(self):
        job_id = create_job(self.sf, self.owner_id, job_date=TODAY + timedelta(days=2), status=JobStatus.APPROVED)
        app_id = create_application(self.sf, job_id, self.worker_id, status=ApplicationStatus.ACCEPTED)

        with self.assertRaises(InvalidStateError) as ctx:
            self.engine.checkin_to_job(app_id, self.worker_id)
        self.assertEqual(ctx.exception.message, "Can only check in on the job date")

    def test_checkin_requires_accepted_application(self):
        job_id = create_job(self.sf, self.owner_id)
        app_id = create_application(self.sf, job_id, self.worker_id)

        with self.assertRaises(InvalidStateError):
            self.engine.checkin_to_job(app_id, self.worker_id)

    def test_checkin_by_another_worker_is_denied(self):
        job_id = create_job(self.sf, self.owner_id, status=JobStatus.APPROVED)
        app_id = create_application(self.sf, job_id, self.worker_id, status=ApplicationStatus.ACCEPTED)

        with self.assertRaises(AccessDeniedError):
            self.engine.checkin_to_job(app_id, create_user(self.sf))

    def test_checkout_without_checkin_is_invalid(self):
        job_id = create_job(self.sf, self.owner_id, status=JobStatus.APPROVED)
        app_id = create_application(self.sf, job_id, self.worker_id, status=ApplicationStatus.ACCEPTED)

        with self.assertRaises(InvalidStateError) as ctx:
            self.engine.checkout_from_job(app_id, self.worker_id)
        self.assertEqual(ctx.exception.message, "Must check in before checking out")

    def test_checkout_after_checkin_then_again(self):
        job_id = create_job(self.sf, self.owner_id, status=JobStatus.APPROVED)
        app_id = create_application(self.sf, job_id, self.worker_id, status=ApplicationStatus.ACCEPTED)
        self.engine.checkin_to_job(app_id, self.worker_id)

        result = self.engine.checkout_from_job(app_id, self.worker_id, "Back door")
        self.assertIsNotNone(result.value['checked_out_at'])
        self.assertEqual(result.value['checkout_location'], "Back door")
        self.assertEqual(result.soft_failures, [])

        with self.assertRaises(InvalidStateError) as ctx:
            self.engine.checkout_from_job(app_id, self.worker_id)
        self.assertEqual(ctx.exception.message, "Already checked out")


class TestCompleteJob(EngineTestCase):

    def test_complete_sets_job_completed_and_closes_pending_siblings(self):
        job_id = create_job(self.sf, self.owner_id, status=JobStatus.APPROVED)
        app_id = create_application(self.sf, job_id, self.worker_id, status=ApplicationStatus.ACCEPTED)
        sibling = create_application(self.sf, job_id, create_user(self.sf))

        result = self.engine.complete_job(app_id, self.owner_id, "Great work")

        self.assertEqual(result.value['status'], ApplicationStatus.COMPLETED)
        self.assertEqual(result.value['completion_notes'], "Great work")
        self.assertEqual(result.value['completed_by'], str(self.owner_id))
        self.assertEqual(result.value['closed_application_ids'], [str(sibling)])
        self.assertEqual(get_job(self.sf, job_id).status, JobStatus.COMPLETED)
        self.assertEqual(get_application(self.sf, sibling).status, ApplicationStatus.CLOSED)
        self.assertEqual(self.last_intents()[0].template_key, 'JOB_COMPLETED')

    def test_second_completion_fails(self):
        job_id = create_job(self.sf, self.owner_id, status=JobStatus.APPROVED)
        app_id = create_application(self.sf, job_id, self.worker_id, status=ApplicationStatus.ACCEPTED)
        self.engine.complete_job(app_id, self.owner_id)

        with self.assertRaises(InvalidStateError) as ctx:
            self.engine.complete_job(app_id, self.owner_id)
        self.assertEqual(ctx.exception.message, "Job already completed")

    def test_pending_application_cannot_be_completed(self):
        job_id = create_job(self.sf, self.owner_id)
        app_id = create_application(self.sf, job_id, self.worker_id)

        with self.assertRaises(InvalidStateError) as ctx:
            self.engine.complete_job(app_id, self.owner_id)
        self.assertEqual(ctx.exception.message, "Job is not in progress")

    def test_worker_cannot_complete(self):
        job_id = create_job(self.sf, self.owner_id, status=JobStatus.APPROVED)
        app_id = create_application(self.sf, job_id, self.worker_id, status=ApplicationStatus.ACCEPTED)

        with self.assertRaises(AccessDeniedError):
            self.engine.complete_job(app_id, self.worker_id)


class TestReportApplication(EngineTestCase):

    def test_report_annotates_without_changing_status(self):
        job_id = create_job(self.sf, self.owner_id)
        app_id = create_application(self.sf, job_id, self.worker_id)

        result = self.engine.report_application(app_id, self.owner_id, "No show", "Did not arrive")

        self.assertEqual(result.value['status'], ApplicationStatus.PENDING)
        self.assertEqual(result.value['report_reason'], "No show")
        self.assertEqual(result.value['reported_by'], str(self.owner_id))

        intent = self.last_intents()[0]
        self.assertEqual(intent.template_key, 'REPORT_SUBMITTED')
        self.assertEqual(intent.target_user_id, self.admin_id)
        self.assertEqual(intent.context['metadata']['reported_user_type'], 'poster')

    def test_report_requires_reason(self):
        job_id = create_job(self.sf, self.owner_id)
        app_id = create_application(self.sf, job_id, self.worker_id)

        with self.assertRaises(ValidationError):
            self.engine.report_application(app_id, self.worker_id, "  ")

    def test_report_without_admin_recipient_is_a_soft_failure(self):
        sink = MagicMock()
        engine = ApplicationLifecycleEngine(
            self.sf,
            dispatcher=NotificationDispatcher(sink, max_attempts=1, wait_seconds=0),
            clock=fixed_clock(),
            admin_user_id=None,
        )
        job_id = create_job(self.sf, self.owner_id)
        app_id = create_application(self.sf, job_id, self.worker_id)

        result = engine.report_application(app_id, self.worker_id, "Unsafe environment")

        self.assertEqual(len(result.soft_failures), 1)
        self.assertEqual(result.soft_failures[0].error, 'No recipient configured')
        sink.notify.assert_not_called()
        self.assertIsNotNone(get_application(self.sf, app_id).reported_at)


class TestInvariants(EngineTestCase):
    """Properties that must hold whatever order the operations run in."""

    def test_at_most_one_accepted_application_per_job(self):
        job_id = create_job(self.sf, self.owner_id)
        workers = [create_user(self.sf) for _ in range(3)]
        apps = [create_application(self.sf, job_id, w) for w in workers]

        self.engine.update_application_status(apps[0], self.owner_id, ApplicationStatus.ACCEPTED)
        for app_id in apps[1:]:
            with self.assertRaises(InvalidStateError):
                self.engine.update_application_status(app_id, self.owner_id, ApplicationStatus.ACCEPTED)

        accepted = [a for a in apps if get_application(self.sf, a).status == ApplicationStatus.ACCEPTED]
        self.assertEqual(accepted, [apps[0]])

    def test_worker_never_holds_two_overlapping_accepted_applications(self):
        other_owner = create_user(self.sf, role=UserRole.ORGANIZATION)
        job_a = create_job(self.sf, self.owner_id, start_time="09:00", end_time="13:00")
        job_b = create_job(self.sf, other_owner, start_time="12:00", end_time="18:00")
        app_a = create_application(self.sf, job_a, self.worker_id)
        app_b = create_application(self.sf, job_b, self.worker_id)

        self.engine.update_application_status(app_a, self.owner_id, ApplicationStatus.ACCEPTED)
        with self.assertRaises(InvalidStateError):
            # Already demoted to not-available by the cascade
            self.engine.update_application_status(app_b, other_owner, ApplicationStatus.ACCEPTED)

        self.assertEqual(get_application(self.sf, app_b).status, ApplicationStatus.NOT_AVAILABLE)

    def test_cancelled_accepted_seat_can_be_filled_again(self):
        job_id = create_job(self.sf, self.owner_id)
        first = create_application(self.sf, job_id, self.worker_id)
        second = create_application(self.sf, job_id, create_user(self.sf))

        self.engine.update_application_status(first, self.owner_id, ApplicationStatus.ACCEPTED)
        self.engine.cancel_application(first, self.worker_id, 'schedule_conflict')
        result = self.engine.update_application_status(second, self.owner_id, ApplicationStatus.ACCEPTED)

        self.assertEqual(result.value['status'], ApplicationStatus.ACCEPTED)
        self.assertEqual(get_job(self.sf, job_id).status, JobStatus.APPROVED)


class TestMalformedCallerIds(EngineTestCase):

    def test_every_operation_refuses_a_malformed_caller(self):
        job_id = create_job(self.sf, self.owner_id)
        app_id = create_application(self.sf, job_id, self.worker_id)

        calls = [
            lambda: self.engine.apply_for_job(job_id, "not-a-uuid"),
            lambda: self.engine.update_application_status(app_id, "not-a-uuid", ApplicationStatus.ACCEPTED),
            lambda: self.engine.cancel_application(app_id, "not-a-uuid", 'other'),
            lambda: self.engine.report_application(app_id, "not-a-uuid", "No show"),
            lambda: self.engine.checkin_to_job(app_id, "not-a-uuid"),
            lambda: self.engine.checkout_from_job(app_id, "not-a-uuid"),
            lambda: self.engine.complete_job(app_id, None),
        ]
        for call in calls:
            with self.assertRaises(AccessDeniedError):
                call()

        self.assertEqual(get_application(self.sf, app_id).status, ApplicationStatus.PENDING)


if __name__ == '__main__':
    unittest.main()
