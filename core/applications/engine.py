#!/usr/bin/env python3
"""
Application Lifecycle Engine - the job application state machine.

    pending  -> accepted | rejected | cancelled | not-available
    accepted -> (checked in) -> (checked out) -> completed | cancelled
    pending  -> closed when the job post is completed or reposted

Each transition runs in one unit of work and re-checks its invariants under
row locks:
- a worker applies to a job at most once
- a job has at most one accepted application
- a worker never holds two accepted applications with overlapping shifts

Notifications are collected as intents during the transaction and handed to
the dispatcher only after commit. Delivery problems come back as soft
failures on the OperationResult and never undo the transition.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import sessionmaker

from core.exceptions import (
    AccessDeniedError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from core.scheduling.conflicts import ConflictResolver, ScheduledShift
from core.serializers import application_to_dict
from core.utils import Clock, caller_uuid, coerce_uuid, coerce_uuid_list, is_past_date, local_now, utc_now
from database.models import (
    ApplicationStatus,
    CancellationReason,
    JobApplication,
    JobPost,
    JobStatus,
    UserRole,
)
from database.uow import UnitOfWork, unit_of_work
from notification.service import NotificationDispatcher, NotificationIntent, SoftFailure

logger = logging.getLogger(__name__)

CHECKIN_REJECTION_MESSAGE = "Selected candidate has started the job"


def not_available_message(job_title: str) -> str:
    return (
        "This application is no longer available due to a scheduling conflict "
        f"with your accepted position: \"{job_title}\""
    )


@dataclass
class OperationResult:
    """The committed outcome of an operation plus any best-effort side effects that failed."""
    value: Any
    soft_failures: List[SoftFailure] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'data': self.value,
            'soft_failures': [f.to_dict() for f in self.soft_failures],
        }


def _shift_for(application: JobApplication) -> ScheduledShift:
    job = application.job_post
    return ScheduledShift(
        key=application.id,
        job_date=job.job_date,
        start_time=job.start_time,
        end_time=job.end_time,
        title=job.title,
    )


class ApplicationLifecycleEngine:
    """Worker and job-poster transitions on job applications."""

    def __init__(
        self,
        session_factory: sessionmaker,
        dispatcher: Optional[NotificationDispatcher] = None,
        conflict_resolver: Optional[ConflictResolver] = None,
        clock: Clock = local_now,
        admin_user_id: Optional[Any] = None,
    ):
        """
        Args:
            session_factory: Session factory for units of work
            dispatcher: Post-commit notification dispatcher (None disables notifications)
            conflict_resolver: Shift overlap checker (strict by default)
            clock: Local civil clock for job-date checks
            admin_user_id: Recipient of report notifications
        """
        self.session_factory = session_factory
        self.dispatcher = dispatcher
        self.conflict_resolver = conflict_resolver or ConflictResolver(strict=True)
        self.clock = clock
        self.admin_user_id = admin_user_id

    # ------------------------------------------------------------------
    # Worker: apply
    # ------------------------------------------------------------------

    def apply_for_job(
        self,
        job_post_id: Any,
        worker_id: Any,
        message: Optional[str] = None,
        preference_ids: Optional[Iterable[Any]] = None,
    ) -> OperationResult:
        """
        Create a pending application.

        Raises:
            NotFoundError: Job post missing or deleted.
            InvalidStateError: Job not open, or its date has passed.
            AccessDeniedError: Caller is not an active healthcare worker.
            ConflictError: Already applied, job already taken, or the shift
                overlaps one of the worker's accepted jobs.
            ValidationError: A preference is not among the job's preferences.
        """
        worker_id = caller_uuid(worker_id)
        try:
            selected_ids = coerce_uuid_list(preference_ids)
        except (ValueError, TypeError, AttributeError):
            raise ValidationError("Invalid preferences", ["Preference ids must be UUIDs"]) from None

        with unit_of_work(self.session_factory) as uow:
            job = self._load_job(uow, job_post_id, "Job post not found or no longer available")

            if job.status != JobStatus.OPEN:
                raise InvalidStateError("Job post is no longer accepting applications")
            if is_past_date(job.job_date, self.clock()):
                raise InvalidStateError("Cannot apply for past jobs")

            worker = uow.users.get(worker_id)
            if worker is None or not worker.is_active or worker.role != UserRole.HEALTHCARE:
                raise AccessDeniedError("Invalid healthcare user")

            if uow.applications.find_by_job_and_worker(job.id, worker_id) is not None:
                raise ConflictError("You have already applied for this job")
            if uow.applications.accepted_for_job(job.id) is not None:
                raise ConflictError("This job already has an accepted applicant")

            job_preferences = {p.id: p for p in job.preferences}
            foreign = [str(i) for i in selected_ids if i not in job_preferences]
            if foreign:
                raise ValidationError(
                    "Invalid preferences",
                    [f"Preference {i} is not among this job's preferences" for i in foreign],
                )

            self._ensure_no_accepted_overlap(uow, worker_id, job, "This job overlaps one of your accepted jobs")

            application = JobApplication(
                job_post_id=job.id,
                worker_id=worker_id,
                status=ApplicationStatus.PENDING,
                application_message=message,
            )
            application.preferences = [job_preferences[i] for i in selected_ids]
            application.job_post = job
            uow.session.add(application)
            uow.flush("You have already applied for this job")

            view = application_to_dict(application)
            intents = [NotificationIntent(
                'JOB_APPLICATION_RECEIVED',
                job.owner_id,
                {
                    'job_title': job.title,
                    'job_post_id': job.id,
                    'application_id': application.id,
                    'applicant_name': worker.name,
                },
                self._context(job, application, related_user_id=worker_id),
            )]

        logger.info(f"Worker {worker_id} applied for job {job.id} (application {view['id']})")
        return self._finish(view, intents)

    # ------------------------------------------------------------------
    # Poster: accept / reject
    # ------------------------------------------------------------------

    def update_application_status(
        self,
        application_id: Any,
        owner_id: Any,
        status: str,
        response_message: Optional[str] = None,
    ) -> OperationResult:
        """
        Accept or reject a pending application.

        Accepting approves the job post and marks the worker's other pending
        applications whose shifts overlap this one as not-available.
        """
        if status not in ApplicationStatus.RESPONSES:
            raise ValidationError(
                "Invalid status",
                [f"Status must be one of: {', '.join(ApplicationStatus.RESPONSES)}"],
            )
        owner_id = caller_uuid(owner_id)

        with unit_of_work(self.session_factory) as uow:
            application = self._load_application(uow, application_id)
            job = self._load_job(uow, application.job_post_id, "Job post not found", include_deleted=True)

            if job.owner_id != owner_id:
                raise AccessDeniedError("Access denied")
            if job.status == JobStatus.APPROVED:
                raise InvalidStateError("Job post has already been approved and cannot be modified")
            if application.status != ApplicationStatus.PENDING:
                raise InvalidStateError("Application has already been processed")

            now = utc_now()
            demoted: List[str] = []

            if status == ApplicationStatus.ACCEPTED:
                if job.status != JobStatus.OPEN or job.is_deleted:
                    raise InvalidStateError("Job post is no longer accepting applications")
                if uow.applications.accepted_for_job(job.id) is not None:
                    raise ConflictError("This job already has an accepted applicant")
                self._ensure_no_accepted_overlap(
                    uow, application.worker_id, job, "Worker is already booked for an overlapping job"
                )

                application.status = ApplicationStatus.ACCEPTED
                application.responded_at = now
                application.response_message = response_message
                job.status = JobStatus.APPROVED
                uow.flush("This job already has an accepted applicant")

                demoted = self._demote_overlapping_pending(uow, application, now)
            else:
                application.status = ApplicationStatus.REJECTED
                application.responded_at = now
                application.response_message = response_message
                uow.flush()

            view = application_to_dict(application)
            view['not_available_application_ids'] = demoted
            template = 'APPLICATION_ACCEPTED' if status == ApplicationStatus.ACCEPTED else 'APPLICATION_REJECTED'
            intents = [NotificationIntent(
                template,
                application.worker_id,
                {'job_title': job.title, 'application_id': application.id, 'job_post_id': job.id},
                self._context(job, application, related_user_id=owner_id),
            )]

        logger.info(
            f"Application {view['id']} {status} by owner {owner_id}"
            + (f"; {len(demoted)} overlapping applications marked not-available" if demoted else "")
        )
        return self._finish(view, intents)

    def _demote_overlapping_pending(self, uow: UnitOfWork, accepted: JobApplication, now) -> List[str]:
        pending = uow.applications.list_for_worker(
            accepted.worker_id, statuses=[ApplicationStatus.PENDING], for_update=True
        )
        others = [a for a in pending if a.id != accepted.id]
        if not others:
            return []

        by_id = {a.id: a for a in others}
        conflicts = self.conflict_resolver.find_conflicts(_shift_for(accepted), [_shift_for(a) for a in others])

        message = not_available_message(accepted.job_post.title)
        demoted = []
        for shift in conflicts:
            other = by_id[shift.key]
            other.status = ApplicationStatus.NOT_AVAILABLE
            other.responded_at = now
            other.response_message = message
            demoted.append(str(other.id))
        return demoted

    # ------------------------------------------------------------------
    # Either party: cancel / report
    # ------------------------------------------------------------------

    def cancel_application(
        self,
        application_id: Any,
        actor_id: Any,
        reason: str,
        message: Optional[str] = None,
    ) -> OperationResult:
        """
        Cancel a pending or accepted application as the worker or the job owner.

        Cancelling an accepted application reopens the job post. The other
        party is notified with the reason and the canceller's role.
        """
        if reason not in CancellationReason.ALL:
            raise ValidationError(
                "Invalid cancellation reason",
                [f"Cancellation reason must be one of: {', '.join(CancellationReason.ALL)}"],
            )
        actor_id = caller_uuid(actor_id)

        with unit_of_work(self.session_factory) as uow:
            application = self._load_application(uow, application_id)
            job = self._load_job(uow, application.job_post_id, "Job post not found", include_deleted=True)

            is_worker = application.worker_id == actor_id
            is_owner = job.owner_id == actor_id
            if not is_worker and not is_owner:
                raise AccessDeniedError("Access denied")

            if application.status not in (ApplicationStatus.PENDING, ApplicationStatus.ACCEPTED):
                raise InvalidStateError("Application cannot be cancelled at this stage")

            was_accepted = application.status == ApplicationStatus.ACCEPTED
            application.status = ApplicationStatus.CANCELLED
            application.cancelled_at = utc_now()
            application.cancellation_reason = reason
            application.cancellation_message = message
            application.cancelled_by = actor_id

            if was_accepted and job.status == JobStatus.APPROVED:
                job.status = JobStatus.OPEN
            uow.flush()

            view = application_to_dict(application)
            cancelled_by = 'healthcare' if is_worker else 'poster'
            recipient = job.owner_id if is_worker else application.worker_id
            intents = [NotificationIntent(
                'APPLICATION_CANCELLED',
                recipient,
                {'job_title': job.title, 'application_id': application.id, 'job_post_id': job.id},
                self._context(
                    job, application, related_user_id=actor_id,
                    metadata={'cancellation_reason': reason, 'cancelled_by': cancelled_by},
                ),
            )]

        logger.info(
            f"Application {view['id']} cancelled by {cancelled_by} ({reason})"
            + ("; job post reopened" if was_accepted else "")
        )
        return self._finish(view, intents)

    def report_application(
        self,
        application_id: Any,
        actor_id: Any,
        reason: str,
        message: Optional[str] = None,
    ) -> OperationResult:
        """Attach a report to an application at any stage. Does not change status."""
        if not reason or not str(reason).strip():
            raise ValidationError("Invalid report", ["Report reason is required"])
        actor_id = caller_uuid(actor_id)

        with unit_of_work(self.session_factory) as uow:
            application = self._load_application(uow, application_id)
            job = self._load_job(uow, application.job_post_id, "Job post not found", include_deleted=True)

            is_worker = application.worker_id == actor_id
            if not is_worker and job.owner_id != actor_id:
                raise AccessDeniedError("Access denied")

            application.reported_at = utc_now()
            application.report_reason = str(reason).strip()
            application.report_message = message
            application.reported_by = actor_id
            uow.flush()

            view = application_to_dict(application)
            intents = [NotificationIntent(
                'REPORT_SUBMITTED',
                self.admin_user_id,
                {'job_title': job.title, 'application_id': application.id, 'job_post_id': job.id},
                self._context(
                    job, application, related_user_id=actor_id,
                    metadata={
                        'report_reason': application.report_reason,
                        'reported_user_type': 'healthcare' if is_worker else 'poster',
                    },
                ),
            )]

        logger.info(f"Application {view['id']} reported by {actor_id}")
        return self._finish(view, intents)

    # ------------------------------------------------------------------
    # Worker: attendance
    # ------------------------------------------------------------------

    def checkin_to_job(self, application_id: Any, worker_id: Any, location: Optional[str] = None) -> OperationResult:
        """
        Check in on the job date. Every other pending or accepted application
        on the job is rejected: the seat is now taken for good.
        """
        worker_id = caller_uuid(worker_id)

        with unit_of_work(self.session_factory) as uow:
            application = self._load_own_accepted(uow, application_id, worker_id)
            job = self._load_job(uow, application.job_post_id, "Job post not found", include_deleted=True)

            if application.checked_in_at is not None:
                raise ConflictError("Already checked in")
            if job.job_date != self.clock().date():
                raise InvalidStateError("Can only check in on the job date")

            now = utc_now()
            competitors = uow.applications.list_for_job(
                job.id,
                statuses=[ApplicationStatus.PENDING, ApplicationStatus.ACCEPTED],
                for_update=True,
            )
            rejected = []
            for other in competitors:
                if other.id == application.id:
                    continue
                other.status = ApplicationStatus.REJECTED
                other.responded_at = now
                other.response_message = CHECKIN_REJECTION_MESSAGE
                rejected.append(str(other.id))

            application.checked_in_at = now
            application.checkin_location = location
            uow.flush()

            view = application_to_dict(application)
            view['rejected_application_ids'] = rejected
            intents = [NotificationIntent(
                'JOB_STARTED',
                job.owner_id,
                {'job_title': job.title, 'job_post_id': job.id, 'application_id': application.id},
                self._context(job, application, related_user_id=worker_id),
            )]

        logger.info(f"Worker {worker_id} checked in to job {job.id}; rejected {len(rejected)} other applications")
        return self._finish(view, intents)

    def checkout_from_job(self, application_id: Any, worker_id: Any, location: Optional[str] = None) -> OperationResult:
        worker_id = caller_uuid(worker_id)

        with unit_of_work(self.session_factory) as uow:
            application = self._load_own_accepted(uow, application_id, worker_id)

            if application.checked_in_at is None:
                raise InvalidStateError("Must check in before checking out")
            if application.checked_out_at is not None:
                raise InvalidStateError("Already checked out")

            application.checked_out_at = utc_now()
            application.checkout_location = location
            uow.flush()
            view = application_to_dict(application)

        logger.info(f"Worker {worker_id} checked out of application {view['id']}")
        return self._finish(view, [])

    # ------------------------------------------------------------------
    # Poster: complete
    # ------------------------------------------------------------------

    def complete_job(self, application_id: Any, owner_id: Any, notes: Optional[str] = None) -> OperationResult:
        """Complete the accepted application and its job; close the job's other pending applications."""
        owner_id = caller_uuid(owner_id)

        with unit_of_work(self.session_factory) as uow:
            application = self._load_application(uow, application_id)
            job = self._load_job(uow, application.job_post_id, "Job post not found", include_deleted=True)

            if job.owner_id != owner_id:
                raise AccessDeniedError("Access denied")
            if application.completed_at is not None:
                raise InvalidStateError("Job already completed")
            if application.status != ApplicationStatus.ACCEPTED:
                raise InvalidStateError("Job is not in progress")

            now = utc_now()
            application.status = ApplicationStatus.COMPLETED
            application.completed_at = now
            application.completed_by = owner_id
            application.completion_notes = notes
            job.status = JobStatus.COMPLETED

            closed = []
            for other in uow.applications.list_for_job(job.id, statuses=[ApplicationStatus.PENDING], for_update=True):
                other.status = ApplicationStatus.CLOSED
                closed.append(str(other.id))
            uow.flush()

            view = application_to_dict(application)
            view['closed_application_ids'] = closed
            intents = [NotificationIntent(
                'JOB_COMPLETED',
                application.worker_id,
                {'job_title': job.title, 'application_id': application.id, 'job_post_id': job.id},
                self._context(job, application, related_user_id=owner_id),
            )]

        logger.info(f"Job {job.id} completed by owner {owner_id}; closed {len(closed)} pending applications")
        return self._finish(view, intents)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _finish(self, value: Any, intents: List[NotificationIntent]) -> OperationResult:
        if not intents:
            return OperationResult(value)
        if self.dispatcher is None:
            logger.debug(f"No dispatcher configured; dropping {len(intents)} notification(s)")
            return OperationResult(value)
        return OperationResult(value, self.dispatcher.dispatch(intents))

    @staticmethod
    def _context(job: JobPost, application: JobApplication, related_user_id: Any, metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return {
            'job_post_id': job.id,
            'job_application_id': application.id,
            'related_user_id': related_user_id,
            'send_email': True,
            'metadata': metadata or {},
        }

    @staticmethod
    def _load_job(uow: UnitOfWork, job_post_id: Any, missing_message: str, include_deleted: bool = False) -> JobPost:
        try:
            job_id = coerce_uuid(job_post_id)
        except ValueError:
            raise NotFoundError(missing_message) from None
        job = uow.job_posts.get(job_id, for_update=True, include_deleted=include_deleted)
        if job is None:
            raise NotFoundError(missing_message)
        return job

    @staticmethod
    def _load_application(uow: UnitOfWork, application_id: Any) -> JobApplication:
        try:
            app_id = coerce_uuid(application_id)
        except ValueError:
            raise NotFoundError("Application not found") from None
        application = uow.applications.get(app_id, for_update=True)
        if application is None:
            raise NotFoundError("Application not found")
        return application

    def _load_own_accepted(self, uow: UnitOfWork, application_id: Any, worker_id: Any) -> JobApplication:
        application = self._load_application(uow, application_id)
        if application.worker_id != worker_id:
            raise AccessDeniedError("Access denied")
        if application.status != ApplicationStatus.ACCEPTED:
            raise InvalidStateError("Application is not accepted")
        return application

    def _ensure_no_accepted_overlap(self, uow: UnitOfWork, worker_id: Any, job: JobPost, message: str) -> None:
        accepted = uow.applications.list_for_worker(worker_id, statuses=[ApplicationStatus.ACCEPTED], for_update=True)
        if not accepted:
            return
        candidate = ScheduledShift(
            key=None,
            job_date=job.job_date,
            start_time=job.start_time,
            end_time=job.end_time,
            title=job.title,
        )
        conflicts = self.conflict_resolver.find_conflicts(candidate, [_shift_for(a) for a in accepted])
        if conflicts:
            raise ConflictError(
                message,
                details=[f"{c.title} ({c.job_date} {c.start_time}-{c.end_time})" for c in conflicts],
            )
