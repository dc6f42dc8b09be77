#!/usr/bin/env python3
"""
Job Post Manager - creation, update, closure and reposting of job posts.

All mutating operations run inside one unit of work: a recurring series is
created completely or not at all, and a repost clones, closes the original
and closes its pending applications in the same transaction.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import sessionmaker

from core.exceptions import (
    AccessDeniedError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from core.jobs.validation import (
    RELATION_FIELDS,
    SCHEDULE_FIELDS,
    validate_job_fields,
    validate_recurrence,
)
from core.serializers import job_post_to_dict
from core.utils import Clock, caller_uuid, coerce_uuid, coerce_uuid_list, is_past_date, local_now
from database.models import (
    ApplicationStatus,
    CareNeed,
    JobPost,
    JobStatus,
    JobType,
    Language,
    Preference,
    UserRole,
)
from database.uow import UnitOfWork, unit_of_work

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = "A job post already exists for this date and start time"

# Attributes copied onto a reposted job
CLONED_FIELDS = (
    'title', 'overview', 'recipient_name', 'recipient_age', 'recipient_relationship',
    'recipient_gender', 'postcode', 'address', 'shift_length', 'caregiver_gender',
    'payment_type', 'payment_cost',
)

UPDATABLE_FIELDS = CLONED_FIELDS + SCHEDULE_FIELDS + ('job_type',) + RELATION_FIELDS

RELATION_MODELS = {
    'care_need_ids': ('care_needs', CareNeed, 'care need'),
    'language_ids': ('languages', Language, 'language'),
    'preference_ids': ('preferences', Preference, 'preference'),
}


class JobPostManager:
    """
    Owner-side job post operations.

    Relation sets (care needs, languages, preferences) use replace semantics
    on update: a set present in the patch replaces the stored set wholesale,
    an absent set is left untouched.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        clock: Clock = local_now,
        max_recurring_children: int = 366,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.max_recurring_children = max_recurring_children

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_job_post(self, owner_id: Any, spec: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Create a single job post, or a recurring parent plus one child per date.

        Returns:
            The created post's view; a recurring parent carries its children
            under 'children'.

        Raises:
            NotFoundError: Owner does not exist.
            AccessDeniedError: Owner is not a job poster.
            ValidationError: Any field violation (all violations listed).
            ConflictError: The owner already has a post at one of the dates and
                start time; details lists every colliding date.
        """
        owner_id = caller_uuid(owner_id)
        now = self.clock()
        recurring = spec.get('recurring')

        cleaned, errors = validate_job_fields(spec, now)

        descriptor, child_dates = None, []
        if recurring:
            descriptor, child_dates, recurrence_errors = validate_recurrence(
                recurring, cleaned.get('job_date'), self.max_recurring_children
            )
            errors.extend(recurrence_errors)
            cleaned['job_type'] = JobType.WEEKLY

        with unit_of_work(self.session_factory) as uow:
            self._require_poster(uow, owner_id)
            relations = self._resolve_relations(uow, cleaned, errors)

            if errors:
                raise ValidationError("Invalid job post data", errors)

            start_time = cleaned['start_time']
            slots = [(cleaned['job_date'], start_time)] + [(d, start_time) for d in child_dates]
            taken = uow.job_posts.find_owner_slots(owner_id, slots)
            if taken:
                colliding = sorted({p.job_date.isoformat() for p in taken})
                raise ConflictError(SLOT_TAKEN_MESSAGE, details=colliding)

            fields = {k: v for k, v in cleaned.items() if k not in RELATION_FIELDS}
            parent = JobPost(owner_id=owner_id, status=JobStatus.OPEN, **fields)
            if descriptor:
                parent.recurring_frequency = descriptor['frequency']
                parent.recurring_weekdays = descriptor['weekdays']
                parent.recurring_end_date = descriptor['end_date']
            self._apply_relations(parent, relations)
            uow.job_posts.add(parent)

            children = []
            for child_date in child_dates:
                child_fields = dict(fields, job_date=child_date)
                child = JobPost(
                    owner_id=owner_id,
                    parent_job_id=parent.id,
                    status=JobStatus.OPEN,
                    **child_fields,
                )
                self._apply_relations(child, relations)
                uow.session.add(child)
                children.append(child)

            uow.flush(SLOT_TAKEN_MESSAGE)

            view = job_post_to_dict(parent)
            if descriptor:
                view['children'] = [job_post_to_dict(c) for c in children]

        if descriptor:
            logger.info(f"Created recurring job post {view['id']} with {len(children)} children for owner {owner_id}")
        else:
            logger.info(f"Created job post {view['id']} for owner {owner_id}")
        return view

    # ------------------------------------------------------------------
    # Update / close / delete
    # ------------------------------------------------------------------

    def update_job_post(self, job_post_id: Any, owner_id: Any, patch: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Partially update a job post the caller owns.

        Schedule fields (job_date, start_time, end_time) may only change while
        the post is open. An approved post cannot be modified at all.
        """
        owner_id = caller_uuid(owner_id)

        rejected = sorted(k for k in patch if k not in UPDATABLE_FIELDS)
        if rejected:
            raise ValidationError("Invalid job post data", [f"Field cannot be updated: {k}" for k in rejected])

        with unit_of_work(self.session_factory) as uow:
            job = self._get_owned(uow, job_post_id, owner_id)

            if job.status == JobStatus.APPROVED:
                raise InvalidStateError("Job post has already been approved and cannot be modified")

            touches_schedule = any(k in patch for k in SCHEDULE_FIELDS)
            if touches_schedule and job.status != JobStatus.OPEN:
                raise InvalidStateError("Schedule can only be changed while the job post is open")

            current = {
                'job_date': job.job_date,
                'start_time': job.start_time,
                'end_time': job.end_time,
            }
            cleaned, errors = validate_job_fields(patch, self.clock(), partial=True, current=current)
            relations = self._resolve_relations(uow, cleaned, errors)
            if errors:
                raise ValidationError("Invalid job post data", errors)

            new_date = cleaned.get('job_date', job.job_date)
            new_start = cleaned.get('start_time', job.start_time)
            if touches_schedule and uow.job_posts.has_slot(owner_id, new_date, new_start, exclude_id=job.id):
                raise ConflictError(SLOT_TAKEN_MESSAGE, details=[new_date.isoformat()])

            for name, value in cleaned.items():
                if name not in RELATION_FIELDS:
                    setattr(job, name, value)
            self._apply_relations(job, relations)

            uow.flush(SLOT_TAKEN_MESSAGE)
            view = job_post_to_dict(job)

        logger.info(f"Updated job post {job_post_id}: {', '.join(sorted(patch)) or 'no fields'}")
        return view

    def close_job_post(self, job_post_id: Any, owner_id: Any) -> Dict[str, Any]:
        """Move an open post to closed. No application cascade."""
        with unit_of_work(self.session_factory) as uow:
            job = self._get_owned(uow, job_post_id, caller_uuid(owner_id))
            if job.status != JobStatus.OPEN:
                raise InvalidStateError(f"Only open job posts can be closed (current status: {job.status})")
            job.status = JobStatus.CLOSED
            uow.flush()
            view = job_post_to_dict(job)

        logger.info(f"Closed job post {job_post_id}")
        return view

    def delete_job_post(self, job_post_id: Any, owner_id: Any) -> Dict[str, Any]:
        """
        Soft-delete a post. Refused while an application is accepted; pending
        applications on it are closed.
        """
        with unit_of_work(self.session_factory) as uow:
            job = self._get_owned(uow, job_post_id, caller_uuid(owner_id))

            if uow.applications.accepted_for_job(job.id) is not None:
                raise InvalidStateError("Cannot delete a job post with an accepted application")

            closed = self._close_pending_applications(uow, job.id)
            job.is_deleted = True
            uow.flush()

        logger.info(f"Deleted job post {job_post_id}; closed {closed} pending applications")
        return {'id': str(job_post_id), 'deleted': True, 'closed_applications': closed}

    # ------------------------------------------------------------------
    # Repost
    # ------------------------------------------------------------------

    def repost_expired_job(self, job_post_id: Any, owner_id: Any, schedule: Mapping[str, Any]) -> Dict[str, Any]:
        """Repost an open post whose date has passed without anyone being accepted."""
        def eligible(job: JobPost) -> Optional[str]:
            if job.status != JobStatus.OPEN or not is_past_date(job.job_date, self.clock()):
                return "Only expired job posts (open with a past date) can be reposted"
            return None

        return self._repost(job_post_id, owner_id, schedule, eligible)

    def repost_past_job(self, job_post_id: Any, owner_id: Any, schedule: Mapping[str, Any]) -> Dict[str, Any]:
        """Repost a post that is no longer open or approved (completed, closed, cancelled)."""
        def eligible(job: JobPost) -> Optional[str]:
            if job.status in (JobStatus.OPEN, JobStatus.APPROVED):
                return f"Only past job posts can be reposted (current status: {job.status})"
            return None

        return self._repost(job_post_id, owner_id, schedule, eligible)

    def _repost(self, job_post_id: Any, owner_id: Any, schedule: Mapping[str, Any], eligible) -> Dict[str, Any]:
        owner_id = caller_uuid(owner_id)
        schedule = {k: v for k, v in schedule.items() if k in SCHEDULE_FIELDS + ('shift_length',)}

        errors = [f"{name.replace('_', ' ').capitalize()} is required" for name in SCHEDULE_FIELDS if not schedule.get(name)]
        cleaned, field_errors = validate_job_fields(schedule, self.clock(), partial=True)
        errors.extend(e for e in field_errors if e not in errors)
        if errors:
            raise ValidationError("Invalid repost schedule", errors)

        with unit_of_work(self.session_factory) as uow:
            original = self._get_owned(uow, job_post_id, owner_id)

            problem = eligible(original)
            if problem:
                raise InvalidStateError(problem)

            if uow.job_posts.has_slot(owner_id, cleaned['job_date'], cleaned['start_time']):
                raise ConflictError(SLOT_TAKEN_MESSAGE, details=[cleaned['job_date'].isoformat()])

            clone = JobPost(
                owner_id=owner_id,
                status=JobStatus.OPEN,
                job_type=JobType.ONE_DAY,
                **{name: getattr(original, name) for name in CLONED_FIELDS},
            )
            for name, value in cleaned.items():
                setattr(clone, name, value)
            clone.care_needs = list(original.care_needs)
            clone.languages = list(original.languages)
            clone.preferences = list(original.preferences)
            uow.job_posts.add(clone)

            original.status = JobStatus.CLOSED
            closed = self._close_pending_applications(uow, original.id)

            uow.flush(SLOT_TAKEN_MESSAGE)
            view = job_post_to_dict(clone)
            view['reposted_from'] = str(original.id)
            view['closed_applications'] = closed

        logger.info(f"Reposted job {job_post_id} as {view['id']}; closed {closed} pending applications")
        return view

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_poster(self, uow: UnitOfWork, owner_id: Any) -> None:
        owner = uow.users.get(owner_id)
        if owner is None:
            raise NotFoundError("User not found")
        if not owner.is_active or owner.role not in UserRole.POSTERS + (UserRole.ADMIN,):
            raise AccessDeniedError("Only individual or organization accounts can post jobs")

    def _get_owned(self, uow: UnitOfWork, job_post_id: Any, owner_id: Any) -> JobPost:
        try:
            job_id = coerce_uuid(job_post_id)
        except ValueError:
            raise NotFoundError("Job post not found") from None

        job = uow.job_posts.get(job_id, for_update=True)
        if job is None:
            raise NotFoundError("Job post not found")
        if job.owner_id != owner_id:
            raise AccessDeniedError("You can only manage your own job posts")
        return job

    def _resolve_relations(self, uow: UnitOfWork, cleaned: Dict[str, Any], errors: List[str]) -> Dict[str, List[Any]]:
        """Load the referenced care needs, languages and preferences; unknown ids become errors."""
        resolved = {}
        for field_name, (attr, model, label) in RELATION_MODELS.items():
            if field_name not in cleaned:
                continue
            try:
                ids = coerce_uuid_list(cleaned[field_name])
            except (ValueError, TypeError, AttributeError):
                errors.append(f"Invalid {label} ids")
                continue
            rows = uow.reference.by_ids(model, ids)
            found = {r.id for r in rows}
            missing = [str(i) for i in ids if i not in found]
            if missing:
                errors.append(f"Unknown {label} ids: {', '.join(missing)}")
                continue
            resolved[attr] = rows
        return resolved

    @staticmethod
    def _apply_relations(job: JobPost, relations: Dict[str, List[Any]]) -> None:
        # Assigning the collection replaces the junction rows wholesale
        for attr, rows in relations.items():
            setattr(job, attr, list(rows))

    @staticmethod
    def _close_pending_applications(uow: UnitOfWork, job_post_id: Any) -> int:
        pending = uow.applications.list_for_job(job_post_id, statuses=[ApplicationStatus.PENDING], for_update=True)
        for application in pending:
            application.status = ApplicationStatus.CLOSED
        return len(pending)
