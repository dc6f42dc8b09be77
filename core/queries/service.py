#!/usr/bin/env python3
"""
Query Layer - filtered, paginated reads of job posts and applications.

Rows are turned into plain dicts inside the unit of work; distance lookups
and review stats (both network calls) run after the session is closed.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.orm import sessionmaker

from core.exceptions import AccessDeniedError, NotFoundError, ValidationError
from core.geo.distance import UNKNOWN, GeoDistanceService
from core.matching.scorer import CandidateProfile, JobRequirements, MatchScorer
from core.queries.reviews import ReviewStatsClient
from core.scheduling.civil_time import InvalidTimeError, parse_civil_date
from core.serializers import application_to_dict, job_post_to_dict, reference_list
from core.utils import caller_uuid, coerce_uuid, total_pages
from database.models import (
    ApplicationStatus,
    CancellationReason,
    CareNeed,
    CaregiverGender,
    JobApplication,
    JobPost,
    JobStatus,
    JobType,
    Language,
    PaymentType,
    Preference,
    UserRole,
)
from database.uow import unit_of_work

logger = logging.getLogger(__name__)


@dataclass
class Page:
    items: List[Dict[str, Any]]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return total_pages(self.total, self.limit)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'items': self.items,
            'pagination': {
                'page': self.page,
                'limit': self.limit,
                'total': self.total,
                'total_pages': self.total_pages,
                'has_next': self.has_next,
                'has_prev': self.has_prev,
            },
        }


@dataclass
class _WorkerContext:
    worker_id: Any
    gender: Optional[str] = None
    postcode: Optional[str] = None
    language_ids: List[Any] = field(default_factory=list)


def _requirements(job: JobPost) -> JobRequirements:
    return JobRequirements.build(
        job.caregiver_gender,
        [lang.id for lang in job.languages],
        [p.id for p in job.preferences],
    )


class QueryLayer:
    """Read side of the scheduling core."""

    def __init__(
        self,
        session_factory: sessionmaker,
        distance_service: Optional[GeoDistanceService] = None,
        scorer: Optional[MatchScorer] = None,
        review_client: Optional[ReviewStatsClient] = None,
        default_limit: int = 10,
        max_limit: int = 100,
    ):
        self.session_factory = session_factory
        self.distance_service = distance_service
        self.scorer = scorer or MatchScorer()
        self.review_client = review_client
        self.default_limit = default_limit
        self.max_limit = max_limit

    # ------------------------------------------------------------------
    # Job posts
    # ------------------------------------------------------------------

    def get_all_job_posts(self, filters: Optional[Mapping[str, Any]] = None, requesting_worker_id: Any = None) -> Page:
        """
        Open job posts matching the filters.

        With a worker context each item carries the distance from the worker,
        the worker's application status and a match score, and the whole
        result is sorted by distance before paginating. Without one, posts
        are ordered by date then start time and paginated in the database.
        """
        filters = dict(filters or {})
        page, limit = self._paging(filters)
        date_from = self._date_filter(filters, 'date_from')
        date_to = self._date_filter(filters, 'date_to')

        with unit_of_work(self.session_factory) as uow:
            stmt = uow.job_posts.open_posts_query(
                postcode=filters.get('postcode'),
                job_type=filters.get('job_type'),
                payment_type=filters.get('payment_type'),
                caregiver_gender=filters.get('caregiver_gender'),
                date_from=date_from,
                date_to=date_to,
            ).order_by(JobPost.job_date, JobPost.start_time, JobPost.id)

            if requesting_worker_id is None:
                total = uow.job_posts.count(stmt)
                jobs = uow.job_posts.fetch(stmt, offset=(page - 1) * limit, limit=limit)
                return Page([job_post_to_dict(j) for j in jobs], page, limit, total)

            worker = self._worker_context(uow, requesting_worker_id)
            jobs = uow.job_posts.fetch(stmt)
            applications = uow.applications.statuses_for_worker(worker.worker_id, [j.id for j in jobs])

            rows: List[Tuple[Dict[str, Any], str]] = []
            for job in jobs:
                application = applications.get(job.id)
                asserted = [p.id for p in application.preferences] if application else []
                match = self.scorer.score(
                    _requirements(job),
                    CandidateProfile.build(worker.gender, worker.language_ids, asserted),
                )
                view = job_post_to_dict(job)
                view['application_status'] = application.status if application else None
                view['application_id'] = str(application.id) if application else None
                view['match_score'] = match.percentage
                rows.append((view, job.postcode))

        memo: Dict[str, Any] = {}
        for view, postcode in rows:
            view['distance'] = self._distance(worker.postcode, postcode, memo).to_dict()

        # Stable sort keeps the date/time order between equal distances
        items = sorted((view for view, _ in rows), key=lambda v: v['distance']['km'])
        start = (page - 1) * limit
        return Page(items[start:start + limit], page, limit, len(items))

    def get_job_post(self, job_post_id: Any, requesting_user_id: Any = None) -> Dict[str, Any]:
        with unit_of_work(self.session_factory) as uow:
            job = uow.job_posts.get(self._uuid(job_post_id, "Job post not found"))
            if job is None:
                raise NotFoundError("Job post not found")
            view = job_post_to_dict(job)
            if job.is_recurring_parent:
                view['children'] = [
                    {'id': str(c.id), 'job_date': c.job_date.isoformat(), 'status': c.status}
                    for c in uow.job_posts.children_of(job.id)
                ]

            requester = caller_uuid(requesting_user_id) if requesting_user_id is not None else None
            if requester is not None and requester != job.owner_id:
                application = uow.applications.find_by_job_and_worker(job.id, requester)
                view['application_status'] = application.status if application else None
                view['application_id'] = str(application.id) if application else None
        return view

    def get_owner_job_posts(self, owner_id: Any, filters: Optional[Mapping[str, Any]] = None) -> Page:
        filters = dict(filters or {})
        page, limit = self._paging(filters)
        status = filters.get('status')
        if status and status not in JobStatus.ALL:
            raise ValidationError("Invalid filter", [f"Status must be one of: {', '.join(JobStatus.ALL)}"])

        with unit_of_work(self.session_factory) as uow:
            stmt = uow.job_posts.owner_posts_query(caller_uuid(owner_id), status).order_by(
                JobPost.job_date.desc(), JobPost.start_time.desc(), JobPost.id
            )
            total = uow.job_posts.count(stmt)
            jobs = uow.job_posts.fetch(stmt, offset=(page - 1) * limit, limit=limit)
            return Page([job_post_to_dict(j) for j in jobs], page, limit, total)

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------

    def get_job_applications(self, job_post_id: Any, owner_id: Any, filters: Optional[Mapping[str, Any]] = None) -> Page:
        """
        Candidates for one of the owner's job posts, best match first.

        Each item carries the worker's public profile, match score with its
        breakdown, distance from the job and (best effort) review stats.
        """
        filters = dict(filters or {})
        page, limit = self._paging(filters)
        status = filters.get('status')
        if status and status not in ApplicationStatus.ALL:
            raise ValidationError("Invalid filter", [f"Status must be one of: {', '.join(ApplicationStatus.ALL)}"])

        with unit_of_work(self.session_factory) as uow:
            job = uow.job_posts.get(self._uuid(job_post_id, "Job post not found"))
            if job is None:
                raise NotFoundError("Job post not found")
            if job.owner_id != caller_uuid(owner_id):
                raise AccessDeniedError("Access denied")

            requirements = _requirements(job)
            job_postcode = job.postcode
            rows = []
            for application in uow.applications.list_for_job(job.id, statuses=[status] if status else None):
                profile = uow.users.get_healthcare_profile(application.worker_id)
                worker = uow.users.get(application.worker_id)
                match = self.scorer.score(
                    requirements,
                    CandidateProfile.build(
                        profile.gender if profile else None,
                        [lang.id for lang in profile.languages] if profile else [],
                        [p.id for p in application.preferences],
                    ),
                )
                view = application_to_dict(application)
                view['worker'] = {
                    'id': str(application.worker_id),
                    'name': worker.name if worker else None,
                    'full_name': profile.full_name if profile else None,
                    'gender': profile.gender if profile else None,
                    'professional_title': profile.professional_title if profile else None,
                    'experience': profile.experience if profile else None,
                    'languages': reference_list(profile.languages) if profile else [],
                }
                view['match_score'] = match.percentage
                view['match_breakdown'] = {
                    'gender': match.gender_credit,
                    'languages': match.language_credit,
                    'preferences': match.preference_credit,
                }
                rows.append((view, profile.postcode if profile else None))

        memo: Dict[str, Any] = {}
        for view, worker_postcode in rows:
            view['distance'] = self._distance(job_postcode, worker_postcode, memo).to_dict()

        items = sorted((view for view, _ in rows), key=lambda v: v['match_score'], reverse=True)
        start = (page - 1) * limit
        page_items = items[start:start + limit]
        for view in page_items:
            view['review_stats'] = self._review_stats(view['worker_id'])
        return Page(page_items, page, limit, len(items))

    def get_worker_applications(self, worker_id: Any, filters: Optional[Mapping[str, Any]] = None) -> Page:
        filters = dict(filters or {})
        page, limit = self._paging(filters)
        status = filters.get('status')
        if status and status not in ApplicationStatus.ALL:
            raise ValidationError("Invalid filter", [f"Status must be one of: {', '.join(ApplicationStatus.ALL)}"])

        with unit_of_work(self.session_factory) as uow:
            stmt = uow.applications.worker_applications_query(caller_uuid(worker_id), status)
            total = uow.applications.count(stmt)
            applications = uow.applications.fetch(
                stmt.order_by(JobApplication.created_at.desc(), JobApplication.id),
                offset=(page - 1) * limit,
                limit=limit,
            )
            items = [application_to_dict(a, include_job=True) for a in applications]
        return Page(items, page, limit, total)

    def get_owner_applications(self, owner_id: Any, filters: Optional[Mapping[str, Any]] = None) -> Page:
        """Every application on the poster's job posts, newest first."""
        filters = dict(filters or {})
        page, limit = self._paging(filters)
        status = filters.get('status')
        if status and status not in ApplicationStatus.ALL:
            raise ValidationError("Invalid filter", [f"Status must be one of: {', '.join(ApplicationStatus.ALL)}"])

        with unit_of_work(self.session_factory) as uow:
            stmt = uow.applications.owner_applications_query(caller_uuid(owner_id), status)
            total = uow.applications.count(stmt)
            applications = uow.applications.fetch(
                stmt.order_by(JobApplication.created_at.desc(), JobApplication.id),
                offset=(page - 1) * limit,
                limit=limit,
            )
            items = [application_to_dict(a, include_job=True) for a in applications]
        return Page(items, page, limit, total)

    def get_application(self, application_id: Any, user_id: Any) -> Dict[str, Any]:
        """An application with its job post; visible to the worker and the job owner only."""
        user_id = caller_uuid(user_id)
        with unit_of_work(self.session_factory) as uow:
            application = uow.applications.get(self._uuid(application_id, "Application not found"))
            if application is None:
                raise NotFoundError("Application not found")
            if user_id not in (application.worker_id, application.job_post.owner_id):
                raise AccessDeniedError("Access denied")
            return application_to_dict(application, include_job=True)

    def get_application_stats(self, user_id: Any, role: str) -> Dict[str, Any]:
        """Application counts by status, from the worker's side or across the poster's jobs."""
        user_id = caller_uuid(user_id)
        with unit_of_work(self.session_factory) as uow:
            if role == UserRole.HEALTHCARE:
                counts = uow.applications.status_counts_for_worker(user_id)
            else:
                counts = uow.applications.status_counts_for_owner(user_id)

        by_status = {status: counts.get(status, 0) for status in ApplicationStatus.ALL}
        return {'total': sum(by_status.values()), 'by_status': by_status}

    def get_job_options(self) -> Dict[str, Any]:
        """Reference data and enumerations for job post forms."""
        with unit_of_work(self.session_factory) as uow:
            options = {
                'care_needs': reference_list(uow.reference.list_all(CareNeed)),
                'languages': reference_list(uow.reference.list_all(Language)),
                'preferences': reference_list(uow.reference.list_all(Preference)),
            }
        options.update({
            'job_types': list(JobType.ALL),
            'payment_types': list(PaymentType.ALL),
            'caregiver_genders': list(CaregiverGender.ALL),
            'cancellation_reasons': list(CancellationReason.ALL),
        })
        return options

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _paging(self, filters: Mapping[str, Any]) -> Tuple[int, int]:
        try:
            page = int(filters['page']) if filters.get('page') not in (None, '') else 1
            limit = int(filters['limit']) if filters.get('limit') not in (None, '') else self.default_limit
        except (TypeError, ValueError):
            raise ValidationError("Invalid pagination", ["Page and limit must be integers"]) from None
        if page < 1 or limit < 1:
            raise ValidationError("Invalid pagination", ["Page and limit must be positive"])
        return page, min(limit, self.max_limit)

    @staticmethod
    def _date_filter(filters: Mapping[str, Any], name: str):
        value = filters.get(name)
        if value is None or value == '':
            return None
        try:
            return parse_civil_date(value)
        except InvalidTimeError:
            raise ValidationError("Invalid filter", [f"Invalid {name.replace('_', ' ')}"]) from None

    @staticmethod
    def _uuid(value: Any, missing_message: str):
        try:
            return coerce_uuid(value)
        except ValueError:
            raise NotFoundError(missing_message) from None

    @staticmethod
    def _worker_context(uow, worker_id: Any) -> _WorkerContext:
        worker_id = caller_uuid(worker_id)
        profile = uow.users.get_healthcare_profile(worker_id)
        if profile is None:
            return _WorkerContext(worker_id)
        return _WorkerContext(
            worker_id=worker_id,
            gender=profile.gender,
            postcode=profile.postcode,
            language_ids=[lang.id for lang in profile.languages],
        )

    def _distance(self, postcode_a: Optional[str], postcode_b: Optional[str], memo: Dict[str, Any]):
        if self.distance_service is None:
            return UNKNOWN
        return self.distance_service.distance(postcode_a, postcode_b, memo)

    def _review_stats(self, worker_id: Any) -> Optional[Dict[str, Any]]:
        if self.review_client is None:
            return None
        try:
            return self.review_client.get_review_stats(worker_id)
        except Exception as e:
            logger.warning(f"Review stats lookup failed for worker {worker_id}: {e}")
            return None
