import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from sqlalchemy.sql import Select

from database.models import JobApplication, JobPost, ApplicationStatus
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class ApplicationRepository(BaseRepository):

    def _base(self) -> Select:
        return select(JobApplication).where(JobApplication.is_deleted.is_(False)).options(
            selectinload(JobApplication.preferences),
            selectinload(JobApplication.job_post),
        )

    def get(self, application_id: Any, for_update: bool = False) -> Optional[JobApplication]:
        stmt = self._base().where(JobApplication.id == application_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def find_by_job_and_worker(self, job_post_id: Any, worker_id: Any) -> Optional[JobApplication]:
        stmt = self._base().where(
            JobApplication.job_post_id == job_post_id,
            JobApplication.worker_id == worker_id,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def accepted_for_job(self, job_post_id: Any) -> Optional[JobApplication]:
        stmt = self._base().where(
            JobApplication.job_post_id == job_post_id,
            JobApplication.status == ApplicationStatus.ACCEPTED,
        )
        return self.db.execute(stmt).scalars().first()

    def list_for_job(
        self,
        job_post_id: Any,
        statuses: Optional[Iterable[str]] = None,
        for_update: bool = False,
    ) -> List[JobApplication]:
        stmt = self._base().where(JobApplication.job_post_id == job_post_id)
        if statuses:
            stmt = stmt.where(JobApplication.status.in_(list(statuses)))
        if for_update:
            stmt = stmt.with_for_update()
        stmt = stmt.order_by(JobApplication.created_at, JobApplication.id)
        return list(self.db.execute(stmt).scalars().all())

    def list_for_worker(
        self,
        worker_id: Any,
        statuses: Optional[Iterable[str]] = None,
        for_update: bool = False,
    ) -> List[JobApplication]:
        stmt = self._base().where(JobApplication.worker_id == worker_id)
        if statuses:
            stmt = stmt.where(JobApplication.status.in_(list(statuses)))
        if for_update:
            stmt = stmt.with_for_update()
        stmt = stmt.order_by(JobApplication.created_at, JobApplication.id)
        return list(self.db.execute(stmt).scalars().all())

    def worker_applications_query(self, worker_id: Any, status: Optional[str] = None) -> Select:
        stmt = self._base().where(JobApplication.worker_id == worker_id)
        if status:
            stmt = stmt.where(JobApplication.status == status)
        return stmt

    def owner_applications_query(self, owner_id: Any, status: Optional[str] = None) -> Select:
        """Applications across all of the owner's non-deleted job posts."""
        stmt = self._base().join(JobPost, JobPost.id == JobApplication.job_post_id).where(
            JobPost.owner_id == owner_id,
            JobPost.is_deleted.is_(False),
        )
        if status:
            stmt = stmt.where(JobApplication.status == status)
        return stmt

    def statuses_for_worker(self, worker_id: Any, job_post_ids: Iterable[Any]) -> Dict[Any, JobApplication]:
        """Map job post id -> the worker's live application on it."""
        ids = list(job_post_ids)
        if not ids:
            return {}
        stmt = self._base().where(
            JobApplication.worker_id == worker_id,
            JobApplication.job_post_id.in_(ids),
        )
        return {a.job_post_id: a for a in self.db.execute(stmt).scalars().all()}

    def count(self, stmt: Select) -> int:
        return self.db.execute(select(func.count()).select_from(stmt.order_by(None).subquery())).scalar_one()

    def fetch(self, stmt: Select, offset: Optional[int] = None, limit: Optional[int] = None) -> Sequence[JobApplication]:
        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)
        return self.db.execute(stmt).scalars().all()

    def status_counts_for_worker(self, worker_id: Any) -> Dict[str, int]:
        stmt = (
            select(JobApplication.status, func.count())
            .where(JobApplication.worker_id == worker_id, JobApplication.is_deleted.is_(False))
            .group_by(JobApplication.status)
        )
        return {status: count for status, count in self.db.execute(stmt).all()}

    def status_counts_for_owner(self, owner_id: Any) -> Dict[str, int]:
        stmt = (
            select(JobApplication.status, func.count())
            .join(JobPost, JobPost.id == JobApplication.job_post_id)
            .where(
                JobPost.owner_id == owner_id,
                JobPost.is_deleted.is_(False),
                JobApplication.is_deleted.is_(False),
            )
            .group_by(JobApplication.status)
        )
        return {status: count for status, count in self.db.execute(stmt).all()}
