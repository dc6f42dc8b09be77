import logging
from datetime import date
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from sqlalchemy.sql import Select

from database.models import JobPost, JobStatus
from database.repositories.base import BaseRepository
from core.scheduling.civil_time import InvalidTimeError, format_time_of_day

logger = logging.getLogger(__name__)


def _slot_key(job_date: date, start_time: str) -> Tuple[date, str]:
    try:
        return job_date, format_time_of_day(start_time)
    except InvalidTimeError:
        return job_date, start_time


class JobPostRepository(BaseRepository):

    def _with_relations(self, stmt: Select) -> Select:
        return stmt.options(
            selectinload(JobPost.care_needs),
            selectinload(JobPost.languages),
            selectinload(JobPost.preferences),
        )

    def get(self, job_post_id: Any, for_update: bool = False, include_deleted: bool = False) -> Optional[JobPost]:
        stmt = select(JobPost).where(JobPost.id == job_post_id)
        if not include_deleted:
            stmt = stmt.where(JobPost.is_deleted.is_(False))
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(self._with_relations(stmt)).scalar_one_or_none()

    def find_owner_slots(self, owner_id: Any, slots: Iterable[Tuple[date, str]], exclude_id: Any = None) -> List[JobPost]:
        """
        Return the owner's live posts occupying any of the (date, start time) slots.

        Start times are compared in their normalised "HH:MM" form, so "9:00"
        and "09:00" name the same slot.
        """
        wanted = {_slot_key(d, t) for d, t in slots}
        if not wanted:
            return []

        stmt = select(JobPost).where(
            JobPost.owner_id == owner_id,
            JobPost.is_deleted.is_(False),
            JobPost.job_date.in_(sorted({d for d, _ in wanted})),
        )
        if exclude_id is not None:
            stmt = stmt.where(JobPost.id != exclude_id)
        stmt = stmt.order_by(JobPost.job_date, JobPost.start_time)

        posts = self.db.execute(stmt).scalars().all()
        return [p for p in posts if _slot_key(p.job_date, p.start_time) in wanted]

    def has_slot(self, owner_id: Any, job_date: date, start_time: str, exclude_id: Any = None) -> bool:
        return bool(self.find_owner_slots(owner_id, [(job_date, start_time)], exclude_id=exclude_id))

    def open_posts_query(
        self,
        postcode: Optional[str] = None,
        job_type: Optional[str] = None,
        payment_type: Optional[str] = None,
        caregiver_gender: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> Select:
        stmt = select(JobPost).where(
            JobPost.status == JobStatus.OPEN,
            JobPost.is_deleted.is_(False),
        )
        if postcode:
            # Outward code or full postcode prefix, case- and space-insensitive
            needle = "".join(postcode.split()).upper()
            stmt = stmt.where(func.upper(func.replace(JobPost.postcode, ' ', '')).like(f"{needle}%"))
        if job_type:
            stmt = stmt.where(JobPost.job_type == job_type)
        if payment_type:
            stmt = stmt.where(JobPost.payment_type == payment_type)
        if caregiver_gender:
            stmt = stmt.where(JobPost.caregiver_gender == caregiver_gender)
        if date_from:
            stmt = stmt.where(JobPost.job_date >= date_from)
        if date_to:
            stmt = stmt.where(JobPost.job_date <= date_to)
        return stmt

    def count(self, stmt: Select) -> int:
        return self.db.execute(select(func.count()).select_from(stmt.order_by(None).subquery())).scalar_one()

    def fetch(self, stmt: Select, offset: Optional[int] = None, limit: Optional[int] = None) -> Sequence[JobPost]:
        stmt = self._with_relations(stmt)
        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)
        return self.db.execute(stmt).scalars().all()

    def owner_posts_query(self, owner_id: Any, status: Optional[str] = None) -> Select:
        stmt = select(JobPost).where(JobPost.owner_id == owner_id, JobPost.is_deleted.is_(False))
        if status:
            stmt = stmt.where(JobPost.status == status)
        return stmt

    def children_of(self, parent_id: Any) -> List[JobPost]:
        stmt = select(JobPost).where(
            JobPost.parent_job_id == parent_id,
            JobPost.is_deleted.is_(False),
        ).order_by(JobPost.job_date)
        return list(self.db.execute(stmt).scalars().all())
