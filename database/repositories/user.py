from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from database.models import User, HealthcareProfile
from database.repositories.base import BaseRepository


class UserRepository(BaseRepository):

    def get(self, user_id: Any) -> Optional[User]:
        stmt = select(User).where(User.id == user_id, User.is_deleted.is_(False))
        return self.db.execute(stmt).scalar_one_or_none()

    def get_healthcare_profile(self, user_id: Any) -> Optional[HealthcareProfile]:
        stmt = (
            select(HealthcareProfile)
            .where(HealthcareProfile.user_id == user_id, HealthcareProfile.is_deleted.is_(False))
            .options(selectinload(HealthcareProfile.languages))
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def email_for(self, user_id: Any) -> Optional[str]:
        user = self.get(user_id)
        return user.email if user else None
