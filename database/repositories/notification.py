from typing import Any, Dict, List, Optional

from sqlalchemy import select

from database.models import Notification
from database.repositories.base import BaseRepository


class NotificationRepository(BaseRepository):

    def create(
        self,
        user_id: Any,
        template_key: str,
        title: str,
        body: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        return self.add(Notification(
            user_id=user_id,
            template_key=template_key,
            title=title,
            body=body,
            metadata_=metadata or {},
        ))

    def list_for_user(self, user_id: Any, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        stmt = stmt.order_by(Notification.created_at.desc()).limit(limit)
        return list(self.db.execute(stmt).scalars().all())
