import uuid

from sqlalchemy import Column, Text, Boolean, TIMESTAMP, ForeignKey, Uuid, Index, func

from .base import Base, JSONType


class Notification(Base):
    """
    In-app notification row, written by the in-app channel after the
    lifecycle transaction that produced it has committed.
    """
    __tablename__ = 'notifications'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)

    template_key = Column(Text, nullable=False)  # JOB_APPLICATION_RECEIVED, APPLICATION_ACCEPTED, ...
    title = Column(Text, nullable=False)
    body = Column(Text, nullable=False)
    metadata_ = Column('metadata', JSONType, nullable=False, default=dict)

    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index('idx_notifications_user_created', 'user_id', 'created_at'),
    )
