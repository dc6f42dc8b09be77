import uuid

from sqlalchemy import Column, Text, Boolean, TIMESTAMP, Uuid, func

from .base import Base


class _ReferenceMixin:
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False, unique=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<{type(self).__name__} {self.name}>"


class CareNeed(_ReferenceMixin, Base):
    """Kind of care a job requires (dementia care, mobility support, ...)."""
    __tablename__ = 'care_needs'


class Language(_ReferenceMixin, Base):
    __tablename__ = 'languages'


class Preference(_ReferenceMixin, Base):
    """Job preference an applicant can assert (non-smoker, drives, ...)."""
    __tablename__ = 'preferences'
