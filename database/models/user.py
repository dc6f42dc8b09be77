import uuid

from sqlalchemy import Column, Table, Text, Boolean, Integer, TIMESTAMP, ForeignKey, Uuid, Index, func
from sqlalchemy.orm import relationship

from .base import Base


class UserRole:
    INDIVIDUAL = 'individual'
    ORGANIZATION = 'organization'
    HEALTHCARE = 'healthcare'
    ADMIN = 'admin'

    ALL = (INDIVIDUAL, ORGANIZATION, HEALTHCARE, ADMIN)
    POSTERS = (INDIVIDUAL, ORGANIZATION)


class Gender:
    MALE = 'male'
    FEMALE = 'female'

    ALL = (MALE, FEMALE)


healthcare_profile_languages = Table(
    'healthcare_profile_languages',
    Base.metadata,
    Column('healthcare_profile_id', Uuid, ForeignKey('healthcare_profiles.id', ondelete='CASCADE'), primary_key=True),
    Column('language_id', Uuid, ForeignKey('languages.id', ondelete='CASCADE'), primary_key=True),
)


class User(Base):
    """
    Account of a job poster (individual, organization), a healthcare worker
    or an admin. Authentication lives outside this service.
    """
    __tablename__ = 'users'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=False, unique=True)
    role = Column(Text, nullable=False)  # individual|organization|healthcare|admin

    is_active = Column(Boolean, nullable=False, default=True)
    is_deleted = Column(Boolean, nullable=False, default=False)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    healthcare_profile = relationship("HealthcareProfile", back_populates="user", uselist=False)

    __table_args__ = (
        Index('idx_users_role', 'role'),
    )


class HealthcareProfile(Base):
    __tablename__ = 'healthcare_profiles'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True)

    full_name = Column(Text)
    gender = Column(Text)  # male|female
    professional_title = Column(Text)
    postcode = Column(Text)
    experience = Column(Integer)  # years

    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="healthcare_profile")
    languages = relationship("Language", secondary=healthcare_profile_languages, order_by="Language.name")
