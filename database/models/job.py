import uuid

from sqlalchemy import (
    Column, Table, Text, Integer, Boolean, Date, TIMESTAMP, ForeignKey, Uuid, Index, func, text as sql_text,
)
from sqlalchemy.orm import relationship

from .base import Base, JSONType


class JobStatus:
    OPEN = 'open'
    APPROVED = 'approved'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    CLOSED = 'closed'

    ALL = (OPEN, APPROVED, COMPLETED, CANCELLED, CLOSED)


class JobType:
    ONE_DAY = 'oneDay'
    WEEKLY = 'weekly'

    ALL = (ONE_DAY, WEEKLY)


class PaymentType:
    HOURLY = 'hourly'
    FIXED = 'fixed'

    ALL = (HOURLY, FIXED)


class CaregiverGender:
    MALE = 'male'
    FEMALE = 'female'
    ANY = 'any'

    ALL = (MALE, FEMALE, ANY)


job_post_care_needs = Table(
    'job_post_care_needs',
    Base.metadata,
    Column('job_post_id', Uuid, ForeignKey('job_posts.id', ondelete='CASCADE'), primary_key=True),
    Column('care_need_id', Uuid, ForeignKey('care_needs.id', ondelete='CASCADE'), primary_key=True),
)

job_post_languages = Table(
    'job_post_languages',
    Base.metadata,
    Column('job_post_id', Uuid, ForeignKey('job_posts.id', ondelete='CASCADE'), primary_key=True),
    Column('language_id', Uuid, ForeignKey('languages.id', ondelete='CASCADE'), primary_key=True),
)

job_post_preferences = Table(
    'job_post_preferences',
    Base.metadata,
    Column('job_post_id', Uuid, ForeignKey('job_posts.id', ondelete='CASCADE'), primary_key=True),
    Column('preference_id', Uuid, ForeignKey('preferences.id', ondelete='CASCADE'), primary_key=True),
)


class JobPost(Base):
    """
    A time-bound care job. A recurring series is one parent post carrying the
    recurrence descriptor plus one child post per generated date.
    """
    __tablename__ = 'job_posts'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    parent_job_id = Column(Uuid, ForeignKey('job_posts.id', ondelete='SET NULL'), nullable=True)

    title = Column(Text, nullable=False)
    overview = Column(Text, nullable=False)

    # Care recipient
    recipient_name = Column(Text, nullable=False)
    recipient_age = Column(Integer, nullable=False)
    recipient_relationship = Column(Text)
    recipient_gender = Column(Text, nullable=False)  # male|female

    postcode = Column(Text, nullable=False)
    address = Column(Text, nullable=False)

    # Schedule: local civil date plus "HH:MM" times of day
    job_date = Column(Date, nullable=False)
    start_time = Column(Text, nullable=False)
    end_time = Column(Text, nullable=False)
    shift_length = Column(Integer, nullable=False)  # hours

    caregiver_gender = Column(Text, nullable=False, default=CaregiverGender.ANY)  # male|female|any
    job_type = Column(Text, nullable=False, default=JobType.ONE_DAY)  # oneDay|weekly
    payment_type = Column(Text, nullable=False)  # hourly|fixed
    payment_cost = Column(Integer, nullable=False)  # minor units

    status = Column(Text, nullable=False, default=JobStatus.OPEN)  # open|approved|completed|cancelled|closed

    # Recurrence descriptor, parent post only
    recurring_frequency = Column(Text)  # weekly
    recurring_weekdays = Column(JSONType)  # ["monday", "wednesday"]
    recurring_end_date = Column(Date)

    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    owner = relationship("User")
    parent = relationship("JobPost", remote_side=[id], backref="children")
    care_needs = relationship("CareNeed", secondary=job_post_care_needs, order_by="CareNeed.name")
    languages = relationship("Language", secondary=job_post_languages, order_by="Language.name")
    preferences = relationship("Preference", secondary=job_post_preferences, order_by="Preference.name")
    applications = relationship("JobApplication", back_populates="job_post")

    __table_args__ = (
        Index('idx_job_posts_owner', 'owner_id'),
        Index('idx_job_posts_postcode', 'postcode'),
        Index('idx_job_posts_status_date', 'status', 'job_date'),
        # One post per owner per date and start time among live posts
        Index(
            'uq_job_posts_owner_slot', 'owner_id', 'job_date', 'start_time',
            unique=True,
            postgresql_where=sql_text('is_deleted = false'),
            sqlite_where=sql_text('is_deleted = 0'),
        ),
    )

    @property
    def is_recurring_parent(self) -> bool:
        return bool(self.recurring_weekdays) and self.parent_job_id is None

    def __repr__(self):
        return f"<JobPost {self.id} {self.title!r} {self.job_date} {self.start_time}-{self.end_time} {self.status}>"
