import uuid

from sqlalchemy import Column, Table, Text, Boolean, TIMESTAMP, ForeignKey, Uuid, Index, func, text as sql_text
from sqlalchemy.orm import relationship

from .base import Base


class ApplicationStatus:
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'
    CANCELLED = 'cancelled'
    NOT_AVAILABLE = 'not-available'
    CLOSED = 'closed'
    COMPLETED = 'completed'

    ALL = (PENDING, ACCEPTED, REJECTED, CANCELLED, NOT_AVAILABLE, CLOSED, COMPLETED)
    TERMINAL = (REJECTED, CANCELLED, NOT_AVAILABLE, CLOSED, COMPLETED)
    # Statuses the job poster can answer a pending application with
    RESPONSES = (ACCEPTED, REJECTED)


class CancellationReason:
    PERSONAL_EMERGENCY = 'personal_emergency'
    HEALTH_ISSUES = 'health_issues'
    SCHEDULE_CONFLICT = 'schedule_conflict'
    FAMILY_EMERGENCY = 'family_emergency'
    TRANSPORTATION_ISSUES = 'transportation_issues'
    OTHER = 'other'

    ALL = (
        PERSONAL_EMERGENCY, HEALTH_ISSUES, SCHEDULE_CONFLICT,
        FAMILY_EMERGENCY, TRANSPORTATION_ISSUES, OTHER,
    )


job_application_preferences = Table(
    'job_application_preferences',
    Base.metadata,
    Column('job_application_id', Uuid, ForeignKey('job_applications.id', ondelete='CASCADE'), primary_key=True),
    Column('preference_id', Uuid, ForeignKey('preferences.id', ondelete='CASCADE'), primary_key=True),
)


class JobApplication(Base):
    """
    A worker's application to one job post and everything that happens to it:
    the poster's response, cancellation, check-in/out, completion and reports.
    """
    __tablename__ = 'job_applications'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    job_post_id = Column(Uuid, ForeignKey('job_posts.id', ondelete='CASCADE'), nullable=False)
    worker_id = Column(Uuid, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)

    status = Column(Text, nullable=False, default=ApplicationStatus.PENDING)
    application_message = Column(Text)

    # Poster response
    responded_at = Column(TIMESTAMP(timezone=True))
    response_message = Column(Text)

    # Cancellation
    cancelled_at = Column(TIMESTAMP(timezone=True))
    cancellation_reason = Column(Text)
    cancellation_message = Column(Text)
    cancelled_by = Column(Uuid, ForeignKey('users.id'))

    # Attendance
    checked_in_at = Column(TIMESTAMP(timezone=True))
    checked_out_at = Column(TIMESTAMP(timezone=True))
    checkin_location = Column(Text)
    checkout_location = Column(Text)

    # Completion
    completed_at = Column(TIMESTAMP(timezone=True))
    completed_by = Column(Uuid, ForeignKey('users.id'))
    completion_notes = Column(Text)

    # Report
    reported_at = Column(TIMESTAMP(timezone=True))
    report_reason = Column(Text)
    report_message = Column(Text)
    reported_by = Column(Uuid, ForeignKey('users.id'))

    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    job_post = relationship("JobPost", back_populates="applications")
    worker = relationship("User", foreign_keys=[worker_id])
    preferences = relationship("Preference", secondary=job_application_preferences, order_by="Preference.name")

    __table_args__ = (
        Index('idx_job_applications_job_post', 'job_post_id'),
        Index('idx_job_applications_worker_status', 'worker_id', 'status'),
        # One live application per worker per job
        Index(
            'uq_job_applications_job_worker', 'job_post_id', 'worker_id',
            unique=True,
            postgresql_where=sql_text('is_deleted = false'),
            sqlite_where=sql_text('is_deleted = 0'),
        ),
        # At most one accepted application per job
        Index(
            'uq_job_applications_accepted', 'job_post_id',
            unique=True,
            postgresql_where=sql_text("status = 'accepted' AND is_deleted = false"),
            sqlite_where=sql_text("status = 'accepted' AND is_deleted = 0"),
        ),
    )

    def __repr__(self):
        return f"<JobApplication {self.id} job={self.job_post_id} worker={self.worker_id} {self.status}>"
