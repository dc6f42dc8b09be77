from .base import Base
from .user import User, HealthcareProfile, UserRole, Gender, healthcare_profile_languages
from .reference import CareNeed, Language, Preference
from .job import (
    JobPost, JobStatus, JobType, PaymentType, CaregiverGender,
    job_post_care_needs, job_post_languages, job_post_preferences,
)
from .application import JobApplication, ApplicationStatus, CancellationReason, job_application_preferences
from .notification import Notification

__all__ = [
    'Base',
    'User',
    'HealthcareProfile',
    'UserRole',
    'Gender',
    'healthcare_profile_languages',
    'CareNeed',
    'Language',
    'Preference',
    'JobPost',
    'JobStatus',
    'JobType',
    'PaymentType',
    'CaregiverGender',
    'job_post_care_needs',
    'job_post_languages',
    'job_post_preferences',
    'JobApplication',
    'ApplicationStatus',
    'CancellationReason',
    'job_application_preferences',
    'Notification',
]
