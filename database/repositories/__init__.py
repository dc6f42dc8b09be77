from database.repositories.base import BaseRepository
from database.repositories.job_post import JobPostRepository
from database.repositories.application import ApplicationRepository
from database.repositories.reference import ReferenceRepository
from database.repositories.user import UserRepository
from database.repositories.notification import NotificationRepository

__all__ = [
    'BaseRepository',
    'JobPostRepository',
    'ApplicationRepository',
    'ReferenceRepository',
    'UserRepository',
    'NotificationRepository',
]
