import contextlib
import logging
from typing import Iterator

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from core.exceptions import ConflictError
from database.repositories import (
    JobPostRepository,
    ApplicationRepository,
    ReferenceRepository,
    UserRepository,
    NotificationRepository,
)

logger = logging.getLogger(__name__)


class UnitOfWork:
    """Repositories bound to one Session, i.e. one transaction."""

    def __init__(self, session: Session):
        self.session = session
        self.job_posts = JobPostRepository(session)
        self.applications = ApplicationRepository(session)
        self.reference = ReferenceRepository(session)
        self.users = UserRepository(session)
        self.notifications = NotificationRepository(session)

    def flush(self, conflict_message: str = "Conflicting record already exists") -> None:
        """Flush pending writes so store constraints fire now, with a specific message."""
        try:
            self.session.flush()
        except IntegrityError as e:
            raise ConflictError(conflict_message, details=[str(e.orig)]) from e


@contextlib.contextmanager
def unit_of_work(session_factory: sessionmaker) -> Iterator[UnitOfWork]:
    """Per-unit-of-work transaction scope.

    Yields a UnitOfWork bound to a fresh Session. Commits on success,
    rolls back on exception, always closes. A uniqueness violation raised
    by the store surfaces as ConflictError.

    Usage:
        with unit_of_work(session_factory) as uow:
            job = uow.job_posts.get(job_id, for_update=True)
            # perform operations...
        # commit happens automatically on successful exit
    """
    session = session_factory()
    try:
        yield UnitOfWork(session)
        session.commit()
    except IntegrityError as e:
        session.rollback()
        logger.warning(f"Transaction rolled back on integrity error: {e.orig}")
        raise ConflictError("Conflicting record already exists", details=[str(e.orig)]) from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
