#!/usr/bin/env python3
"""
Service-layer exceptions for the scheduling core.

Every operation raises one of these synchronously; the web layer maps them
to HTTP status codes in web/backend/exceptions.py.
"""

from typing import Any, List, Optional


class ServiceException(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, details: Optional[List[Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = list(details or [])


class NotFoundError(ServiceException):
    """Raised when an entity is missing or soft-deleted."""
    pass


class AccessDeniedError(ServiceException):
    """Raised when the caller is not the owning worker or job poster."""
    pass


class ConflictError(ServiceException):
    """
    Raised on uniqueness or invariant violations: duplicate application,
    double-booking, double check-in, an occupied date/time slot.

    `details` carries the colliding items (dates, application ids, ...).
    """
    pass


class InvalidStateError(ServiceException):
    """Raised when an operation is not valid for the current status."""
    pass


class ValidationError(ServiceException):
    """Raised on malformed or out-of-range input.

    `details` holds the human-readable list of violations.
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message, details=errors)

    @property
    def errors(self) -> List[str]:
        return self.details
