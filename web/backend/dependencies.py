#!/usr/bin/env python3
"""
FastAPI dependencies for dependency injection.

Authentication happens upstream; the auth middleware forwards the caller's
user id in the X-User-Id header.
"""

import uuid
from typing import Optional

from fastapi import Header, HTTPException

from core.app_context import AppContext
from .config import get_config

_context: Optional[AppContext] = None


def get_context() -> AppContext:
    """
    FastAPI dependency that returns the wired application context.

    Built on first use so importing the app does not connect to the database.
    Tests replace it through app.dependency_overrides.
    """
    global _context
    if _context is None:
        _context = AppContext.build(get_config())
    return _context


def _parse_user_id(value: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=401, detail=f"Invalid X-User-Id header: {value}")


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> uuid.UUID:
    """The authenticated caller. Missing identity is a 401."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return _parse_user_id(x_user_id)


def get_optional_user_id(x_user_id: Optional[str] = Header(default=None)) -> Optional[uuid.UUID]:
    """The caller when identified; anonymous browsing is allowed."""
    if not x_user_id:
        return None
    return _parse_user_id(x_user_id)
