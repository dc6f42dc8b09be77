#!/usr/bin/env python3
"""
Error handlers for the web application.

Every error body has the same shape:
    {"success": false, "error": <message>, "type": <class name>, "details": [...]}
"""

import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from core.exceptions import (
    AccessDeniedError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ServiceException,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_CODES = {
    NotFoundError: 404,
    AccessDeniedError: 403,
    ConflictError: 409,
    InvalidStateError: 409,
    ValidationError: 422,
}


def status_code_for(exc: ServiceException) -> int:
    for exc_type, status_code in STATUS_CODES.items():
        if isinstance(exc, exc_type):
            return status_code
    return 500


def _error_body(error: str, error_type: str, details=None) -> dict:
    return {
        "success": False,
        "error": error,
        "type": error_type,
        "details": list(details or []),
    }


async def service_exception_handler(request: Request, exc: ServiceException) -> JSONResponse:
    """
    Handle service layer exceptions.

    Args:
        request: The FastAPI request.
        exc: The service exception.

    Returns:
        JSONResponse with error details.
    """
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"Service error in {request.url.path}: {exc.message}", exc_info=True)
    else:
        logger.info(f"{exc.__class__.__name__} in {request.url.path}: {exc.message}")

    return JSONResponse(
        status_code=status_code,
        content=_error_body(exc.message, exc.__class__.__name__, [str(d) for d in exc.details]),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions with consistent format."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail), "HTTPException"),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies use the same 422 shape as service validation errors."""
    details = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get('loc', ()) if part != 'body')
        details.append(f"{location}: {error.get('msg')}" if location else str(error.get('msg')))
    return JSONResponse(
        status_code=422,
        content=_error_body("Invalid request", "ValidationError", details),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error in {request.url.path}")

    return JSONResponse(
        status_code=500,
        content=_error_body("Internal server error", "InternalError"),
    )
