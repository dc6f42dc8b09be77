#!/usr/bin/env python3
"""
Application endpoints - respond, cancel, check in/out, complete and report.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query

from core.app_context import AppContext
from database.models import UserRole
from ..dependencies import get_context, get_current_user_id
from ..models.requests import (
    CancelRequest,
    CompleteRequest,
    LocationRequest,
    ReportRequest,
    StatusUpdateRequest,
)
from ..models.responses import DataResponse, OperationResponse, PageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/applications", tags=["applications"])


@router.get("/mine", response_model=PageResponse)
def get_my_applications(
    status: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_context),
):
    """The caller's applications with their job posts, newest first."""
    result = ctx.queries.get_worker_applications(user_id, {'status': status, 'page': page, 'limit': limit})
    return PageResponse(**result.to_dict())


@router.get("/stats", response_model=DataResponse)
def get_application_stats(
    role: str = Query(default=UserRole.HEALTHCARE, description="healthcare, or a job poster role"),
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_context),
):
    return DataResponse(data=ctx.queries.get_application_stats(user_id, role))


@router.get("/{application_id}", response_model=DataResponse)
def get_application(
    application_id: str,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_context),
):
    return DataResponse(data=ctx.queries.get_application(application_id, user_id))


@router.patch("/{application_id}/status", response_model=OperationResponse)
def update_application_status(
    application_id: str,
    body: StatusUpdateRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_context),
):
    """Accept or reject a pending application (job owner only)."""
    result = ctx.engine.update_application_status(
        application_id, user_id, body.status, body.response_message
    )
    return OperationResponse(success=True, **result.to_dict())


@router.post("/{application_id}/cancel", response_model=OperationResponse)
def cancel_application(
    application_id: str,
    body: CancelRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_context),
):
    result = ctx.engine.cancel_application(application_id, user_id, body.reason, body.message)
    return OperationResponse(success=True, **result.to_dict())


@router.post("/{application_id}/checkin", response_model=OperationResponse)
def checkin_to_job(
    application_id: str,
    body: LocationRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_context),
):
    result = ctx.engine.checkin_to_job(application_id, user_id, body.location)
    return OperationResponse(success=True, **result.to_dict())


@router.post("/{application_id}/checkout", response_model=OperationResponse)
def checkout_from_job(
    application_id: str,
    body: LocationRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_context),
):
    result = ctx.engine.checkout_from_job(application_id, user_id, body.location)
    return OperationResponse(success=True, **result.to_dict())


@router.post("/{application_id}/complete", response_model=OperationResponse)
def complete_job(
    application_id: str,
    body: CompleteRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_context),
):
    result = ctx.engine.complete_job(application_id, user_id, body.notes)
    return OperationResponse(success=True, **result.to_dict())


@router.post("/{application_id}/report", response_model=OperationResponse)
def report_application(
    application_id: str,
    body: ReportRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_context),
):
    result = ctx.engine.report_application(application_id, user_id, body.reason, body.message)
    return OperationResponse(success=True, **result.to_dict())
