#!/usr/bin/env python3
"""
Job post endpoints - browse, create, edit, repost and bulk import job posts.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query

from core.app_context import AppContext
from ..dependencies import get_context, get_current_user_id, get_optional_user_id
from ..models.requests import (
    ApplyRequest,
    BulkImportRequest,
    JobPostCreate,
    JobPostUpdate,
    RepostRequest,
)
from ..models.responses import DataResponse, OperationResponse, PageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


@router.get("", response_model=PageResponse)
def get_job_posts(
    postcode: Optional[str] = Query(default=None, description="Postcode or outward code prefix"),
    job_type: Optional[str] = Query(default=None, description="oneDay or weekly"),
    payment_type: Optional[str] = Query(default=None, description="hourly or fixed"),
    caregiver_gender: Optional[str] = Query(default=None, description="male, female or any"),
    date_from: Optional[str] = Query(default=None, description="Earliest job date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(default=None, description="Latest job date (YYYY-MM-DD)"),
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    user_id: Optional[uuid.UUID] = Depends(get_optional_user_id),
    ctx: AppContext = Depends(get_context),
):
    """
    Open job posts.

    When the caller is identified, results are sorted by distance from the
    caller and annotated with their application status and match score.
    """
    filters = {
        'postcode': postcode,
        'job_type': job_type,
        'payment_type': payment_type,
        'caregiver_gender': caregiver_gender,
        'date_from': date_from,
        'date_to': date_to,
        'page': page,
        'limit': limit,
    }
    result = ctx.queries.get_all_job_posts(filters, requesting_worker_id=user_id)
    return PageResponse(**result.to_dict())


@router.get("/options", response_model=DataResponse)
def get_job_options(ctx: AppContext = Depends(get_context)):
    """Care needs, languages, preferences and enumerations for job forms."""
    return DataResponse(data=ctx.queries.get_job_options())


@router.get("/mine", response_model=PageResponse)
def get_my_job_posts(
    status: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_context),
):
    result = ctx.queries.get_owner_job_posts(user_id, {'status': status, 'page': page, 'limit': limit})
    return PageResponse(**result.to_dict())


@router.get("/mine/applications", response_model=PageResponse)
def get_my_job_applications(
    status: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_context),
):
    """Applications across all of the caller's job posts, newest first."""
    result = ctx.queries.get_owner_applications(user_id, {'status': status, 'page': page, 'limit': limit})
    return PageResponse(**result.to_dict())


@router.post("", response_model=DataResponse, status_code=201)
def create_job_post(
    body: JobPostCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_context),
):
    """Create a job post; a recurring body also creates one child post per matching date."""
    spec = body.model_dump(exclude_none=True)
    return DataResponse(data=ctx.job_manager.create_job_post(user_id, spec))


@router.post("/bulk/validate", response_model=DataResponse)
def validate_bulk_jobs(
    body: BulkImportRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_context),
):
    """Dry run: partition the rows into valid and invalid without creating anything."""
    return DataResponse(data=ctx.bulk_importer.parse_bulk_job_data(user_id, body.rows).to_dict())


@router.post("/bulk", response_model=DataResponse)
def create_bulk_jobs(
    body: BulkImportRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_context),
):
    return DataResponse(data=ctx.bulk_importer.create_bulk_jobs(user_id, body.rows))


@router.get("/{job_post_id}", response_model=DataResponse)
def get_job_post(
    job_post_id: str,
    user_id: Optional[uuid.UUID] = Depends(get_optional_user_id),
    ctx: AppContext = Depends(get_context),
):
    return DataResponse(data=ctx.queries.get_job_post(job_post_id, requesting_user_id=user_id))


@router.patch("/{job_post_id}", response_model=DataResponse)
def update_job_post(
    job_post_id: str,
    body: JobPostUpdate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_context),
):
    """Partial update. Relation id lists replace the stored sets wholesale."""
    patch = body.model_dump(exclude_unset=True)
    return DataResponse(data=ctx.job_manager.update_job_post(job_post_id, user_id, patch))


@router.post("/{job_post_id}/close", response_model=DataResponse)
def close_job_post(
    job_post_id: str,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_context),
):
    return DataResponse(data=ctx.job_manager.close_job_post(job_post_id, user_id))


@router.delete("/{job_post_id}", response_model=DataResponse)
def delete_job_post(
    job_post_id: str,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_context),
):
    return DataResponse(data=ctx.job_manager.delete_job_post(job_post_id, user_id))


@router.post("/{job_post_id}/repost-expired", response_model=DataResponse, status_code=201)
def repost_expired_job(
    job_post_id: str,
    body: RepostRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_context),
):
    schedule = body.model_dump(exclude_none=True)
    return DataResponse(data=ctx.job_manager.repost_expired_job(job_post_id, user_id, schedule))


@router.post("/{job_post_id}/repost-past", response_model=DataResponse, status_code=201)
def repost_past_job(
    job_post_id: str,
    body: RepostRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_context),
):
    schedule = body.model_dump(exclude_none=True)
    return DataResponse(data=ctx.job_manager.repost_past_job(job_post_id, user_id, schedule))


@router.get("/{job_post_id}/applications", response_model=PageResponse)
def get_job_applications(
    job_post_id: str,
    status: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_context),
):
    """Candidates for one of the caller's job posts, best match first."""
    result = ctx.queries.get_job_applications(
        job_post_id, user_id, {'status': status, 'page': page, 'limit': limit}
    )
    return PageResponse(**result.to_dict())


@router.post("/{job_post_id}/applications", response_model=OperationResponse, status_code=201)
def apply_for_job(
    job_post_id: str,
    body: ApplyRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_context),
):
    result = ctx.engine.apply_for_job(job_post_id, user_id, body.message, body.preference_ids)
    return OperationResponse(success=True, **result.to_dict())
