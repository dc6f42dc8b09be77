#!/usr/bin/env python3
"""
Response models for API endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional


class SoftFailureModel(BaseModel):
    """A best-effort side effect that did not complete."""
    kind: str
    template_key: Optional[str] = None
    target_user_id: Optional[str] = None
    error: str
    channels: List[str] = Field(default_factory=list)


class DataResponse(BaseModel):
    success: bool = True
    data: Any


class OperationResponse(BaseModel):
    """Result of a mutating application operation."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "data": {"id": "550e8400-e29b-41d4-a716-446655440000", "status": "accepted"},
                "soft_failures": [
                    {
                        "kind": "notification",
                        "template_key": "APPLICATION_ACCEPTED",
                        "target_user_id": "6ba7b810-9dad-11d1-80b4-00c04fd430c8",
                        "error": "APPLICATION_ACCEPTED for user ... failed on: webhook",
                        "channels": ["webhook"],
                    }
                ],
            }
        }
    )

    success: bool = True
    data: Dict[str, Any]
    soft_failures: List[SoftFailureModel] = Field(default_factory=list)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class PageResponse(BaseModel):
    success: bool = True
    items: List[Dict[str, Any]]
    pagination: Pagination
