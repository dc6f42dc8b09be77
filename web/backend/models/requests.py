#!/usr/bin/env python3
"""
Request models for API endpoints.

Field-level rules (ranges, enumerations, dates in the past) are checked by the
core so that every violation is reported together; these models only fix the
shape of the payload.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional


class RecurringSpec(BaseModel):
    """Weekly recurrence for a job post."""
    frequency: str = Field(default="weekly", description="Recurrence frequency (weekly)")
    weekdays: List[str] = Field(default_factory=list, description="Weekday names, e.g. ['monday', 'wednesday']")
    end_date: Optional[str] = Field(None, description="Last date of the series (YYYY-MM-DD)")


class JobPostFields(BaseModel):
    title: Optional[str] = None
    overview: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_age: Optional[int] = None
    recipient_relationship: Optional[str] = None
    recipient_gender: Optional[str] = Field(None, description="male or female")
    postcode: Optional[str] = None
    address: Optional[str] = None
    job_date: Optional[str] = Field(None, description="YYYY-MM-DD")
    start_time: Optional[str] = Field(None, description="HH:MM (24h)")
    end_time: Optional[str] = Field(None, description="HH:MM (24h), after start_time")
    shift_length: Optional[int] = Field(None, description="Hours, 1-24")
    caregiver_gender: Optional[str] = Field(None, description="male, female or any")
    job_type: Optional[str] = Field(None, description="oneDay or weekly")
    payment_type: Optional[str] = Field(None, description="hourly or fixed")
    payment_cost: Optional[int] = Field(None, description="Cost in minor currency units")
    care_need_ids: Optional[List[str]] = None
    language_ids: Optional[List[str]] = None
    preference_ids: Optional[List[str]] = None


class JobPostCreate(JobPostFields):
    """Request to create a job post, optionally recurring."""
    recurring: Optional[RecurringSpec] = None


class JobPostUpdate(JobPostFields):
    """Partial update; relation id lists replace the stored sets."""
    model_config = ConfigDict(extra='forbid')


class RepostRequest(BaseModel):
    """New schedule for a reposted job."""
    job_date: str = Field(..., description="YYYY-MM-DD")
    start_time: str = Field(..., description="HH:MM (24h)")
    end_time: str = Field(..., description="HH:MM (24h)")
    shift_length: Optional[int] = None


class BulkImportRequest(BaseModel):
    """Rows already parsed from a spreadsheet, keyed by field name."""
    rows: List[Dict[str, Any]] = Field(..., description="Import rows")


class ApplyRequest(BaseModel):
    message: Optional[str] = Field(None, description="Cover message to the job poster")
    preference_ids: List[str] = Field(default_factory=list, description="Job preferences the applicant meets")


class StatusUpdateRequest(BaseModel):
    status: str = Field(..., description="accepted or rejected")
    response_message: Optional[str] = None


class CancelRequest(BaseModel):
    reason: str = Field(..., description="Cancellation reason code")
    message: Optional[str] = None


class LocationRequest(BaseModel):
    location: Optional[str] = Field(None, description="Free-text location or coordinates")


class CompleteRequest(BaseModel):
    notes: Optional[str] = None


class ReportRequest(BaseModel):
    reason: str = Field(..., description="Report reason")
    message: Optional[str] = None
