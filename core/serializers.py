"""Plain-dict views of ORM rows, built while the session is still open."""

from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional


def _iso(value: Optional[Any]) -> Optional[str]:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def _str(value: Optional[Any]) -> Optional[str]:
    return str(value) if value is not None else None


def reference_list(rows: Iterable[Any]) -> List[Dict[str, Any]]:
    return [{'id': str(r.id), 'name': r.name} for r in rows]


def job_post_to_dict(job) -> Dict[str, Any]:
    recurring = None
    if job.recurring_weekdays:
        recurring = {
            'frequency': job.recurring_frequency,
            'weekdays': list(job.recurring_weekdays),
            'end_date': _iso(job.recurring_end_date),
        }

    return {
        'id': str(job.id),
        'owner_id': str(job.owner_id),
        'parent_job_id': _str(job.parent_job_id),
        'title': job.title,
        'overview': job.overview,
        'recipient_name': job.recipient_name,
        'recipient_age': job.recipient_age,
        'recipient_relationship': job.recipient_relationship,
        'recipient_gender': job.recipient_gender,
        'postcode': job.postcode,
        'address': job.address,
        'job_date': _iso(job.job_date),
        'start_time': job.start_time,
        'end_time': job.end_time,
        'shift_length': job.shift_length,
        'caregiver_gender': job.caregiver_gender,
        'job_type': job.job_type,
        'payment_type': job.payment_type,
        'payment_cost': job.payment_cost,
        'status': job.status,
        'recurring': recurring,
        'care_needs': reference_list(job.care_needs),
        'languages': reference_list(job.languages),
        'preferences': reference_list(job.preferences),
        'created_at': _iso(job.created_at),
        'updated_at': _iso(job.updated_at),
    }


def application_to_dict(application, include_job: bool = False) -> Dict[str, Any]:
    view = {
        'id': str(application.id),
        'job_post_id': str(application.job_post_id),
        'worker_id': str(application.worker_id),
        'status': application.status,
        'application_message': application.application_message,
        'preferences': reference_list(application.preferences),
        'responded_at': _iso(application.responded_at),
        'response_message': application.response_message,
        'cancelled_at': _iso(application.cancelled_at),
        'cancellation_reason': application.cancellation_reason,
        'cancellation_message': application.cancellation_message,
        'cancelled_by': _str(application.cancelled_by),
        'checked_in_at': _iso(application.checked_in_at),
        'checked_out_at': _iso(application.checked_out_at),
        'checkin_location': application.checkin_location,
        'checkout_location': application.checkout_location,
        'completed_at': _iso(application.completed_at),
        'completed_by': _str(application.completed_by),
        'completion_notes': application.completion_notes,
        'reported_at': _iso(application.reported_at),
        'report_reason': application.report_reason,
        'report_message': application.report_message,
        'reported_by': _str(application.reported_by),
        'created_at': _iso(application.created_at),
        'updated_at': _iso(application.updated_at),
    }
    if include_job and application.job_post is not None:
        view['job_post'] = job_post_to_dict(application.job_post)
    return view
