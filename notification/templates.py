#!/usr/bin/env python3
"""
Notification templates for application lifecycle events.

Placeholders use str.format names ({job_title}, {job_post_id}, ...); a
placeholder with no matching variable renders as an empty string.
"""

import string
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class NotificationTemplate:
    key: str
    type: str
    title: str
    message: str
    priority: str = 'normal'  # low|normal|high|urgent
    action_url: Optional[str] = None
    action_label: Optional[str] = None


@dataclass(frozen=True)
class RenderedNotification:
    template_key: str
    type: str
    title: str
    body: str
    priority: str
    action_url: Optional[str]
    action_label: Optional[str]


NOTIFICATION_TEMPLATES: Dict[str, NotificationTemplate] = {
    t.key: t for t in (
        NotificationTemplate(
            key='JOB_APPLICATION_RECEIVED',
            type='job_application',
            title='New Job Application',
            message='You have received a new application for your job post "{job_title}"',
            action_url='/jobs/{job_post_id}/applications',
            action_label='View Application',
        ),
        NotificationTemplate(
            key='APPLICATION_ACCEPTED',
            type='application_accepted',
            title='Application Accepted!',
            message='Your application for "{job_title}" has been accepted',
            priority='high',
            action_url='/my-applications/{application_id}',
            action_label='View Details',
        ),
        NotificationTemplate(
            key='APPLICATION_REJECTED',
            type='application_rejected',
            title='Application Update',
            message='Your application for "{job_title}" was not selected',
            action_url='/my-applications/{application_id}',
            action_label='View Details',
        ),
        NotificationTemplate(
            key='APPLICATION_CANCELLED',
            type='application_cancelled',
            title='Application Cancelled',
            message='Application for "{job_title}" has been cancelled',
            priority='high',
            action_url='/my-applications/{application_id}',
            action_label='View Details',
        ),
        NotificationTemplate(
            key='JOB_STARTED',
            type='job_started',
            title='Job Started',
            message='Healthcare worker has checked in for "{job_title}"',
            action_url='/jobs/{job_post_id}',
            action_label='View Job',
        ),
        NotificationTemplate(
            key='JOB_COMPLETED',
            type='job_completed',
            title='Job Completed',
            message='Job "{job_title}" has been marked as completed',
            action_url='/jobs/{job_post_id}',
            action_label='View Job',
        ),
        NotificationTemplate(
            key='REPORT_SUBMITTED',
            type='report_submitted',
            title='Report Submitted',
            message='A report has been submitted regarding job "{job_title}"',
            priority='urgent',
            action_url='/admin/reports/{application_id}',
            action_label='Review Report',
        ),
    )
}


class _BlankMissing(dict):
    def __missing__(self, key):
        return ''


def _fill(text: Optional[str], variables: Dict[str, Any]) -> Optional[str]:
    if text is None:
        return None
    return string.Formatter().vformat(text, (), _BlankMissing(variables))


def render_template(template_key: str, variables: Optional[Dict[str, Any]] = None) -> RenderedNotification:
    """
    Raises:
        KeyError: If the template key is unknown.
    """
    template = NOTIFICATION_TEMPLATES[template_key]
    variables = {k: ('' if v is None else v) for k, v in (variables or {}).items()}
    return RenderedNotification(
        template_key=template.key,
        type=template.type,
        title=_fill(template.title, variables),
        body=_fill(template.message, variables),
        priority=template.priority,
        action_url=_fill(template.action_url, variables),
        action_label=template.action_label,
    )
