"""
Notification Module

Lifecycle notifications (application received, accepted, cancelled, ...)
delivered after commit through in-app, email and webhook channels.

Usage:
    from notification import NotificationService, NotificationDispatcher, NotificationIntent

    dispatcher = NotificationDispatcher(NotificationService(channels))
    soft_failures = dispatcher.dispatch([NotificationIntent('JOB_COMPLETED', worker_id, {'job_title': title})])
"""

from notification.channels import (
    NotificationChannel,
    NotificationChannelFactory,
    EmailChannel,
    WebhookChannel,
    InAppChannel,
)
from notification.templates import NOTIFICATION_TEMPLATES, render_template
from notification.service import (
    NotificationService,
    NotificationDispatcher,
    NotificationIntent,
    NotificationDeliveryError,
    SoftFailure,
)

__all__ = [
    'NotificationChannel',
    'NotificationChannelFactory',
    'EmailChannel',
    'WebhookChannel',
    'InAppChannel',
    'NOTIFICATION_TEMPLATES',
    'render_template',
    'NotificationService',
    'NotificationDispatcher',
    'NotificationIntent',
    'NotificationDeliveryError',
    'SoftFailure',
]
