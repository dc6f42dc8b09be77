#!/usr/bin/env python3
"""
Notification Channels

A channel delivers one rendered lifecycle notification to one user and
reports success as a bool. Channels log their own failures and never raise;
NotificationService turns a False into a retryable delivery error.

    in_app   row in the notifications table (what the app's inbox reads)
    email    SMTP, only for intents flagged send_email
    webhook  JSON event POSTed to one configured endpoint
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import ipaddress
import logging
import os
import smtplib
import socket
import urllib.parse
from email.message import EmailMessage

import requests
from sqlalchemy.orm import sessionmaker

from core.utils import coerce_uuid
from database.uow import unit_of_work

logger = logging.getLogger(__name__)

EMAIL_SUBJECT_PREFIX = "[CareShift]"


def _dry_run() -> bool:
    """NOTIFICATION_DRY_RUN=true makes email and webhook delivery log-only."""
    return os.environ.get('NOTIFICATION_DRY_RUN', '').lower() in ('true', '1', 'yes')


def _redact_email(address: str) -> str:
    """Keep only the domain of an address for log lines."""
    _, at, domain = address.rpartition('@')
    return f"***@{domain}" if at else "***"


def _is_public_http_url(url: str) -> bool:
    """
    True when url is http(s) and every address its host resolves to is public.

    Webhook targets come from config, but a typo pointing at an internal
    service should not turn notifications into internal requests.
    """
    try:
        parsed = urllib.parse.urlparse(url)
    except ValueError as e:
        logger.error(f"Unparseable webhook URL {url!r}: {e}")
        return False

    if parsed.scheme not in ('http', 'https') or not parsed.hostname:
        logger.error(f"Webhook URL must be http(s) with a host: {url!r}")
        return False

    try:
        addresses = {info[4][0] for info in socket.getaddrinfo(parsed.hostname, None)}
    except socket.gaierror:
        logger.error(f"Webhook host does not resolve: {parsed.hostname}")
        return False

    for address in addresses:
        ip = ipaddress.ip_address(address)
        if ip.is_private or ip.is_loopback or ip.is_reserved or ip.is_link_local:
            logger.error(f"Webhook host {parsed.hostname} resolves to non-public address {ip}")
            return False
    return True


class NotificationChannel(ABC):
    """One delivery route for rendered notifications."""

    @property
    @abstractmethod
    def channel_type(self) -> str:
        pass

    @abstractmethod
    def send(self, recipient: str, subject: str, body: str, metadata: Dict[str, Any]) -> bool:
        """
        Deliver one notification.

        Args:
            recipient: User id, or the email address for the email channel
            subject: Rendered title
            body: Rendered body
            metadata: template_key, job_post_id, job_application_id, action_url, ...

        Returns:
            True when delivered
        """
        pass

    def validate_config(self) -> bool:
        return True


@dataclass
class SmtpSettings:
    host: Optional[str] = None
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    sender: str = 'noreply@careshift.app'

    @classmethod
    def from_env(cls) -> "SmtpSettings":
        return cls(
            host=os.environ.get('SMTP_SERVER'),
            port=int(os.environ.get('SMTP_PORT') or 587),
            username=os.environ.get('SMTP_USERNAME'),
            password=os.environ.get('SMTP_PASSWORD'),
            sender=os.environ.get('FROM_EMAIL') or 'noreply@careshift.app',
        )

    @property
    def complete(self) -> bool:
        return bool(self.host and self.username and self.password)


class EmailChannel(NotificationChannel):
    """SMTP email. Settings default to the SMTP_* environment variables."""

    def __init__(self, settings: Optional[SmtpSettings] = None):
        self._settings = settings

    @property
    def settings(self) -> SmtpSettings:
        # Read lazily so the environment can be set after wiring
        return self._settings or SmtpSettings.from_env()

    @property
    def channel_type(self) -> str:
        return 'email'

    def validate_config(self) -> bool:
        return self.settings.complete

    def build_message(self, recipient: str, subject: str, body: str, metadata: Dict[str, Any]) -> EmailMessage:
        settings = self.settings
        message = EmailMessage()
        message['From'] = settings.sender
        message['To'] = recipient
        message['Subject'] = f"{EMAIL_SUBJECT_PREFIX} {subject}"

        lines = [body]
        if metadata.get('action_url'):
            lines.append("")
            lines.append(f"{metadata.get('action_label') or 'Open'}: {metadata['action_url']}")
        message.set_content("\n".join(lines))
        return message

    def send(self, recipient: str, subject: str, body: str, metadata: Dict[str, Any]) -> bool:
        if _dry_run():
            logger.info(f"[DRY RUN] {metadata.get('template_key')} email to {_redact_email(recipient)}")
            return True

        settings = self.settings
        if not settings.complete:
            logger.error("Email channel enabled but SMTP_SERVER/SMTP_USERNAME/SMTP_PASSWORD are not set")
            return False

        message = self.build_message(recipient, subject, body, metadata)
        try:
            with smtplib.SMTP(settings.host, settings.port) as server:
                server.starttls()
                server.login(settings.username, settings.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP delivery to {_redact_email(recipient)} failed: {e}")
            return False

        logger.info(f"{metadata.get('template_key')} email sent to {_redact_email(recipient)}")
        return True


class WebhookChannel(NotificationChannel):
    """POSTs each notification as a JSON event to one endpoint."""

    def __init__(self, url: Optional[str] = None, timeout: int = 10):
        self.url = url
        self.timeout = timeout

    @property
    def channel_type(self) -> str:
        return 'webhook'

    def validate_config(self) -> bool:
        return bool(self.url)

    @staticmethod
    def build_event(recipient: str, subject: str, body: str, metadata: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'event': metadata.get('template_key'),
            'user_id': recipient,
            'title': subject,
            'body': body,
            'job_post_id': metadata.get('job_post_id'),
            'job_application_id': metadata.get('job_application_id'),
            'sent_at': datetime.now(timezone.utc).isoformat(),
            'metadata': metadata,
        }

    def send(self, recipient: str, subject: str, body: str, metadata: Dict[str, Any]) -> bool:
        if not self.url:
            logger.error("Webhook channel enabled without a recipient URL")
            return False
        if not _is_public_http_url(self.url):
            return False

        event = self.build_event(recipient, subject, body, metadata)
        if _dry_run():
            logger.info(f"[DRY RUN] Webhook event {event['event']} for user {recipient}")
            return True

        try:
            response = requests.post(
                self.url,
                json=event,
                headers={
                    'User-Agent': 'CareShift-Notifications/1.0',
                    'X-CareShift-Event': str(event['event']),
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Webhook event {event['event']} for user {recipient} failed: {e}")
            return False

        logger.info(f"Webhook event {event['event']} delivered for user {recipient}")
        return True


class InAppChannel(NotificationChannel):
    """Stores the notification for the recipient's in-app inbox."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory

    @property
    def channel_type(self) -> str:
        return 'in_app'

    def validate_config(self) -> bool:
        return self.session_factory is not None

    def send(self, recipient: str, subject: str, body: str, metadata: Dict[str, Any]) -> bool:
        if self.session_factory is None:
            logger.error("In-app channel has no database session factory")
            return False

        try:
            with unit_of_work(self.session_factory) as uow:
                uow.notifications.create(
                    user_id=coerce_uuid(recipient),
                    template_key=metadata.get('template_key', 'GENERIC'),
                    title=subject,
                    body=body,
                    metadata=metadata,
                )
        except Exception as e:
            # Unknown user (FK), bad id or database outage: reported as a failed delivery
            logger.error(f"Could not store in-app notification for user {recipient}: {e}")
            return False

        logger.info(f"In-app {metadata.get('template_key')} stored for user {recipient}")
        return True


class NotificationChannelFactory:
    """Builds channels by the type names used in the notifications config."""

    _channels: Dict[str, type] = {
        'in_app': InAppChannel,
        'email': EmailChannel,
        'webhook': WebhookChannel,
    }

    @classmethod
    def get_channel(cls, channel_type: str, **kwargs) -> NotificationChannel:
        """
        Raises:
            ValueError: Unknown channel type
        """
        channel_class = cls._channels.get(channel_type.lower())
        if channel_class is None:
            raise ValueError(
                f"Unknown notification channel '{channel_type}'. Available: {', '.join(cls._channels)}"
            )
        return channel_class(**kwargs)
