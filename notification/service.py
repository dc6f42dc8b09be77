#!/usr/bin/env python3
"""
Notification Service - renders lifecycle templates and delivers them.

Two pieces:

NotificationService
    The sink: notify(template_key, target_user_id, variables, context)
    renders a template and sends it through every enabled channel. It
    raises NotificationDeliveryError naming the channels that failed.

NotificationDispatcher
    Runs after a lifecycle transaction has committed. Retries each intent
    with tenacity, only re-sending to the channels that failed, and turns a
    final failure into a SoftFailure record for the caller. It never raises,
    so a notification problem can never undo a committed state change.

Usage:
    from notification.service import NotificationDispatcher, NotificationIntent

    failures = dispatcher.dispatch([
        NotificationIntent('APPLICATION_ACCEPTED', worker_id, {'job_title': title}),
    ])
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from tenacity import Retrying, stop_after_attempt, wait_fixed, before_sleep_log, RetryError

from notification.channels import NotificationChannel
from notification.templates import render_template

logger = logging.getLogger(__name__)


class NotificationDeliveryError(Exception):
    """Raised by the sink when one or more channels failed to deliver."""

    def __init__(self, message: str, failed_channels: Optional[List[str]] = None):
        super().__init__(message)
        self.failed_channels = list(failed_channels or [])


@dataclass
class NotificationIntent:
    """A notification to send once the transaction that produced it has committed."""
    template_key: str
    target_user_id: Any
    variables: Dict[str, Any] = field(default_factory=dict)
    context: Dict[str, Any] = field(default_factory=dict)
    max_attempts: Optional[int] = None


@dataclass
class SoftFailure:
    """A best-effort side effect that did not happen. Informational only."""
    kind: str
    template_key: Optional[str]
    target_user_id: Optional[str]
    error: str
    channels: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind,
            'template_key': self.template_key,
            'target_user_id': self.target_user_id,
            'error': self.error,
            'channels': list(self.channels),
        }


def _json_safe(value: Any) -> Any:
    if isinstance(value, (uuid.UUID, date, datetime)):
        return str(value)
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_safe(v) for v in value]
    return value


class NotificationService:
    """
    Renders templates and fans out to the configured channels.

    Channels:
    - in_app: always used when configured (database row)
    - email: only when context['send_email'] is set and the user has an address
    - webhook: always used when configured
    """

    def __init__(
        self,
        channels: Dict[str, NotificationChannel],
        email_lookup: Optional[Callable[[Any], Optional[str]]] = None,
        base_url: str = "http://localhost:8080",
        enabled: bool = True,
    ):
        """
        Args:
            channels: Channel instances keyed by channel type
            email_lookup: Resolves a user id to an email address
            base_url: Base URL prefixed to template action links
            enabled: When False, notify() is a no-op
        """
        self.channels = channels
        self.email_lookup = email_lookup
        self.base_url = base_url.rstrip('/')
        self.enabled = enabled

    def notify(
        self,
        template_key: str,
        target_user_id: Any,
        variables: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None,
        only_channels: Optional[Iterable[str]] = None,
    ) -> List[str]:
        """
        Render and send one notification.

        Args:
            only_channels: Restrict delivery to these channel types (used on retry)

        Returns:
            The channel types that delivered.

        Raises:
            KeyError: Unknown template key.
            NotificationDeliveryError: One or more channels failed.
        """
        if not self.enabled:
            logger.debug(f"Notifications disabled; dropping {template_key} for {target_user_id}")
            return []

        context = context or {}
        rendered = render_template(template_key, variables)
        recipient_id = str(target_user_id)

        metadata = _json_safe({
            **(context.get('metadata') or {}),
            'template_key': rendered.template_key,
            'type': rendered.type,
            'priority': rendered.priority,
            'action_url': f"{self.base_url}{rendered.action_url}" if rendered.action_url else None,
            'action_label': rendered.action_label,
            'job_post_id': context.get('job_post_id'),
            'job_application_id': context.get('job_application_id'),
            'related_user_id': context.get('related_user_id'),
        })

        selected = set(only_channels) if only_channels is not None else None
        delivered, failed = [], []

        for channel_type, channel in self.channels.items():
            if selected is not None and channel_type not in selected:
                continue

            recipient = recipient_id
            if channel_type == 'email':
                if not context.get('send_email'):
                    continue
                recipient = self.email_lookup(target_user_id) if self.email_lookup else None
                if not recipient:
                    logger.debug(f"No email address for user {recipient_id}; skipping email")
                    continue

            if channel.send(recipient, rendered.title, rendered.body, metadata):
                delivered.append(channel_type)
            else:
                failed.append(channel_type)

        if failed:
            raise NotificationDeliveryError(
                f"{template_key} for user {recipient_id} failed on: {', '.join(failed)}",
                failed_channels=failed,
            )

        logger.info(f"Sent {template_key} to user {recipient_id} via {', '.join(delivered) or 'no channel'}")
        return delivered


class NotificationDispatcher:
    """Post-commit, best-effort delivery of notification intents."""

    def __init__(self, sink: NotificationService, max_attempts: int = 3, wait_seconds: float = 1.0):
        self.sink = sink
        self.max_attempts = max_attempts
        self.wait_seconds = wait_seconds

    def dispatch(self, intents: Iterable[NotificationIntent]) -> List[SoftFailure]:
        failures = []
        for intent in intents:
            failure = self._dispatch_one(intent)
            if failure is not None:
                failures.append(failure)
        return failures

    def _dispatch_one(self, intent: NotificationIntent) -> Optional[SoftFailure]:
        target = str(intent.target_user_id) if intent.target_user_id is not None else None
        if target is None:
            logger.warning(f"No recipient for {intent.template_key}; notification skipped")
            return SoftFailure(
                kind='notification',
                template_key=intent.template_key,
                target_user_id=None,
                error='No recipient configured',
            )

        pending_channels: Optional[List[str]] = None
        retrying = Retrying(
            stop=stop_after_attempt(intent.max_attempts or self.max_attempts),
            wait=wait_fixed(self.wait_seconds),
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )

        try:
            for attempt in retrying:
                with attempt:
                    try:
                        self.sink.notify(
                            intent.template_key,
                            intent.target_user_id,
                            intent.variables,
                            intent.context,
                            only_channels=pending_channels,
                        )
                    except NotificationDeliveryError as e:
                        pending_channels = e.failed_channels
                        raise
            return None
        except RetryError as e:
            error = e.last_attempt.exception()
        except Exception as e:
            # Unknown template and other non-delivery errors
            error = e

        logger.error(f"Notification {intent.template_key} for user {target} failed: {error}")
        return SoftFailure(
            kind='notification',
            template_key=intent.template_key,
            target_user_id=target,
            error=str(error),
            channels=list(getattr(error, 'failed_channels', []) or []),
        )
