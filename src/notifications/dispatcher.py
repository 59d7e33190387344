"""Notification dispatcher fanning alerts out to push and email.

Push (local display plus server-mediated push) is fire-and-forget: a
failure is logged and counted, never retried. Email goes through the
durable delivery queue, which owns all retry logic. An alert counts as
"notified" once its email is enqueued, not once it is sent.

Pattern: Orchestrator, delegates to stateless transports.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from src.alerts.schemas import Alert, AlertSettings
from src.notifications.identity import IdentityResolver
from src.notifications.templates import render_push_title
from src.notifications.tracker import SentAlertTracker
from src.notifications.transports import PushTransport
from src.observability.metrics import get_metrics

if TYPE_CHECKING:
    from src.delivery.queue import DeliveryQueue

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    """What a dispatch call did.

    Attributes:
        push_sent: Successful push sends (local and server, per alert).
        push_failed: Failed push sends.
        email_record_id: Delivery record created, if an email was enqueued.
    """

    push_sent: int = 0
    push_failed: int = 0
    email_record_id: int | None = None

    @property
    def email_enqueued(self) -> bool:
        return self.email_record_id is not None

    def merge(self, other: "DispatchResult") -> None:
        self.push_sent += other.push_sent
        self.push_failed += other.push_failed
        if other.email_record_id is not None:
            self.email_record_id = other.email_record_id


def select_email_alert(alerts: list[Alert]) -> Alert | None:
    """The most recent alert by ``created_at``; ties go to the earliest in the list."""
    selected: Alert | None = None
    for alert in alerts:
        if selected is None or alert.created_at > selected.created_at:
            selected = alert
    return selected


class NotificationDispatcher:
    """Sends alerts through the channels a user has enabled.

    The ``SentAlertTracker`` is passed in rather than held globally so
    one tracker can be shared by every dispatcher in a process while tests
    get a fresh one.
    """

    def __init__(
        self,
        delivery_queue: "DeliveryQueue | None" = None,
        identity: IdentityResolver | None = None,
        tracker: SentAlertTracker | None = None,
        local_transport: PushTransport | None = None,
        push_transport: PushTransport | None = None,
    ) -> None:
        self._queue = delivery_queue
        self._identity = identity
        self._tracker = tracker if tracker is not None else SentAlertTracker()
        self._push_transports = [
            t for t in (local_transport, push_transport) if t is not None
        ]
        self._metrics = get_metrics()

    @property
    def tracker(self) -> SentAlertTracker:
        return self._tracker

    async def dispatch(
        self,
        alert: Alert,
        settings: AlertSettings,
        user_id: str,
        send_email: bool = True,
    ) -> DispatchResult:
        """Deliver one alert through every enabled channel.

        Args:
            alert: Alert to deliver.
            settings: The user's channel toggles.
            user_id: Recipient user.
            send_email: Whether this alert may use the email channel.

        Returns:
            DispatchResult for this alert.
        """
        result = DispatchResult()

        if settings.enable_push_notifications:
            await self._send_push(alert, user_id, result)

        if send_email and settings.enable_email_notifications:
            result.email_record_id = await self._enqueue_email(alert, user_id)

        return result

    async def dispatch_batch(
        self,
        alerts: list[Alert],
        settings: AlertSettings,
        user_id: str,
    ) -> DispatchResult:
        """Push every alert; email only the most recent one.

        Each alert is dispatched independently: a failure for one alert
        does not affect the others.
        """
        total = DispatchResult()
        email_alert = select_email_alert(alerts)

        for alert in alerts:
            try:
                result = await self.dispatch(
                    alert, settings, user_id, send_email=alert is email_alert,
                )
            except Exception as e:
                logger.error(
                    "Unexpected error dispatching alert %s: %s",
                    alert.alert_id, e,
                )
                continue
            total.merge(result)

        return total

    async def _send_push(
        self, alert: Alert, user_id: str, result: DispatchResult,
    ) -> None:
        title = render_push_title(alert.alert_type, alert.city)
        data: dict[str, Any] = {
            "type": "weather-alert",
            "alertType": alert.alert_type,
            "alertId": alert.alert_id,
            "city": alert.city,
            "message": alert.message,
            "url": "/",
        }

        for transport in self._push_transports:
            try:
                ok = await transport.send_push(user_id, title, alert.message, data)
            except Exception as e:
                logger.warning(
                    "Push via %s raised for alert %s: %s",
                    transport.name, alert.alert_id, e,
                )
                ok = False

            self._metrics.record_notification(transport.name, ok)
            if ok:
                result.push_sent += 1
            else:
                result.push_failed += 1
                logger.info(
                    "Push via %s failed for alert %s (not retried)",
                    transport.name, alert.alert_id,
                )

    async def _enqueue_email(self, alert: Alert, user_id: str) -> int | None:
        if self._queue is None or self._identity is None:
            return None

        try:
            recipient = await self._identity.get_user_email(user_id)
        except Exception as e:
            logger.warning("Could not resolve email for %s: %s", user_id, e)
            return None
        if not recipient:
            logger.debug("No email address for %s, skipping email", user_id)
            return None

        if not self._tracker.claim(alert.alert_id):
            logger.debug("Alert %s already emailed", alert.alert_id)
            return None

        try:
            record = await self._queue.enqueue(
                user_id=user_id,
                recipient=recipient,
                city=alert.city,
                country=alert.country,
                message=alert.message,
                alert_type=alert.alert_type,
                alert_id=alert.alert_id,
                severity=alert.severity,
            )
        except Exception as e:
            self._tracker.release(alert.alert_id)
            self._metrics.record_notification("email", False)
            logger.error(
                "Failed to enqueue email for alert %s: %s", alert.alert_id, e,
            )
            return None

        self._metrics.record_notification("email", True)
        self._queue.request_processing()
        return record.record_id
