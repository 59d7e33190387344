"""Tests for NotificationDispatcher with mocked transports and queue."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.alerts.schemas import Alert, AlertSettings
from src.delivery.schemas import DeliveryRecord
from src.notifications.dispatcher import (
    DispatchResult,
    NotificationDispatcher,
    select_email_alert,
)
from src.notifications.identity import StaticIdentityResolver
from src.notifications.tracker import SentAlertTracker

BASE = datetime(2026, 7, 1, 12, 0, tzinfo=timezone.utc)


def _alert(alert_id="a1", minutes=0, alert_type="Thunderstorm") -> Alert:
    return Alert(
        alert_type=alert_type,
        severity="High",
        message=f"{alert_type} in Paris",
        city="Paris",
        country="FR",
        alert_id=alert_id,
        created_at=BASE + timedelta(minutes=minutes),
    )


def _transport(name: str, ok: bool = True) -> MagicMock:
    transport = MagicMock()
    transport.name = name
    transport.send_push = AsyncMock(return_value=ok)
    return transport


@pytest.fixture
def delivery_queue():
    queue = MagicMock()
    counter = iter(range(100, 200))

    async def enqueue(**kwargs):
        return DeliveryRecord(record_id=next(counter), **kwargs)

    queue.enqueue = AsyncMock(side_effect=enqueue)
    return queue


@pytest.fixture
def identity():
    return StaticIdentityResolver({"user-1": "alice@example.com"})


@pytest.fixture
def local():
    return _transport("local")


@pytest.fixture
def push():
    return _transport("push")


@pytest.fixture
def dispatcher(delivery_queue, identity, local, push):
    return NotificationDispatcher(
        delivery_queue=delivery_queue,
        identity=identity,
        tracker=SentAlertTracker(),
        local_transport=local,
        push_transport=push,
    )


# ── Email selection ─────────────────────────────────────


class TestSelectEmailAlert:

    def test_empty(self):
        assert select_email_alert([]) is None

    def test_latest_wins(self):
        alerts = [_alert("a", 0), _alert("b", 5), _alert("c", 2)]
        assert select_email_alert(alerts).alert_id == "b"

    def test_tie_goes_to_first(self):
        alerts = [_alert("a", 0), _alert("b", 0)]
        assert select_email_alert(alerts).alert_id == "a"


class TestDispatchResult:

    def test_merge(self):
        total = DispatchResult(push_sent=1)
        total.merge(DispatchResult(push_sent=2, push_failed=1, email_record_id=9))
        assert total.push_sent == 3
        assert total.push_failed == 1
        assert total.email_enqueued is True


# ── Single dispatch ─────────────────────────────────────


class TestDispatch:
    """Channel selection for one alert."""

    @pytest.mark.asyncio
    async def test_nothing_enabled(self, dispatcher, default_settings, local, delivery_queue):
        result = await dispatcher.dispatch(_alert(), default_settings, "user-1")
        assert result == DispatchResult()
        local.send_push.assert_not_awaited()
        delivery_queue.enqueue.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_push_goes_to_both_transports(self, dispatcher, local, push):
        settings = AlertSettings(user_id="user-1", enable_push_notifications=True)
        result = await dispatcher.dispatch(_alert(), settings, "user-1")

        assert result.push_sent == 2
        target, title, body, data = local.send_push.call_args.args
        assert target == "user-1"
        assert title == "Thunderstorm Alert - Paris"
        assert body == "Thunderstorm in Paris"
        assert data["type"] == "weather-alert"
        assert data["alertType"] == "Thunderstorm"
        assert data["url"] == "/"
        push.send_push.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_push_failure_is_counted_not_raised(self, delivery_queue, identity):
        broken = _transport("push")
        broken.send_push.side_effect = RuntimeError("network")
        dispatcher = NotificationDispatcher(
            delivery_queue=delivery_queue,
            identity=identity,
            local_transport=_transport("local", ok=False),
            push_transport=broken,
        )
        settings = AlertSettings(user_id="user-1", enable_push_notifications=True)

        result = await dispatcher.dispatch(_alert(), settings, "user-1")

        assert result.push_sent == 0
        assert result.push_failed == 2

    @pytest.mark.asyncio
    async def test_email_enqueued_and_processing_requested(
        self, dispatcher, notify_settings, delivery_queue,
    ):
        result = await dispatcher.dispatch(_alert(), notify_settings, "user-1")

        assert result.email_record_id == 100
        kwargs = delivery_queue.enqueue.call_args.kwargs
        assert kwargs["recipient"] == "alice@example.com"
        assert kwargs["city"] == "Paris"
        assert kwargs["country"] == "FR"
        assert kwargs["alert_id"] == "a1"
        assert kwargs["severity"] == "High"
        delivery_queue.request_processing.assert_called_once()
        assert "a1" in dispatcher.tracker

    @pytest.mark.asyncio
    async def test_same_alert_emailed_once(self, dispatcher, notify_settings, delivery_queue):
        alert = _alert()
        await dispatcher.dispatch(alert, notify_settings, "user-1")
        second = await dispatcher.dispatch(alert, notify_settings, "user-1")

        assert second.email_record_id is None
        assert delivery_queue.enqueue.await_count == 1

    @pytest.mark.asyncio
    async def test_unknown_recipient_skips_email(self, dispatcher, notify_settings, delivery_queue):
        result = await dispatcher.dispatch(_alert(), notify_settings, "stranger")
        assert result.email_record_id is None
        delivery_queue.enqueue.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_enqueue_failure_releases_claim(
        self, dispatcher, notify_settings, delivery_queue,
    ):
        delivery_queue.enqueue.side_effect = RuntimeError("db down")

        result = await dispatcher.dispatch(_alert(), notify_settings, "user-1")

        assert result.email_record_id is None
        assert "a1" not in dispatcher.tracker
        delivery_queue.request_processing.assert_not_called()

    @pytest.mark.asyncio
    async def test_without_queue(self, identity, notify_settings):
        dispatcher = NotificationDispatcher(identity=identity)
        result = await dispatcher.dispatch(_alert(), notify_settings, "user-1")
        assert result.email_record_id is None


# ── Batch dispatch ──────────────────────────────────────


class TestDispatchBatch:
    """Push every alert, email only the most recent."""

    @pytest.mark.asyncio
    async def test_only_latest_alert_emailed(
        self, dispatcher, notify_settings, delivery_queue, local,
    ):
        alerts = [_alert("a", 0), _alert("b", 10, "HighWind"), _alert("c", 5)]

        result = await dispatcher.dispatch_batch(alerts, notify_settings, "user-1")

        assert result.push_sent == 6
        assert delivery_queue.enqueue.await_count == 1
        assert delivery_queue.enqueue.call_args.kwargs["alert_id"] == "b"
        assert result.email_record_id == 100
        assert local.send_push.await_count == 3

    @pytest.mark.asyncio
    async def test_empty_batch(self, dispatcher, notify_settings, delivery_queue):
        result = await dispatcher.dispatch_batch([], notify_settings, "user-1")
        assert result == DispatchResult()
        delivery_queue.enqueue.assert_not_awaited()
