"""Fixtures for delivery queue tests: in-memory repository and email transport."""

import asyncio
import dataclasses
from datetime import datetime, timezone

import pytest

from src.delivery.config import DeliveryConfig
from src.delivery.connectivity import ConnectivityMonitor
from src.delivery.queue import DeliveryQueue
from src.delivery.schemas import DeliveryRecord


class FakeDeliveryRepository:
    """In-memory stand-in with the same compare-and-set semantics as the SQL."""

    def __init__(self) -> None:
        self.records: dict[int, DeliveryRecord] = {}
        self.insert_error: Exception | None = None
        self._next_id = 1

    async def insert(self, record: DeliveryRecord) -> DeliveryRecord:
        if self.insert_error is not None:
            raise self.insert_error
        stored = dataclasses.replace(
            record, record_id=self._next_id, status="pending", retry_count=0,
        )
        self.records[stored.record_id] = stored
        self._next_id += 1
        return dataclasses.replace(stored)

    async def claim(self, record_id: int) -> DeliveryRecord | None:
        record = self.records.get(record_id)
        if record is None or record.status != "pending":
            return None
        record.status = "sending"
        record.retry_count += 1
        record.last_attempt_at = datetime.now(timezone.utc)
        return dataclasses.replace(record)

    async def complete(self, record_id: int) -> bool:
        record = self.records.get(record_id)
        if record is None or record.status != "sending":
            return False
        del self.records[record_id]
        return True

    async def release(self, record_id: int, error: str, max_retries: int) -> str | None:
        record = self.records.get(record_id)
        if record is None or record.status != "sending":
            return None
        record.status = "failed" if record.retry_count >= max_retries else "pending"
        record.last_error = error
        return record.status

    async def fail(self, record_id: int, error: str) -> str | None:
        record = self.records.get(record_id)
        if record is None or record.status not in ("pending", "sending"):
            return None
        record.status = "failed"
        record.last_error = error
        return record.status

    async def list_pending(self, user_id=None, limit: int = 50) -> list[DeliveryRecord]:
        pending = [
            dataclasses.replace(r) for r in sorted(self.records.values(), key=lambda r: r.record_id)
            if r.status == "pending" and (user_id is None or r.user_id == user_id)
        ]
        return pending[:limit]

    async def count_by_status(self, status: str, user_id=None) -> int:
        return sum(
            1 for r in self.records.values()
            if r.status == status and (user_id is None or r.user_id == user_id)
        )

    async def list_failed(self, user_id=None) -> list[DeliveryRecord]:
        return [
            dataclasses.replace(r) for r in self.records.values()
            if r.status == "failed" and (user_id is None or r.user_id == user_id)
        ]

    async def recover_stale(self, older_than_seconds: float, max_retries: int) -> int:
        recovered = 0
        for record in self.records.values():
            if record.status == "sending":
                record.status = "failed" if record.retry_count >= max_retries else "pending"
                recovered += 1
        return recovered

    async def rearm(self, record_id: int) -> bool:
        record = self.records.get(record_id)
        if record is None or record.status != "failed":
            return False
        record.status = "pending"
        record.retry_count = 0
        record.last_error = None
        return True


class FakeEmailTransport:
    """Records sends; raises queued errors first, then ``error`` on every call if set.

    ``delay`` makes each send take that many seconds.
    """

    def __init__(self) -> None:
        self.delay = 0.0
        self.sent: list[dict] = []
        self.errors: list[BaseException] = []
        self.error: BaseException | None = None
        self.calls = 0

    async def send_email(self, to, subject, html_body, text_body=None) -> None:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.errors:
            raise self.errors.pop(0)
        if self.error is not None:
            raise self.error
        self.sent.append({
            "to": to,
            "subject": subject,
            "html_body": html_body,
            "text_body": text_body,
        })


@pytest.fixture
def delivery_repo():
    return FakeDeliveryRepository()


@pytest.fixture
def email_transport():
    return FakeEmailTransport()


@pytest.fixture
def delivery_config():
    # Long backoff so follow-up passes never fire during a test
    return DeliveryConfig(max_retries=5, backoff_base_delay=60.0, process_interval_seconds=3600.0)


@pytest.fixture
def connectivity():
    return ConnectivityMonitor(initially_online=True)


@pytest.fixture
def queue(delivery_repo, email_transport, connectivity, delivery_config):
    return DeliveryQueue(
        delivery_repo,
        email_transport,
        connectivity=connectivity,
        config=delivery_config,
    )
