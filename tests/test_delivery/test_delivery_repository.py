"""Tests for DeliveryRepository SQL wiring with a mocked Database."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from src.delivery.repository import DeliveryRepository, _row_to_record
from src.delivery.schemas import DeliveryRecord


@pytest.fixture
def mock_db():
    return AsyncMock()


@pytest.fixture
def repo(mock_db):
    return DeliveryRepository(mock_db)


def _make_db_row(**overrides):
    """Create a mock asyncpg Record as a dict."""
    row = {
        "record_id": 7,
        "user_id": "u1",
        "recipient": "alice@example.com",
        "city": "Paris",
        "country": "FR",
        "message": "Heavy rain warning",
        "alert_type": "HeavyRain",
        "alert_id": "alert-1",
        "severity": "Medium",
        "status": "pending",
        "retry_count": 0,
        "last_error": None,
        "last_attempt_at": None,
        "created_at": datetime(2026, 7, 1, 12, 0, tzinfo=timezone.utc),
    }
    row.update(overrides)
    return row


class TestRowToRecord:

    def test_basic_conversion(self):
        record = _row_to_record(_make_db_row(country=None, message=None))
        assert record.record_id == 7
        assert record.country == ""
        assert record.message == ""
        assert record.status == "pending"
        assert record.severity == "Medium"


class TestInsertAndClaim:
    """Insert and the pending -> sending compare-and-set."""

    @pytest.mark.asyncio
    async def test_insert(self, repo, mock_db):
        mock_db.fetchrow.return_value = _make_db_row()
        record = await repo.insert(DeliveryRecord(
            user_id="u1",
            recipient="alice@example.com",
            city="Paris",
            country="FR",
            message="Heavy rain warning",
            alert_type="HeavyRain",
            alert_id="alert-1",
            severity="Medium",
        ))
        assert record.record_id == 7
        args = mock_db.fetchrow.call_args.args
        assert "INSERT INTO delivery_queue" in args[0]
        assert args[1:] == (
            "u1", "alice@example.com", "Paris", "FR",
            "Heavy rain warning", "HeavyRain", "alert-1", "Medium",
        )

    @pytest.mark.asyncio
    async def test_claim_success(self, repo, mock_db):
        mock_db.fetchrow.return_value = _make_db_row(status="sending", retry_count=1)
        record = await repo.claim(7)
        assert record.status == "sending"
        assert record.retry_count == 1
        sql = mock_db.fetchrow.call_args.args[0]
        assert "status = 'pending'" in sql
        assert "retry_count = retry_count + 1" in sql

    @pytest.mark.asyncio
    async def test_claim_lost(self, repo, mock_db):
        mock_db.fetchrow.return_value = None
        assert await repo.claim(7) is None


class TestTransitions:
    """complete / release / fail / rearm."""

    @pytest.mark.asyncio
    async def test_complete_deletes(self, repo, mock_db):
        mock_db.fetchval.return_value = 7
        assert await repo.complete(7) is True
        assert "DELETE FROM delivery_queue" in mock_db.fetchval.call_args.args[0]

    @pytest.mark.asyncio
    async def test_complete_not_sending(self, repo, mock_db):
        mock_db.fetchval.return_value = None
        assert await repo.complete(7) is False

    @pytest.mark.asyncio
    async def test_release_passes_budget(self, repo, mock_db):
        mock_db.fetchval.return_value = "failed"
        assert await repo.release(7, "timeout", 5) == "failed"
        assert mock_db.fetchval.call_args.args[1:] == (7, "timeout", 5)

    @pytest.mark.asyncio
    async def test_fail(self, repo, mock_db):
        mock_db.fetchval.return_value = "failed"
        assert await repo.fail(7, "bad address") == "failed"

    @pytest.mark.asyncio
    async def test_rearm(self, repo, mock_db):
        mock_db.fetchval.return_value = 7
        assert await repo.rearm(7) is True
        assert "retry_count = 0" in mock_db.fetchval.call_args.args[0]


class TestQueries:

    @pytest.mark.asyncio
    async def test_list_pending_all_users(self, repo, mock_db):
        mock_db.fetch.return_value = [_make_db_row()]
        records = await repo.list_pending(limit=10)
        assert len(records) == 1
        assert mock_db.fetch.call_args.args[1:] == (10,)

    @pytest.mark.asyncio
    async def test_list_pending_one_user(self, repo, mock_db):
        mock_db.fetch.return_value = []
        await repo.list_pending(user_id="u1", limit=10)
        assert "user_id = $1" in mock_db.fetch.call_args.args[0]
        assert mock_db.fetch.call_args.args[1:] == ("u1", 10)

    @pytest.mark.asyncio
    async def test_count_by_status(self, repo, mock_db):
        mock_db.fetchval.return_value = None
        assert await repo.count_by_status("pending") == 0
        mock_db.fetchval.return_value = 3
        assert await repo.count_by_status("pending", user_id="u1") == 3
        assert mock_db.fetchval.call_args.args[1:] == ("pending", "u1")

    @pytest.mark.asyncio
    async def test_list_failed(self, repo, mock_db):
        mock_db.fetch.return_value = [_make_db_row(status="failed", retry_count=5)]
        records = await repo.list_failed("u1")
        assert records[0].status == "failed"

    @pytest.mark.asyncio
    async def test_recover_stale(self, repo, mock_db):
        mock_db.fetch.return_value = [{"record_id": 1}, {"record_id": 2}]
        assert await repo.recover_stale(300, 5) == 2
        cutoff, max_retries = mock_db.fetch.call_args.args[1:]
        assert cutoff < datetime.now(timezone.utc)
        assert max_retries == 5
