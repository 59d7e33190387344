"""Delivery queue persistence.

Every state change is a compare-and-set on ``status`` so that concurrent
queue passes (in one process or several) never attempt the same record
twice: the ``pending -> sending`` claim succeeds for exactly one caller.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from src.delivery.schemas import DeliveryRecord
from src.storage.database import Database

logger = logging.getLogger(__name__)

_INSERT_SQL = """
    INSERT INTO delivery_queue (
        user_id, recipient, city, country, message, alert_type, alert_id, severity
    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
    RETURNING *
"""

_CLAIM_SQL = """
    UPDATE delivery_queue
    SET status = 'sending',
        retry_count = retry_count + 1,
        last_attempt_at = NOW()
    WHERE record_id = $1 AND status = 'pending'
    RETURNING *
"""

_COMPLETE_SQL = """
    DELETE FROM delivery_queue
    WHERE record_id = $1 AND status = 'sending'
    RETURNING record_id
"""

_RELEASE_SQL = """
    UPDATE delivery_queue
    SET status = CASE WHEN retry_count >= $3 THEN 'failed' ELSE 'pending' END,
        last_error = $2
    WHERE record_id = $1 AND status = 'sending'
    RETURNING status
"""

_FAIL_SQL = """
    UPDATE delivery_queue
    SET status = 'failed', last_error = $2
    WHERE record_id = $1 AND status IN ('pending', 'sending')
    RETURNING status
"""

_RECOVER_STALE_SQL = """
    UPDATE delivery_queue
    SET status = CASE WHEN retry_count >= $2 THEN 'failed' ELSE 'pending' END,
        last_error = COALESCE(last_error, 'Abandoned while sending')
    WHERE status = 'sending' AND last_attempt_at < $1
    RETURNING record_id
"""

_REARM_SQL = """
    UPDATE delivery_queue
    SET status = 'pending', retry_count = 0, last_error = NULL
    WHERE record_id = $1 AND status = 'failed'
    RETURNING record_id
"""


class DeliveryRepository:
    """Status compare-and-set operations over the ``delivery_queue`` table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def insert(self, record: DeliveryRecord) -> DeliveryRecord:
        """Insert a record in ``pending`` with ``retry_count=0``."""
        row = await self._db.fetchrow(
            _INSERT_SQL,
            record.user_id,
            record.recipient,
            record.city,
            record.country,
            record.message,
            record.alert_type,
            record.alert_id,
            record.severity,
        )
        return _row_to_record(row)

    async def claim(self, record_id: int) -> DeliveryRecord | None:
        """Move ``pending -> sending`` and count the attempt.

        Returns:
            The claimed record, or None if it was not pending (another
            processor owns it, or it already finished).
        """
        row = await self._db.fetchrow(_CLAIM_SQL, record_id)
        if row is None:
            return None
        return _row_to_record(row)

    async def complete(self, record_id: int) -> bool:
        """Delete a record after a successful send."""
        result = await self._db.fetchval(_COMPLETE_SQL, record_id)
        return result is not None

    async def release(
        self, record_id: int, error: str, max_retries: int,
    ) -> str | None:
        """Return a failed attempt to ``pending``, or ``failed`` once exhausted.

        Returns:
            The new status, or None if the record was not ``sending``.
        """
        return await self._db.fetchval(_RELEASE_SQL, record_id, error, max_retries)

    async def fail(self, record_id: int, error: str) -> str | None:
        """Mark a record permanently failed."""
        return await self._db.fetchval(_FAIL_SQL, record_id, error)

    async def list_pending(
        self,
        user_id: str | None = None,
        limit: int = 50,
    ) -> list[DeliveryRecord]:
        """Pending records, oldest first."""
        if user_id is None:
            rows = await self._db.fetch(
                """
                SELECT * FROM delivery_queue
                WHERE status = 'pending'
                ORDER BY created_at, record_id
                LIMIT $1
                """,
                limit,
            )
        else:
            rows = await self._db.fetch(
                """
                SELECT * FROM delivery_queue
                WHERE status = 'pending' AND user_id = $1
                ORDER BY created_at, record_id
                LIMIT $2
                """,
                user_id,
                limit,
            )
        return [_row_to_record(row) for row in rows]

    async def count_by_status(
        self, status: str, user_id: str | None = None,
    ) -> int:
        if user_id is None:
            count = await self._db.fetchval(
                "SELECT COUNT(*) FROM delivery_queue WHERE status = $1", status,
            )
        else:
            count = await self._db.fetchval(
                """
                SELECT COUNT(*) FROM delivery_queue
                WHERE status = $1 AND user_id = $2
                """,
                status,
                user_id,
            )
        return count or 0

    async def list_failed(self, user_id: str | None = None) -> list[DeliveryRecord]:
        """Failed records, newest attempt first."""
        if user_id is None:
            rows = await self._db.fetch(
                """
                SELECT * FROM delivery_queue
                WHERE status = 'failed'
                ORDER BY last_attempt_at DESC NULLS LAST, record_id DESC
                """,
            )
        else:
            rows = await self._db.fetch(
                """
                SELECT * FROM delivery_queue
                WHERE status = 'failed' AND user_id = $1
                ORDER BY last_attempt_at DESC NULLS LAST, record_id DESC
                """,
                user_id,
            )
        return [_row_to_record(row) for row in rows]

    async def recover_stale(
        self, older_than_seconds: float, max_retries: int,
    ) -> int:
        """Release records stuck in ``sending`` (e.g. after a crash).

        Returns:
            Number of records released.
        """
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=older_than_seconds)
        rows = await self._db.fetch(_RECOVER_STALE_SQL, cutoff, max_retries)
        if rows:
            logger.warning("Recovered %d stale sending records", len(rows))
        return len(rows)

    async def rearm(self, record_id: int) -> bool:
        """Put a failed record back in ``pending`` with a fresh retry budget."""
        result = await self._db.fetchval(_REARM_SQL, record_id)
        return result is not None


def _row_to_record(row: Any) -> DeliveryRecord:
    """Convert an asyncpg Record to a DeliveryRecord."""
    return DeliveryRecord(
        record_id=row["record_id"],
        user_id=row["user_id"],
        recipient=row["recipient"],
        city=row["city"],
        country=row.get("country", "") or "",
        message=row.get("message", "") or "",
        alert_type=row["alert_type"],
        alert_id=row.get("alert_id"),
        severity=row.get("severity"),
        status=row["status"],
        retry_count=row.get("retry_count", 0),
        last_error=row.get("last_error"),
        last_attempt_at=row.get("last_attempt_at"),
        created_at=row["created_at"],
    )
