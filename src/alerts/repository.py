"""Alert history and alert settings repositories.

History writes for one user are serialized twice: an in-process
``asyncio.Lock`` per user, and a transaction-scoped advisory lock so that
several processes sharing the database cannot interleave insert and prune.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from src.alerts.config import AlertConfig
from src.alerts.schemas import Alert, AlertSettings
from src.storage.database import Database, lock_user

logger = logging.getLogger(__name__)

_INSERT_HISTORY_SQL = """
    INSERT INTO alert_history (
        user_id, alert_id, alert_type, severity,
        message, city, country, read, created_at
    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
    ON CONFLICT (user_id, alert_id, created_at) DO NOTHING
"""

# Keeps the newest ``$2`` rows for the user, deleting the rest.
_PRUNE_HISTORY_SQL = """
    DELETE FROM alert_history
    WHERE user_id = $1
      AND (alert_id, created_at) IN (
          SELECT alert_id, created_at FROM alert_history
          WHERE user_id = $1
          ORDER BY created_at DESC, alert_id
          OFFSET $2
      )
"""

_UPSERT_SETTINGS_SQL = """
    INSERT INTO alert_settings (user_id, settings, updated_at)
    VALUES ($1, $2::jsonb, NOW())
    ON CONFLICT (user_id) DO UPDATE SET
        settings = EXCLUDED.settings,
        updated_at = NOW()
"""


def _affected_rows(status: str) -> int:
    """Parse the row count from an asyncpg command tag ("INSERT 0 1", "DELETE 3")."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


class AlertHistoryRepository:
    """Per-user alert history, capped at ``history_max_entries`` rows.

    Saving the same alert twice (same ``alert_id`` and ``created_at``) is a
    no-op. After every batch save the user's history is pruned oldest-first
    down to the cap.
    """

    def __init__(
        self,
        database: Database,
        config: AlertConfig | None = None,
    ) -> None:
        self._db = database
        self._config = config or AlertConfig()
        # user_id -> (lock, holders and waiters); dropped when the count reaches 0
        self._user_locks: dict[str, tuple[asyncio.Lock, int]] = {}

    @asynccontextmanager
    async def _user_lock(self, user_id: str) -> AsyncIterator[None]:
        lock, users = self._user_locks.get(user_id, (asyncio.Lock(), 0))
        self._user_locks[user_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._user_locks[user_id]
            if users == 1:
                del self._user_locks[user_id]
            else:
                self._user_locks[user_id] = (lock, users - 1)

    async def save_batch(self, user_id: str, alerts: list[Alert]) -> int:
        """Append alerts to a user's history and enforce the cap.

        Args:
            user_id: Owner of the history.
            alerts: Alerts to persist (an empty list is a no-op).

        Returns:
            Number of newly inserted rows (duplicates are not counted).
        """
        if not alerts:
            return 0

        inserted = 0
        async with self._user_lock(user_id):
            async with self._db.transaction() as conn:
                await lock_user(conn, user_id)
                for alert in alerts:
                    status = await conn.execute(
                        _INSERT_HISTORY_SQL,
                        user_id,
                        alert.alert_id,
                        alert.alert_type,
                        alert.severity,
                        alert.message,
                        alert.city,
                        alert.country,
                        alert.read,
                        alert.created_at,
                    )
                    inserted += _affected_rows(status)

                status = await conn.execute(
                    _PRUNE_HISTORY_SQL, user_id, self._config.history_max_entries,
                )
                pruned = _affected_rows(status)

        if pruned:
            logger.debug("Pruned %d history rows for %s", pruned, user_id)
        return inserted

    async def get_history(
        self,
        user_id: str,
        limit: int | None = None,
    ) -> list[Alert]:
        """Return a user's alerts, newest first.

        Args:
            user_id: Owner of the history.
            limit: Maximum alerts to return (all when None).
        """
        sql = """
            SELECT * FROM alert_history
            WHERE user_id = $1
            ORDER BY created_at DESC, alert_id
        """
        params: list[Any] = [user_id]
        if limit is not None:
            sql += " LIMIT $2"
            params.append(limit)

        rows = await self._db.fetch(sql, *params)
        return [_row_to_alert(row) for row in rows]

    async def mark_read(self, user_id: str, alert_id: str) -> bool:
        """Mark an alert as read.

        Returns:
            True if an unread alert was updated.
        """
        sql = """
            UPDATE alert_history SET read = TRUE
            WHERE user_id = $1 AND alert_id = $2 AND read = FALSE
            RETURNING alert_id
        """
        result = await self._db.fetchval(sql, user_id, alert_id)
        return result is not None

    async def clear(self, user_id: str) -> int:
        """Delete a user's whole history. Returns the number of rows removed."""
        async with self._user_lock(user_id):
            status = await self._db.execute(
                "DELETE FROM alert_history WHERE user_id = $1", user_id,
            )
        count = _affected_rows(status)
        logger.info("Cleared %d history rows for %s", count, user_id)
        return count

    async def count(self, user_id: str) -> int:
        count = await self._db.fetchval(
            "SELECT COUNT(*) FROM alert_history WHERE user_id = $1", user_id,
        )
        return count or 0


class AlertSettingsRepository:
    """Stores one ``AlertSettings`` document per user as JSONB."""

    def __init__(
        self,
        database: Database,
        config: AlertConfig | None = None,
    ) -> None:
        self._db = database
        self._config = config or AlertConfig()

    async def get(self, user_id: str) -> AlertSettings:
        """Load a user's settings, falling back to defaults if none are saved."""
        row = await self._db.fetchrow(
            "SELECT settings FROM alert_settings WHERE user_id = $1", user_id,
        )
        if row is None:
            return AlertSettings.defaults(user_id, self._config)

        data = row["settings"]
        if isinstance(data, str):
            data = json.loads(data)
        data = dict(data)
        data["user_id"] = user_id
        return AlertSettings.from_dict(data)

    async def save(self, settings: AlertSettings) -> None:
        await self._db.execute(
            _UPSERT_SETTINGS_SQL, settings.user_id, settings.to_json(),
        )
        logger.info("Saved alert settings for %s", settings.user_id)


def _row_to_alert(row: Any) -> Alert:
    """Convert an asyncpg Record to an Alert."""
    return Alert(
        alert_id=row["alert_id"],
        alert_type=row["alert_type"],
        severity=row["severity"],
        message=row["message"],
        city=row["city"],
        country=row.get("country", "") or "",
        created_at=row["created_at"],
        read=row.get("read", False),
    )
