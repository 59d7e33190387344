"""Table definitions for the alert pipeline.

All statements are idempotent (``IF NOT EXISTS``) so ``init_schema`` can run
on every startup.
"""

import logging

from src.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TRACKED_CITIES_SQL = """
CREATE TABLE IF NOT EXISTS tracked_cities (
    user_id          TEXT NOT NULL,
    city             TEXT NOT NULL,
    country          TEXT NOT NULL DEFAULT '',
    city_key         TEXT NOT NULL,
    is_favorite      BOOLEAN NOT NULL DEFAULT FALSE,
    check_count      INTEGER NOT NULL DEFAULT 0 CHECK (check_count >= 0),
    last_checked_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    last_event_id    TEXT,
    added_at         TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (user_id, city_key)
);

CREATE INDEX IF NOT EXISTS idx_tracked_cities_user_checked
    ON tracked_cities(user_id, last_checked_at DESC);
"""

_CREATE_ALERT_SETTINGS_SQL = """
CREATE TABLE IF NOT EXISTS alert_settings (
    user_id     TEXT PRIMARY KEY,
    settings    JSONB NOT NULL,
    updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

_CREATE_ALERT_HISTORY_SQL = """
CREATE TABLE IF NOT EXISTS alert_history (
    user_id     TEXT NOT NULL,
    alert_id    TEXT NOT NULL,
    alert_type  TEXT NOT NULL,
    severity    TEXT NOT NULL,
    message     TEXT NOT NULL,
    city        TEXT NOT NULL,
    country     TEXT NOT NULL DEFAULT '',
    read        BOOLEAN NOT NULL DEFAULT FALSE,
    created_at  TIMESTAMPTZ NOT NULL,
    PRIMARY KEY (user_id, alert_id, created_at)
);

CREATE INDEX IF NOT EXISTS idx_alert_history_user_created
    ON alert_history(user_id, created_at DESC);
"""

_CREATE_DELIVERY_QUEUE_SQL = """
CREATE TABLE IF NOT EXISTS delivery_queue (
    record_id        BIGSERIAL PRIMARY KEY,
    user_id          TEXT NOT NULL,
    recipient        TEXT NOT NULL,
    city             TEXT NOT NULL,
    country          TEXT NOT NULL DEFAULT '',
    message          TEXT NOT NULL DEFAULT '',
    alert_type       TEXT NOT NULL,
    alert_id         TEXT,
    severity         TEXT,
    status           TEXT NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'sending', 'sent', 'failed')),
    retry_count      INTEGER NOT NULL DEFAULT 0 CHECK (retry_count >= 0),
    last_error       TEXT,
    last_attempt_at  TIMESTAMPTZ,
    created_at       TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

-- Tables created before severity was recorded
ALTER TABLE delivery_queue ADD COLUMN IF NOT EXISTS severity TEXT;

CREATE INDEX IF NOT EXISTS idx_delivery_queue_status_created
    ON delivery_queue(status, created_at);
CREATE INDEX IF NOT EXISTS idx_delivery_queue_user_status
    ON delivery_queue(user_id, status);
"""

ALL_TABLES_SQL = (
    _CREATE_TRACKED_CITIES_SQL,
    _CREATE_ALERT_SETTINGS_SQL,
    _CREATE_ALERT_HISTORY_SQL,
    _CREATE_DELIVERY_QUEUE_SQL,
)


async def init_schema(database: Database) -> None:
    """Create every table and index used by the pipeline."""
    for ddl in ALL_TABLES_SQL:
        await database.execute(ddl)
    logger.info("Schema ensured (%d table groups)", len(ALL_TABLES_SQL))
