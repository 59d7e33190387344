"""Repository for the cities a user tracks.

Favorites and searched cities share one table; ``is_favorite`` tells them
apart. Searched (non-favorite) cities are capped per user, keeping the most
recently visited ones.
"""

import logging
from typing import Any

from src.cities.schemas import CityScope, TrackedCity, make_city_key
from src.storage.database import Database, lock_user

logger = logging.getLogger(__name__)

# A visit carrying the same event id as the last counted one is a replay:
# the row is left untouched.
_RECORD_VISIT_SQL = """
    INSERT INTO tracked_cities (
        user_id, city, country, city_key,
        check_count, last_checked_at, last_event_id
    ) VALUES ($1, $2, $3, $4, 1, NOW(), $5)
    ON CONFLICT (user_id, city_key) DO UPDATE SET
        city = EXCLUDED.city,
        country = EXCLUDED.country,
        check_count = CASE
            WHEN $5::text IS NOT NULL
                 AND tracked_cities.last_event_id = $5::text
            THEN tracked_cities.check_count
            ELSE tracked_cities.check_count + 1
        END,
        last_checked_at = CASE
            WHEN $5::text IS NOT NULL
                 AND tracked_cities.last_event_id = $5::text
            THEN tracked_cities.last_checked_at
            ELSE NOW()
        END,
        last_event_id = COALESCE($5::text, tracked_cities.last_event_id)
    RETURNING *
"""

_PRUNE_SEARCHED_SQL = """
    DELETE FROM tracked_cities
    WHERE user_id = $1
      AND is_favorite = FALSE
      AND city_key IN (
          SELECT city_key FROM tracked_cities
          WHERE user_id = $1 AND is_favorite = FALSE
          ORDER BY last_checked_at DESC
          OFFSET $2
      )
"""

_ADD_FAVORITE_SQL = """
    INSERT INTO tracked_cities (
        user_id, city, country, city_key, is_favorite, last_checked_at
    ) VALUES ($1, $2, $3, $4, TRUE, NOW())
    ON CONFLICT (user_id, city_key) DO UPDATE SET
        is_favorite = TRUE,
        city = EXCLUDED.city,
        country = EXCLUDED.country
    RETURNING *
"""


class TrackedCityRepository:
    """Persistence for favorites and searched cities."""

    def __init__(self, database: Database, max_searched: int = 100) -> None:
        self._db = database
        self._max_searched = max_searched

    async def get_tracked(
        self,
        user_id: str,
        scope: CityScope = "all",
    ) -> list[TrackedCity]:
        """List a user's cities, most recently visited first.

        Args:
            user_id: Owner.
            scope: ``"favorites"`` for pinned cities only, ``"all"`` for the
                union of favorites and searched cities.
        """
        sql = "SELECT * FROM tracked_cities WHERE user_id = $1"
        if scope == "favorites":
            sql += " AND is_favorite = TRUE"
        sql += " ORDER BY last_checked_at DESC"

        rows = await self._db.fetch(sql, user_id)
        return [_row_to_city(row) for row in rows]

    async def get(
        self, user_id: str, city: str, country: str = "",
    ) -> TrackedCity | None:
        row = await self._db.fetchrow(
            "SELECT * FROM tracked_cities WHERE user_id = $1 AND city_key = $2",
            user_id,
            make_city_key(city, country),
        )
        if row is None:
            return None
        return _row_to_city(row)

    async def record_visit(
        self,
        user_id: str,
        city: str,
        country: str = "",
        event_id: str | None = None,
    ) -> TrackedCity:
        """Record that the user searched for or viewed a city.

        Creates the city on first visit, otherwise bumps ``check_count`` and
        ``last_checked_at``. Replaying the same ``event_id`` is a no-op.
        Searched cities beyond the cap are dropped, least recent first.

        Args:
            user_id: Owner.
            city: City name.
            country: Country (may be empty).
            event_id: Optional id of the visit event for idempotency.

        Returns:
            The updated city.
        """
        async with self._db.transaction() as conn:
            await lock_user(conn, user_id)
            row = await conn.fetchrow(
                _RECORD_VISIT_SQL,
                user_id,
                city.strip(),
                (country or "").strip(),
                make_city_key(city, country),
                event_id,
            )
            await conn.execute(_PRUNE_SEARCHED_SQL, user_id, self._max_searched)
        return _row_to_city(row)

    async def add_favorite(
        self, user_id: str, city: str, country: str = "",
    ) -> TrackedCity:
        """Pin a city, creating it if it was never searched."""
        row = await self._db.fetchrow(
            _ADD_FAVORITE_SQL,
            user_id,
            city.strip(),
            (country or "").strip(),
            make_city_key(city, country),
        )
        logger.info("Favorite added for %s: %s", user_id, city)
        return _row_to_city(row)

    async def remove(self, user_id: str, city: str, country: str = "") -> bool:
        """Stop tracking a city.

        Returns:
            True if a city was removed.
        """
        result = await self._db.fetchval(
            """
            DELETE FROM tracked_cities
            WHERE user_id = $1 AND city_key = $2
            RETURNING city_key
            """,
            user_id,
            make_city_key(city, country),
        )
        return result is not None

    async def clear_searched(self, user_id: str) -> None:
        """Forget every non-favorite city for a user."""
        await self._db.execute(
            "DELETE FROM tracked_cities WHERE user_id = $1 AND is_favorite = FALSE",
            user_id,
        )


def _row_to_city(row: Any) -> TrackedCity:
    """Convert an asyncpg Record to a TrackedCity."""
    return TrackedCity(
        city=row["city"],
        country=row.get("country", "") or "",
        user_id=row["user_id"],
        is_favorite=row.get("is_favorite", False),
        check_count=row.get("check_count", 0),
        last_checked_at=row["last_checked_at"],
        last_event_id=row.get("last_event_id"),
        added_at=row["added_at"],
    )
