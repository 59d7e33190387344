"""Tracked city records (favorites and searched cities)."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

CityScope = Literal["favorites", "all"]

VALID_SCOPES: frozenset[str] = frozenset({"favorites", "all"})


def make_city_key(city: str, country: str = "") -> str:
    """Case-insensitive identity of a city within one user's set."""
    return f"{city.strip().casefold()}|{(country or '').strip().casefold()}"


@dataclass
class TrackedCity:
    """A city the user cares about.

    Created on first search or favorite, updated on every visit, removed
    only by explicit user action.

    Attributes:
        city: City name as the user last entered it.
        country: Country (code or name, may be empty).
        user_id: Owner.
        is_favorite: Pinned by the user (otherwise only searched).
        check_count: Number of distinct visits.
        last_checked_at: Time of the latest visit.
        last_event_id: Id of the visit event last counted.
        added_at: First time the city was tracked.
    """

    city: str
    country: str = ""
    user_id: str = ""
    is_favorite: bool = False
    check_count: int = 0
    last_checked_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    last_event_id: str | None = None
    added_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def __post_init__(self) -> None:
        if self.check_count < 0:
            raise ValueError(f"check_count must be >= 0, got {self.check_count}")

    @property
    def city_key(self) -> str:
        return make_city_key(self.city, self.country)

    @property
    def display_name(self) -> str:
        """``"City, Country"``, the format used by monitored-city filters."""
        if self.country:
            return f"{self.city}, {self.country}"
        return self.city

    def matches(self, city: str, country: str | None = None) -> bool:
        """Case-insensitive match; a missing country matches any country."""
        if self.city.casefold() != city.strip().casefold():
            return False
        if not country:
            return True
        return self.country.casefold() == country.strip().casefold()

    def to_dict(self) -> dict[str, Any]:
        return {
            "city": self.city,
            "country": self.country,
            "user_id": self.user_id,
            "is_favorite": self.is_favorite,
            "check_count": self.check_count,
            "last_checked_at": self.last_checked_at.isoformat(),
            "last_event_id": self.last_event_id,
            "added_at": self.added_at.isoformat(),
        }
