"""Cities tracked per user (favorites and search history)."""

from src.cities.repository import TrackedCityRepository
from src.cities.schemas import VALID_SCOPES, CityScope, TrackedCity, make_city_key

__all__ = [
    "CityScope",
    "TrackedCity",
    "TrackedCityRepository",
    "VALID_SCOPES",
    "make_city_key",
]
