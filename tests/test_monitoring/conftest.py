"""Fixtures for monitoring tests: in-memory provider and repositories."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.alerts.schemas import AlertSettings
from src.cities.schemas import TrackedCity
from src.monitoring.config import MonitoringConfig
from src.monitoring.service import MonitoringService
from src.notifications.dispatcher import DispatchResult
from src.weather.provider import WeatherProvider
from src.weather.schemas import WeatherSnapshot


class FakeWeatherProvider(WeatherProvider):
    """Serves snapshots by city name; ``errors`` maps a city to the exception to raise."""

    def __init__(self) -> None:
        self.weather: dict[str, WeatherSnapshot] = {}
        self.forecasts: dict[str, list] = {}
        self.errors: dict[str, BaseException] = {}
        self.calls: list[tuple[str, str | None]] = []

    async def get_current_weather(self, city, country=None):
        self.calls.append((city, country))
        if city in self.errors:
            raise self.errors[city]
        return self.weather.get(city)

    async def get_forecast(self, city, country=None):
        return self.forecasts.get(city)


class FakeCityRepository:

    def __init__(self) -> None:
        self.cities: list[TrackedCity] = []
        self.error: Exception | None = None
        self.scopes: list[str] = []

    async def get_tracked(self, user_id, scope="all"):
        self.scopes.append(scope)
        if self.error is not None:
            raise self.error
        return [
            c for c in self.cities
            if c.user_id == user_id and (scope == "all" or c.is_favorite)
        ]


class FakeSettingsRepository:

    def __init__(self) -> None:
        self.settings: dict[str, AlertSettings] = {}
        self.error: Exception | None = None

    async def get(self, user_id):
        if self.error is not None:
            raise self.error
        return self.settings.get(user_id) or AlertSettings.defaults(user_id)


class FakeHistoryRepository:

    def __init__(self) -> None:
        self.batches: list[tuple[str, list]] = []
        self.error: Exception | None = None

    async def save_batch(self, user_id, alerts):
        if self.error is not None:
            raise self.error
        self.batches.append((user_id, list(alerts)))
        return len(alerts)

    @property
    def saved(self) -> list:
        return [alert for _, batch in self.batches for alert in batch]


@pytest.fixture
def provider():
    return FakeWeatherProvider()


@pytest.fixture
def city_repo():
    return FakeCityRepository()


@pytest.fixture
def settings_repo():
    return FakeSettingsRepository()


@pytest.fixture
def history_repo():
    return FakeHistoryRepository()


@pytest.fixture
def dispatcher():
    dispatcher = MagicMock()
    dispatcher.dispatch_batch = AsyncMock(
        return_value=DispatchResult(push_sent=2, email_record_id=41),
    )
    return dispatcher


@pytest.fixture
def service(provider, city_repo, settings_repo, history_repo, dispatcher):
    return MonitoringService(
        provider,
        city_repo,
        settings_repo,
        history_repo,
        dispatcher,
        config=MonitoringConfig(),
    )


@pytest.fixture
def track():
    """Factory adding a tracked city for ``user-1`` checked at ``hh:mm``."""

    def _track(repo, city, country="", hour=10, minute=0, favorite=False):
        tracked = TrackedCity(
            city=city,
            country=country,
            user_id="user-1",
            is_favorite=favorite,
            check_count=1,
            last_checked_at=datetime(2026, 7, 1, hour, minute, tzinfo=timezone.utc),
        )
        repo.cities.append(tracked)
        return tracked

    return _track
