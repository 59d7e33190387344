"""Weather provider interface and the HTTP adapter for the weather backend.

The pipeline never talks to a third-party weather API directly; it calls the
application's weather backend, which owns fetching, parsing, and caching.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from src.weather.schemas import ForecastEntry, WeatherSnapshot

logger = logging.getLogger(__name__)


class WeatherProviderError(Exception):
    """Raised when the weather backend fails (network error, 5xx, bad payload)."""


class WeatherProvider(ABC):
    """Source of current conditions and forecasts for a city."""

    @abstractmethod
    async def get_current_weather(
        self, city: str, country: str | None = None,
    ) -> WeatherSnapshot | None:
        """Return current conditions, or None if the city is unknown."""

    @abstractmethod
    async def get_forecast(
        self, city: str, country: str | None = None,
    ) -> list[ForecastEntry] | None:
        """Return forecast entries, or None if unavailable."""

    async def close(self) -> None:
        """Release held resources (no-op by default)."""


class HttpWeatherProvider(WeatherProvider):
    """Reads the weather backend's ``/api/weather`` endpoints with httpx.

    A single pooled ``httpx.AsyncClient`` is reused across calls since a
    monitoring cycle fans out one request pair per tracked city.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _params(self, city: str, country: str | None) -> dict[str, str]:
        params = {"city": city}
        if country:
            params["country"] = country
        return params

    async def _get_json(self, path: str, params: dict[str, str]) -> Any | None:
        url = f"{self._base_url}{path}"
        try:
            resp = await self._client.get(url, params=params)
        except httpx.TimeoutException as e:
            raise WeatherProviderError(f"Timed out calling {path}") from e
        except httpx.HTTPError as e:
            raise WeatherProviderError(f"Request to {path} failed: {e}") from e

        if resp.status_code == 404:
            return None
        if not resp.is_success:
            raise WeatherProviderError(
                f"{path} returned {resp.status_code} for {params.get('city')}"
            )
        try:
            return resp.json()
        except ValueError as e:
            raise WeatherProviderError(f"Invalid JSON from {path}") from e

    async def get_current_weather(
        self, city: str, country: str | None = None,
    ) -> WeatherSnapshot | None:
        data = await self._get_json("/api/weather/current", self._params(city, country))
        if not data:
            return None
        return WeatherSnapshot.from_dict(data)

    async def get_forecast(
        self, city: str, country: str | None = None,
    ) -> list[ForecastEntry] | None:
        data = await self._get_json("/api/weather/forecast", self._params(city, country))
        if not data:
            return None
        items = data.get("items", []) if isinstance(data, dict) else data
        return [ForecastEntry.from_dict(item) for item in items]

    async def close(self) -> None:
        await self._client.aclose()
