"""Weather data consumed by the alert pipeline.

Components:
- WeatherSnapshot / ForecastEntry: Observation and forecast records
- WeatherProvider: ABC for the weather backend
- HttpWeatherProvider: httpx adapter for the backend's REST endpoints
"""

from src.weather.provider import (
    HttpWeatherProvider,
    WeatherProvider,
    WeatherProviderError,
)
from src.weather.schemas import ForecastEntry, WeatherSnapshot

__all__ = [
    "ForecastEntry",
    "HttpWeatherProvider",
    "WeatherProvider",
    "WeatherProviderError",
    "WeatherSnapshot",
]
