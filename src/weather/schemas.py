"""Weather observation and forecast records consumed by the alert evaluator."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str) and value:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        return datetime.now(timezone.utc)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


@dataclass
class WeatherSnapshot:
    """Current conditions for one city.

    Attributes:
        city: City name as reported by the provider.
        country: ISO country code (may be empty).
        temperature: Air temperature in °C.
        humidity: Relative humidity in percent.
        wind_speed: Wind speed in m/s.
        condition: Main condition label (e.g. "Rain", "Thunderstorm").
        description: Free-text description.
        observed_at: Provider observation time.
    """

    city: str
    temperature: float
    humidity: float
    wind_speed: float
    condition: str
    country: str = ""
    description: str = ""
    observed_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WeatherSnapshot":
        """Build from the weather backend's JSON (camelCase or snake_case keys)."""
        return cls(
            city=data.get("city", ""),
            country=data.get("country", "") or "",
            temperature=float(data.get("temperature", 0.0)),
            humidity=float(data.get("humidity", 0.0)),
            wind_speed=float(data.get("windSpeed", data.get("wind_speed", 0.0))),
            condition=data.get("mainCondition", data.get("condition", "")) or "",
            description=data.get("description", "") or "",
            observed_at=_parse_timestamp(
                data.get("timestamp", data.get("observed_at"))
            ),
        )


@dataclass
class ForecastEntry:
    """One forecast step (typically 3-hourly)."""

    forecast_at: datetime
    condition: str
    temperature: float = 0.0
    humidity: float = 0.0
    wind_speed: float = 0.0
    description: str = ""

    @property
    def is_thunderstorm(self) -> bool:
        return "thunderstorm" in self.condition.lower()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ForecastEntry":
        return cls(
            forecast_at=_parse_timestamp(
                data.get("dateTime", data.get("forecast_at"))
            ),
            condition=data.get("mainCondition", data.get("condition", "")) or "",
            temperature=float(data.get("temperature", 0.0)),
            humidity=float(data.get("humidity", 0.0)),
            wind_speed=float(data.get("windSpeed", data.get("wind_speed", 0.0))),
            description=data.get("description", "") or "",
        )
