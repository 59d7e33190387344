"""Stateless trigger functions for weather alert detection.

Each ``check_*`` function tests one rule against a weather snapshot and
returns an Alert or None. ``evaluate_weather`` runs every rule in a fixed
order. No I/O, no state: persistence and notification live in the
monitoring service and dispatcher.

All alerts from one evaluation share ``created_at`` (the evaluation time,
not the observation time).
"""

from collections.abc import Sequence
from datetime import datetime, timezone

from src.alerts.config import AlertConfig
from src.alerts.schemas import Alert, AlertSettings
from src.weather.schemas import ForecastEntry, WeatherSnapshot


def check_heat(
    weather: WeatherSnapshot, settings: AlertSettings, now: datetime,
) -> Alert | None:
    """SevereHeat/High when temperature exceeds ``max_temperature``."""
    if settings.max_temperature is None:
        return None
    if weather.temperature <= settings.max_temperature:
        return None

    return Alert(
        alert_type="SevereHeat",
        severity="High",
        message=f"Extreme heat warning: Temperature is {weather.temperature:.1f}°C",
        city=weather.city,
        country=weather.country,
        created_at=now,
    )


def check_cold(
    weather: WeatherSnapshot, settings: AlertSettings, now: datetime,
) -> Alert | None:
    """SevereCold/High when temperature is below ``min_temperature``."""
    if settings.min_temperature is None:
        return None
    if weather.temperature >= settings.min_temperature:
        return None

    return Alert(
        alert_type="SevereCold",
        severity="High",
        message=f"Extreme cold warning: Temperature is {weather.temperature:.1f}°C",
        city=weather.city,
        country=weather.country,
        created_at=now,
    )


def check_wind(
    weather: WeatherSnapshot, settings: AlertSettings, now: datetime,
) -> Alert | None:
    """HighWind/Medium when wind speed exceeds ``max_wind_speed``."""
    if settings.max_wind_speed is None:
        return None
    if weather.wind_speed <= settings.max_wind_speed:
        return None

    return Alert(
        alert_type="HighWind",
        severity="Medium",
        message=f"High wind warning: Wind speed is {weather.wind_speed:.1f} m/s",
        city=weather.city,
        country=weather.country,
        created_at=now,
    )


def check_humidity(
    weather: WeatherSnapshot, settings: AlertSettings, now: datetime,
) -> list[Alert]:
    """HighHumidity/Medium above ``max_humidity``; LowHumidity/Low below ``min_humidity``.

    Both thresholds are optional. Returns a list since the two checks are
    independent of each other.
    """
    alerts: list[Alert] = []

    if settings.max_humidity is not None and weather.humidity > settings.max_humidity:
        alerts.append(Alert(
            alert_type="HighHumidity",
            severity="Medium",
            message=(
                f"High humidity warning: Humidity is {weather.humidity:.0f}% "
                f"(threshold {settings.max_humidity:.0f}%)"
            ),
            city=weather.city,
            country=weather.country,
            created_at=now,
        ))

    if settings.min_humidity is not None and weather.humidity < settings.min_humidity:
        alerts.append(Alert(
            alert_type="LowHumidity",
            severity="Low",
            message=(
                f"Low humidity warning: Humidity is {weather.humidity:.0f}% "
                f"(threshold {settings.min_humidity:.0f}%)"
            ),
            city=weather.city,
            country=weather.country,
            created_at=now,
        ))

    return alerts


def check_condition(
    weather: WeatherSnapshot,
    settings: AlertSettings,
    config: AlertConfig,
    now: datetime,
) -> Alert | None:
    """Condition-text chain: thunderstorm, else snow, else rain.

    The chain branches on the condition text, so a thunderstorm condition
    with thunderstorm alerts disabled never falls through to snow or rain.
    """
    condition = weather.condition.lower()

    if "thunderstorm" in condition:
        if not settings.enable_thunderstorm_alerts:
            return None
        return Alert(
            alert_type="Thunderstorm",
            severity="High",
            message="Thunderstorm warning: Severe weather conditions expected",
            city=weather.city,
            country=weather.country,
            created_at=now,
        )

    if "snow" in condition and weather.temperature < 0:
        if not settings.enable_heavy_snow_alerts:
            return None
        return Alert(
            alert_type="HeavySnow",
            severity="Medium",
            message="Heavy snow warning: Snow conditions expected",
            city=weather.city,
            country=weather.country,
            created_at=now,
        )

    if "rain" in condition and weather.humidity > config.heavy_rain_humidity:
        if not settings.enable_heavy_rain_alerts:
            return None
        return Alert(
            alert_type="HeavyRain",
            severity="Medium",
            message="Heavy rain warning: High precipitation expected",
            city=weather.city,
            country=weather.country,
            created_at=now,
        )

    return None


def check_forecast_thunderstorm(
    weather: WeatherSnapshot,
    forecast: Sequence[ForecastEntry] | None,
    settings: AlertSettings,
    config: AlertConfig,
    now: datetime,
) -> Alert | None:
    """One Thunderstorm/High alert for the first stormy forecast entry.

    Scans at most ``config.forecast_scan_limit`` entries in chronological
    order and stops at the first thunderstorm.
    """
    if not forecast or not settings.enable_thunderstorm_alerts:
        return None

    upcoming = sorted(forecast, key=lambda e: e.forecast_at)[: config.forecast_scan_limit]
    for entry in upcoming:
        if entry.is_thunderstorm:
            return Alert(
                alert_type="Thunderstorm",
                severity="High",
                message=(
                    f"Thunderstorm expected at "
                    f"{entry.forecast_at:%Y-%m-%d %H:%M} UTC"
                ),
                city=weather.city,
                country=weather.country,
                created_at=now,
            )
    return None


def evaluate_weather(
    weather: WeatherSnapshot | None,
    forecast: Sequence[ForecastEntry] | None,
    settings: AlertSettings,
    config: AlertConfig | None = None,
    now: datetime | None = None,
) -> list[Alert]:
    """Run every rule against one city's weather and forecast.

    Args:
        weather: Current conditions (None yields no alerts).
        forecast: Forecast entries, optional.
        settings: The user's thresholds and toggles.
        config: Rule constants (defaults if omitted).
        now: Evaluation time stamped on every alert (defaults to UTC now).

    Returns:
        Alerts in rule order: heat, cold, wind, humidity, condition, forecast.
    """
    if weather is None:
        return []

    config = config or AlertConfig()
    now = now or datetime.now(timezone.utc)
    alerts: list[Alert] = []

    for check in (check_heat, check_cold, check_wind):
        alert = check(weather, settings, now)
        if alert is not None:
            alerts.append(alert)

    alerts.extend(check_humidity(weather, settings, now))

    alert = check_condition(weather, settings, config, now)
    if alert is not None:
        alerts.append(alert)

    alert = check_forecast_thunderstorm(weather, forecast, settings, config, now)
    if alert is not None:
        alerts.append(alert)

    return alerts
