"""Alert evaluation configuration.

Default thresholds applied to users without saved settings, rule
constants, and the alert history cap. All settings can be overridden via
``ALERTS_*`` environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AlertConfig(BaseSettings):
    """Configuration for alert evaluation and history retention."""

    model_config = SettingsConfigDict(
        env_prefix="ALERTS_",
        case_sensitive=False,
        extra="ignore",
    )

    # Default per-user thresholds (None disables the rule)
    default_max_temperature: float | None = Field(
        default=35.0,
        description="°C above which SevereHeat fires",
    )
    default_min_temperature: float | None = Field(
        default=-10.0,
        description="°C below which SevereCold fires",
    )
    default_max_wind_speed: float | None = Field(
        default=20.0,
        ge=0.0,
        description="m/s above which HighWind fires",
    )
    default_min_humidity: float | None = Field(
        default=None,
        ge=0.0,
        le=100.0,
        description="% below which LowHumidity fires (unset by default)",
    )
    default_max_humidity: float | None = Field(
        default=None,
        ge=0.0,
        le=100.0,
        description="% above which HighHumidity fires (unset by default)",
    )

    # Rule constants
    heavy_rain_humidity: float = Field(
        default=80.0,
        ge=0.0,
        le=100.0,
        description="Humidity above which a rain condition is heavy rain",
    )
    forecast_scan_limit: int = Field(
        default=24,
        ge=0,
        description="Forecast entries inspected for upcoming thunderstorms",
    )

    # History retention
    history_max_entries: int = Field(
        default=1000,
        ge=1,
        description="Max alert history rows kept per user (oldest pruned first)",
    )
