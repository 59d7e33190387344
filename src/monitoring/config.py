"""Configuration for the multi-city monitoring cycle."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MonitoringConfig(BaseSettings):
    """Monitoring cycle scheduling and fan-out limits.

    All settings can be overridden via environment variables with the
    ``MONITORING_`` prefix (e.g. ``MONITORING_CITY_SCOPE=favorites``).
    """

    model_config = SettingsConfigDict(
        env_prefix="MONITORING_",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Scheduling ───────────────────────────────────────────
    cycle_interval_seconds: float = Field(
        default=900.0,
        ge=10.0,
        description="Seconds between periodic monitoring cycles",
    )

    # ── City selection ───────────────────────────────────────
    city_scope: Literal["favorites", "all"] = Field(
        default="all",
        description="Which tracked cities a cycle checks",
    )
    max_searched_cities: int = Field(
        default=100,
        ge=1,
        description="Searched (non-favorite) cities kept per user",
    )

    # ── Fan-out ──────────────────────────────────────────────
    max_concurrent_evaluations: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Non-priority city evaluations in flight at once",
    )
    city_timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        description="Bound on fetching and evaluating one city",
    )
