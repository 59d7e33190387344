"""Schema definitions for alerts and per-user alert settings.

``Alert`` maps 1:1 to the ``alert_history`` table (minus ``user_id``).
Alerts are value objects produced fresh by every evaluation: the same
condition recurring in the next cycle yields a new alert with a new id.
"""

import json
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from src.alerts.config import AlertConfig

AlertType = Literal[
    "SevereHeat",
    "SevereCold",
    "HighWind",
    "Thunderstorm",
    "HeavyRain",
    "HeavySnow",
    "HighHumidity",
    "LowHumidity",
    "Fog",
]

VALID_ALERT_TYPES: frozenset[str] = frozenset({
    "SevereHeat",
    "SevereCold",
    "HighWind",
    "Thunderstorm",
    "HeavyRain",
    "HeavySnow",
    "HighHumidity",
    "LowHumidity",
    "Fog",
})

AlertSeverity = Literal["Low", "Medium", "High"]

VALID_SEVERITIES: frozenset[str] = frozenset({
    "Low",
    "Medium",
    "High",
})


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    elif value is None:
        return datetime.now(timezone.utc)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class Alert:
    """A single rule violation for one city.

    Attributes:
        alert_type: Which rule fired.
        severity: Low, Medium, or High.
        message: Human-readable description.
        city: City the alert concerns.
        country: Country of the city (may be empty).
        alert_id: UUID4 identifier, unique per evaluation.
        created_at: Evaluation wall-clock time (not observation time).
        read: Whether the user has seen it in the history view.
    """

    alert_type: str
    severity: str
    message: str
    city: str
    country: str = ""
    alert_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    read: bool = False

    def __post_init__(self) -> None:
        if self.alert_type not in VALID_ALERT_TYPES:
            raise ValueError(
                f"Invalid alert_type {self.alert_type!r}. "
                f"Must be one of: {sorted(VALID_ALERT_TYPES)}"
            )
        if self.severity not in VALID_SEVERITIES:
            raise ValueError(
                f"Invalid severity {self.severity!r}. "
                f"Must be one of: {sorted(VALID_SEVERITIES)}"
            )

    @property
    def history_key(self) -> tuple[str, datetime]:
        """Identity used for idempotent history writes."""
        return (self.alert_id, self.created_at)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "alert_id": self.alert_id,
            "alert_type": self.alert_type,
            "severity": self.severity,
            "message": self.message,
            "city": self.city,
            "country": self.country,
            "created_at": self.created_at.isoformat(),
            "read": self.read,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Alert":
        """Create an Alert from a dictionary.

        Args:
            data: Dictionary with alert fields.

        Returns:
            Alert instance.
        """
        return cls(
            alert_id=data.get("alert_id", str(uuid.uuid4())),
            alert_type=data["alert_type"],
            severity=data["severity"],
            message=data["message"],
            city=data["city"],
            country=data.get("country", "") or "",
            created_at=_parse_datetime(data.get("created_at")),
            read=data.get("read", False),
        )


@dataclass
class AlertSettings:
    """Per-user alert thresholds, rule toggles, and channel toggles.

    A threshold of ``None`` means "no threshold" and disables that rule.
    ``monitored_cities`` holds ``"City, Country"`` strings; empty means
    every tracked city is monitored.
    """

    user_id: str
    max_temperature: float | None = 35.0
    min_temperature: float | None = -10.0
    max_wind_speed: float | None = 20.0
    min_humidity: float | None = None
    max_humidity: float | None = None
    enable_thunderstorm_alerts: bool = True
    enable_heavy_rain_alerts: bool = True
    enable_heavy_snow_alerts: bool = True
    enable_push_notifications: bool = False
    enable_email_notifications: bool = False
    monitored_cities: list[str] = field(default_factory=list)

    @classmethod
    def defaults(cls, user_id: str, config: AlertConfig | None = None) -> "AlertSettings":
        """Settings for a user who has never saved any."""
        config = config or AlertConfig()
        return cls(
            user_id=user_id,
            max_temperature=config.default_max_temperature,
            min_temperature=config.default_min_temperature,
            max_wind_speed=config.default_max_wind_speed,
            min_humidity=config.default_min_humidity,
            max_humidity=config.default_max_humidity,
        )

    def monitors(self, display_name: str) -> bool:
        """Whether a ``"City, Country"`` entry passes the monitored filter."""
        if not self.monitored_cities:
            return True
        wanted = display_name.casefold()
        return any(m.casefold() == wanted for m in self.monitored_cities)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AlertSettings":
        known = {f for f in cls.__dataclass_fields__}
        values = {k: v for k, v in data.items() if k in known}
        values["monitored_cities"] = list(values.get("monitored_cities") or [])
        return cls(**values)
