"""Weather alert evaluation and history.

Components:
- Alert / AlertSettings: Alert records and per-user thresholds
- evaluate_weather: Stateless rule evaluation (check_* triggers)
- AlertHistoryRepository: Capped, idempotent per-user history
- AlertSettingsRepository: Per-user settings persistence
- AlertConfig: Default thresholds and retention
"""

from src.alerts.config import AlertConfig
from src.alerts.repository import AlertHistoryRepository, AlertSettingsRepository
from src.alerts.schemas import (
    VALID_ALERT_TYPES,
    VALID_SEVERITIES,
    Alert,
    AlertSettings,
    AlertSeverity,
    AlertType,
)
from src.alerts.triggers import evaluate_weather

__all__ = [
    "Alert",
    "AlertConfig",
    "AlertHistoryRepository",
    "AlertSettings",
    "AlertSettingsRepository",
    "AlertSeverity",
    "AlertType",
    "VALID_ALERT_TYPES",
    "VALID_SEVERITIES",
    "evaluate_weather",
]
