"""Multi-city weather monitoring.

Evaluates every tracked city for a user concurrently, lets only the
priority city notify, and records all alerts in history.

Usage:
    from src.monitoring import MonitoringService

    service = MonitoringService(provider, city_repo, settings_repo, history_repo, dispatcher)
    alerts = await service.run_cycle("user-1", current_city="Paris")
    if service.last_report.degraded:
        ...
"""

from src.monitoring.config import MonitoringConfig
from src.monitoring.scheduler import MonitoringScheduler
from src.monitoring.schemas import CycleReport
from src.monitoring.service import MonitoringService, select_priority_city

__all__ = [
    "CycleReport",
    "MonitoringConfig",
    "MonitoringScheduler",
    "MonitoringService",
    "select_priority_city",
]
