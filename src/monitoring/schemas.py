"""Schema definitions for monitoring cycle results.

Each cycle produces a CycleReport. The report marks the cycle ``degraded``
when a history write failed, so callers can surface that alerts were
computed but not all of them were stored.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class CycleReport:
    """Outcome of one monitoring cycle for one user.

    Attributes:
        user_id: User the cycle ran for.
        priority_city: Display name of the city allowed to notify.
        cities_checked: Cities evaluated (priority included).
        cities_failed: Display names of cities that errored or timed out.
        alerts_by_city: Alert count per city display name.
        history_failures: Failed history batch writes.
        email_record_id: Delivery record enqueued this cycle, if any.
        push_sent: Successful push sends.
        started_at: Cycle start time.
        duration_seconds: Wall-clock duration.
    """

    user_id: str
    priority_city: str | None = None
    cities_checked: int = 0
    cities_failed: list[str] = field(default_factory=list)
    alerts_by_city: dict[str, int] = field(default_factory=dict)
    history_failures: int = 0
    email_record_id: int | None = None
    push_sent: int = 0
    started_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    duration_seconds: float = 0.0

    @property
    def degraded(self) -> bool:
        """True if some computed alerts could not be written to history."""
        return self.history_failures > 0

    @property
    def total_alerts(self) -> int:
        return sum(self.alerts_by_city.values())

    @property
    def status(self) -> str:
        if self.cities_checked == 0:
            return "empty"
        return "degraded" if self.degraded else "ok"

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "priority_city": self.priority_city,
            "cities_checked": self.cities_checked,
            "cities_failed": list(self.cities_failed),
            "alerts_by_city": dict(self.alerts_by_city),
            "total_alerts": self.total_alerts,
            "history_failures": self.history_failures,
            "email_record_id": self.email_record_id,
            "push_sent": self.push_sent,
            "degraded": self.degraded,
            "status": self.status,
            "started_at": self.started_at.isoformat(),
            "duration_seconds": round(self.duration_seconds, 3),
        }
