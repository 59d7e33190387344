"""Delivery queue records and outcomes."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

DeliveryStatus = Literal["pending", "sending", "sent", "failed"]

# "sent" is part of the vocabulary but never stored: success deletes the row.
VALID_DELIVERY_STATUSES: frozenset[str] = frozenset({
    "pending",
    "sending",
    "sent",
    "failed",
})


class DeliveryOutcome(str, Enum):
    """Result of a single delivery attempt."""

    SENT = "sent"
    RETRY = "retry"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class DeliveryRecord:
    """One queued alert email.

    Attributes:
        user_id: Owner of the alert.
        recipient: Destination email address.
        city: City the alert concerns.
        alert_type: Alert type label (e.g. "SevereHeat").
        country: Country of the city.
        message: Alert message.
        alert_id: Alert the email was created for.
        severity: Alert severity shown in the email (derived from the type when None).
        record_id: Database-assigned sequence id (None before insert).
        status: Lifecycle state.
        retry_count: Attempts started so far.
        last_error: Error from the latest failed attempt.
        last_attempt_at: Start time of the latest attempt.
        created_at: Enqueue time.
    """

    user_id: str
    recipient: str
    city: str
    alert_type: str
    country: str = ""
    message: str = ""
    alert_id: str | None = None
    severity: str | None = None
    record_id: int | None = None
    status: str = "pending"
    retry_count: int = 0
    last_error: str | None = None
    last_attempt_at: datetime | None = None
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def __post_init__(self) -> None:
        if self.status not in VALID_DELIVERY_STATUSES:
            raise ValueError(
                f"Invalid status {self.status!r}. "
                f"Must be one of: {sorted(VALID_DELIVERY_STATUSES)}"
            )
        if self.retry_count < 0:
            raise ValueError(f"retry_count must be >= 0, got {self.retry_count}")

    def validation_error(self) -> str | None:
        """Describe why the record cannot be sent, or None if it can."""
        if not self.recipient or "@" not in self.recipient:
            return f"Invalid recipient {self.recipient!r}"
        if not self.city:
            return "Missing city"
        if not self.alert_type:
            return "Missing alert type"
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_id": self.record_id,
            "user_id": self.user_id,
            "recipient": self.recipient,
            "city": self.city,
            "country": self.country,
            "message": self.message,
            "alert_type": self.alert_type,
            "alert_id": self.alert_id,
            "severity": self.severity,
            "status": self.status,
            "retry_count": self.retry_count,
            "last_error": self.last_error,
            "last_attempt_at": (
                self.last_attempt_at.isoformat() if self.last_attempt_at else None
            ),
            "created_at": self.created_at.isoformat(),
        }
