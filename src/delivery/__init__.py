"""Durable email delivery.

Components:
- DeliveryQueue: pending -> sending -> {deleted | pending | failed} state machine
- DeliveryRepository: Status compare-and-set persistence
- ConnectivityMonitor: Online/offline tracking that triggers queue passes
- ExponentialBackoff: Follow-up pass scheduling
- DeliveryConfig: Retry budget, timeouts, intervals
"""

from src.delivery.backoff import ExponentialBackoff
from src.delivery.config import DeliveryConfig
from src.delivery.connectivity import ConnectivityMonitor
from src.delivery.queue import DeliveryQueue
from src.delivery.repository import DeliveryRepository
from src.delivery.schemas import (
    VALID_DELIVERY_STATUSES,
    DeliveryOutcome,
    DeliveryRecord,
    DeliveryStatus,
)

__all__ = [
    "ConnectivityMonitor",
    "DeliveryConfig",
    "DeliveryOutcome",
    "DeliveryQueue",
    "DeliveryRecord",
    "DeliveryRepository",
    "DeliveryStatus",
    "ExponentialBackoff",
    "VALID_DELIVERY_STATUSES",
]
