"""
Periodic and event-driven monitoring cycles.

A single background task runs a cycle for every registered user, then
sleeps until the next tick or until ``trigger()`` wakes it early (for
example when connectivity is restored). Cycles are skipped while offline.
"""

import asyncio

import structlog

from src.delivery.connectivity import ConnectivityMonitor
from src.monitoring.config import MonitoringConfig
from src.monitoring.service import MonitoringService

logger = structlog.get_logger(__name__)


class MonitoringScheduler:
    """
    Drives MonitoringService cycles on an interval.

    Usage:
        scheduler = MonitoringScheduler(service, ["user-1"], connectivity=monitor)
        await scheduler.start()
        scheduler.set_current_location("user-1", "Paris", "FR")
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        service: MonitoringService,
        user_ids: list[str],
        config: MonitoringConfig | None = None,
        connectivity: ConnectivityMonitor | None = None,
        interval_seconds: float | None = None,
    ) -> None:
        self._service = service
        self._user_ids = list(user_ids)
        self._config = config or MonitoringConfig()
        self._connectivity = connectivity
        self._interval = interval_seconds or self._config.cycle_interval_seconds
        self._locations: dict[str, tuple[str, str | None]] = {}

        self._wake = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._unsubscribe = None
        self._running = False
        self._cycles_run = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def cycles_run(self) -> int:
        return self._cycles_run

    def add_user(self, user_id: str) -> None:
        if user_id not in self._user_ids:
            self._user_ids.append(user_id)

    def set_current_location(
        self, user_id: str, city: str | None, country: str | None = None,
    ) -> None:
        """Set (or clear, with ``city=None``) the city a user is in now."""
        if city:
            self._locations[user_id] = (city, country)
        else:
            self._locations.pop(user_id, None)

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        if self._connectivity is not None:
            self._unsubscribe = self._connectivity.subscribe(self._on_connectivity_change)
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "Monitoring scheduler started",
            users=len(self._user_ids),
            interval=self._interval,
        )

    async def stop(self) -> None:
        self._running = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Monitoring scheduler stopped", cycles_run=self._cycles_run)

    def trigger(self) -> None:
        """Run the next round now instead of waiting for the tick."""
        self._wake.set()

    async def run_once(self) -> None:
        """Run one cycle for every user (skipped while offline)."""
        if self._connectivity is not None and not self._connectivity.is_online:
            logger.debug("Offline, skipping monitoring round")
            return

        for user_id in list(self._user_ids):
            city, country = self._locations.get(user_id, (None, None))
            try:
                await self._service.run_cycle(
                    user_id, current_city=city, current_country=country,
                )
            except Exception as e:
                logger.error("Monitoring cycle failed", user_id=user_id, error=str(e))
            self._cycles_run += 1

    async def _loop(self) -> None:
        while self._running:
            await self.run_once()
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
            self._wake.clear()

    async def _on_connectivity_change(self, online: bool) -> None:
        if online:
            logger.info("Back online, triggering monitoring round")
            self.trigger()
