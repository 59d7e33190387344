"""
Connectivity tracking for the delivery queue and monitoring scheduler.

State changes come from two places: explicit ``set_online`` calls (an
embedding application forwarding OS/network events) and an optional probe
loop that polls a URL with httpx. Subscribers are awaited on every
transition; a failing subscriber never blocks the others.
"""

import asyncio
from collections.abc import Awaitable, Callable

import httpx
import structlog

logger = structlog.get_logger(__name__)

ConnectivityCallback = Callable[[bool], Awaitable[None]]


class ConnectivityMonitor:
    """
    Tracks online/offline state and notifies subscribers on transitions.

    Usage:
        monitor = ConnectivityMonitor(probe_url="https://example.com/health")
        unsubscribe = monitor.subscribe(on_change)
        await monitor.start()
        ...
        await monitor.stop()
    """

    def __init__(
        self,
        initially_online: bool = True,
        probe_url: str | None = None,
        probe_interval: float = 30.0,
        probe_timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._online = initially_online
        self._probe_url = probe_url
        self._probe_interval = probe_interval
        self._probe_timeout = probe_timeout
        self._client = client
        self._owns_client = client is None
        self._subscribers: list[ConnectivityCallback] = []
        self._probe_task: asyncio.Task | None = None

    @property
    def is_online(self) -> bool:
        return self._online

    def subscribe(self, callback: ConnectivityCallback) -> Callable[[], None]:
        """Register an async callback receiving the new state.

        Returns:
            A function that removes the subscription.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def set_online(self, online: bool) -> None:
        """Record the current state; subscribers run only on a transition."""
        if online == self._online:
            return
        self._online = online
        logger.info("Connectivity changed", online=online)

        for callback in list(self._subscribers):
            try:
                await callback(online)
            except Exception as e:
                logger.error(
                    "Connectivity subscriber failed",
                    callback=getattr(callback, "__qualname__", repr(callback)),
                    error=str(e),
                )

    async def probe(self) -> bool:
        """Check reachability of the probe URL.

        Any HTTP response below 500 counts as online; network errors and
        timeouts count as offline. Without a probe URL the current state
        is returned unchanged.
        """
        if not self._probe_url:
            return self._online
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._probe_timeout)
        try:
            resp = await self._client.get(self._probe_url)
        except httpx.HTTPError as e:
            logger.debug("Connectivity probe failed", error=str(e))
            return False
        return resp.status_code < 500

    async def start(self) -> None:
        """Start the probe loop (no-op without a probe URL)."""
        if not self._probe_url or self._probe_task is not None:
            return
        self._probe_task = asyncio.create_task(self._probe_loop())
        logger.info(
            "Connectivity probe started",
            url=self._probe_url,
            interval=self._probe_interval,
        )

    async def stop(self) -> None:
        if self._probe_task is not None:
            self._probe_task.cancel()
            try:
                await self._probe_task
            except asyncio.CancelledError:
                pass
            self._probe_task = None
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _probe_loop(self) -> None:
        while True:
            await self.set_online(await self.probe())
            await asyncio.sleep(self._probe_interval)
