"""
Durable email delivery queue.

Records move ``pending -> sending -> {deleted | pending | failed}``. The
claim into ``sending`` is a database compare-and-set, so any number of
queue passes may run at once: each record is attempted by exactly one.

A pass runs:
1. After every enqueue (fire-and-forget)
2. When connectivity is restored
3. Periodically while online
4. After a backoff delay when a pass leaves records pending

Records left in ``sending`` by a crash go back to ``pending`` on start and
on every periodic tick, once older than ``stale_sending_seconds``.
"""

import asyncio
import time
from collections import Counter

import structlog

from src.delivery.backoff import ExponentialBackoff
from src.delivery.config import DeliveryConfig
from src.delivery.connectivity import ConnectivityMonitor
from src.delivery.repository import DeliveryRepository
from src.delivery.schemas import DeliveryOutcome, DeliveryRecord
from src.notifications.templates import render_html, render_subject, render_text
from src.notifications.transports import (
    EmailTransport,
    PermanentTransportError,
    TransientTransportError,
)
from src.observability.metrics import get_metrics

logger = structlog.get_logger(__name__)


class DeliveryQueue:
    """
    At-least-once email delivery with bounded retries.

    A record is retried until ``max_retries`` attempts have failed, then
    parked in ``failed`` for inspection. Success deletes the record.

    Usage:
        queue = DeliveryQueue(DeliveryRepository(db), transport, connectivity)
        await queue.start()
        await queue.enqueue(user_id="u1", recipient="a@b.c", city="Paris",
                            alert_type="Thunderstorm", message="...")
        ...
        await queue.stop()
    """

    def __init__(
        self,
        repository: DeliveryRepository,
        transport: EmailTransport,
        connectivity: ConnectivityMonitor | None = None,
        config: DeliveryConfig | None = None,
        app_name: str = "Weather App",
    ) -> None:
        self._repo = repository
        self._transport = transport
        self._connectivity = connectivity
        self._config = config or DeliveryConfig()
        self._app_name = app_name
        self._backoff = ExponentialBackoff(
            base_delay=self._config.backoff_base_delay,
            max_delay=self._config.backoff_max_delay,
        )
        self._metrics = get_metrics()

        self._pass_task: asyncio.Task | None = None
        self._rerun_requested = False
        self._follow_up_task: asyncio.Task | None = None
        self._periodic_task: asyncio.Task | None = None
        self._unsubscribe = None
        self._running = False
        self._stopping = False

    @property
    def config(self) -> DeliveryConfig:
        return self._config

    @property
    def is_online(self) -> bool:
        return self._connectivity is None or self._connectivity.is_online

    # ── Lifecycle ─────────────────────────────────────────

    async def start(self) -> None:
        """Recover abandoned records, subscribe to connectivity, start the periodic loop."""
        if self._running:
            return
        self._running = True

        await self.recover_stale()

        if self._connectivity is not None:
            self._unsubscribe = self._connectivity.subscribe(self._on_connectivity_change)

        self._periodic_task = asyncio.create_task(self._periodic_loop())
        logger.info(
            "Delivery queue started",
            interval=self._config.process_interval_seconds,
            max_retries=self._config.max_retries,
        )
        self.request_processing()

    async def stop(self) -> None:
        """Stop background passes, letting an in-flight send finish.

        The running pass stops before its next record and gets up to
        ``send_timeout_seconds`` to finish the current one. A pass still
        running after that is cancelled; its record stays in ``sending``
        until ``recover_stale`` returns it to ``pending``.
        """
        self._running = False
        self._stopping = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        timers = [
            t for t in (self._periodic_task, self._follow_up_task)
            if t is not None and not t.done()
        ]
        for task in timers:
            task.cancel()
        if timers:
            await asyncio.gather(*timers, return_exceptions=True)

        pass_task = self._pass_task
        if pass_task is not None and not pass_task.done():
            _, pending = await asyncio.wait(
                {pass_task}, timeout=self._config.send_timeout_seconds,
            )
            if pending:
                logger.warning(
                    "Queue pass still running at shutdown, cancelling",
                    grace_seconds=self._config.send_timeout_seconds,
                )
                pass_task.cancel()
                await asyncio.gather(pass_task, return_exceptions=True)

        self._periodic_task = None
        self._follow_up_task = None
        self._pass_task = None
        self._stopping = False
        logger.info("Delivery queue stopped")

    # ── Queue operations ──────────────────────────────────

    async def enqueue(
        self,
        user_id: str,
        recipient: str,
        city: str,
        alert_type: str,
        country: str = "",
        message: str = "",
        alert_id: str | None = None,
        severity: str | None = None,
    ) -> DeliveryRecord:
        """Persist a new ``pending`` record.

        Raises:
            Whatever the repository raises; the caller decides how to
            handle a persistence failure.
        """
        record = await self._repo.insert(
            DeliveryRecord(
                user_id=user_id,
                recipient=recipient,
                city=city,
                country=country,
                message=message,
                alert_type=alert_type,
                alert_id=alert_id,
                severity=severity,
            )
        )
        logger.info(
            "Email queued",
            record_id=record.record_id,
            user_id=user_id,
            city=city,
            alert_type=alert_type,
        )
        return record

    async def attempt_delivery(self, record: DeliveryRecord) -> DeliveryOutcome:
        """Try to send one record.

        Claims the record (``pending -> sending``, ``retry_count + 1``); if
        the claim fails another processor owns it and the attempt is
        skipped. Transient failures return the record to ``pending`` until
        the retry budget is spent; permanent failures and malformed records
        go straight to ``failed``.
        """
        if record.record_id is None:
            raise ValueError("Cannot deliver a record that was never enqueued")

        claimed = await self._repo.claim(record.record_id)
        if claimed is None:
            self._metrics.record_delivery(DeliveryOutcome.SKIPPED.value)
            return DeliveryOutcome.SKIPPED

        problem = claimed.validation_error()
        if problem is not None:
            await self._repo.fail(claimed.record_id, problem)
            logger.error(
                "Malformed delivery record failed",
                record_id=claimed.record_id,
                error=problem,
            )
            self._metrics.record_delivery(DeliveryOutcome.FAILED.value)
            return DeliveryOutcome.FAILED

        subject = render_subject(claimed.alert_type, claimed.city, claimed.country)
        html_body = render_html(
            claimed.alert_type, claimed.city, claimed.country, claimed.message,
            app_name=self._app_name,
            severity=claimed.severity,
        )
        text_body = render_text(
            claimed.alert_type, claimed.city, claimed.country, claimed.message,
            severity=claimed.severity,
        )

        timeout = self._config.send_timeout_seconds
        try:
            await asyncio.wait_for(
                self._transport.send_email(
                    claimed.recipient, subject, html_body, text_body,
                ),
                timeout=timeout,
            )
        except PermanentTransportError as e:
            await self._repo.fail(claimed.record_id, str(e))
            logger.error(
                "Email permanently failed",
                record_id=claimed.record_id,
                retry_count=claimed.retry_count,
                error=str(e),
            )
            self._metrics.record_delivery(DeliveryOutcome.FAILED.value)
            return DeliveryOutcome.FAILED
        except asyncio.TimeoutError:
            return await self._release(claimed, f"Send timed out after {timeout:.0f}s")
        except TransientTransportError as e:
            return await self._release(claimed, str(e))
        except Exception as e:
            logger.exception("Unexpected email transport error", record_id=claimed.record_id)
            return await self._release(claimed, f"{type(e).__name__}: {e}")

        await self._repo.complete(claimed.record_id)
        logger.info(
            "Email delivered",
            record_id=claimed.record_id,
            attempts=claimed.retry_count,
        )
        self._metrics.record_delivery(DeliveryOutcome.SENT.value)
        return DeliveryOutcome.SENT

    async def _release(self, record: DeliveryRecord, error: str) -> DeliveryOutcome:
        status = await self._repo.release(
            record.record_id, error, self._config.max_retries,
        )
        if status == "failed":
            logger.error(
                "Email failed after max retries",
                record_id=record.record_id,
                retry_count=record.retry_count,
                error=error,
            )
            outcome = DeliveryOutcome.FAILED
        else:
            logger.warning(
                "Email attempt failed, will retry",
                record_id=record.record_id,
                retry_count=record.retry_count,
                max_retries=self._config.max_retries,
                error=error,
            )
            outcome = DeliveryOutcome.RETRY
        self._metrics.record_delivery(outcome.value)
        return outcome

    async def process_queue(self, user_id: str | None = None) -> dict[str, int]:
        """Attempt every pending record once, oldest first.

        A no-op while offline or when nothing is pending. If records are
        still pending afterwards, a follow-up pass is scheduled after a
        backoff delay.

        Args:
            user_id: Restrict the pass to one user's records.

        Returns:
            Count of attempts per outcome (e.g. ``{"sent": 2, "retry": 1}``).
        """
        if not self.is_online:
            logger.debug("Offline, skipping queue pass")
            return {}

        start = time.monotonic()
        records = await self._repo.list_pending(
            user_id=user_id, limit=self._config.process_batch_size,
        )
        if not records:
            self._backoff.reset()
            self._metrics.set_pending_deliveries(0)
            return {}

        outcomes: Counter[str] = Counter()
        for record in records:
            if self._stopping:
                logger.info("Queue stopping, ending pass early", remaining=len(records))
                break
            if not self.is_online:
                logger.info("Went offline mid-pass, stopping", remaining=len(records))
                break
            try:
                outcome = await self.attempt_delivery(record)
            except Exception as e:
                # Persistence failure on this record; it stays where it was
                logger.error(
                    "Delivery attempt errored",
                    record_id=record.record_id,
                    error=str(e),
                )
                outcomes["error"] += 1
                continue
            outcomes[outcome.value] += 1

        remaining = await self._repo.count_by_status("pending", user_id=user_id)
        self._metrics.set_pending_deliveries(remaining)

        logger.info(
            "Queue pass complete",
            attempted=sum(outcomes.values()),
            remaining=remaining,
            duration_ms=round((time.monotonic() - start) * 1000, 1),
            **dict(outcomes),
        )

        if remaining:
            self._schedule_follow_up()
        else:
            self._backoff.reset()
        return dict(outcomes)

    def request_processing(self) -> None:
        """Start a queue pass in the background.

        Coalesces: if a pass is already running, one more pass runs after it
        instead of a second concurrent one.
        """
        if self._pass_task is not None and not self._pass_task.done():
            self._rerun_requested = True
            return
        self._pass_task = asyncio.create_task(self._run_passes())

    async def wait_idle(self) -> dict[str, int]:
        """Wait for the background pass, and any reruns coalesced into it.

        Returns:
            Combined outcome counts of those passes, or ``{}`` when no pass
            was started.
        """
        task = self._pass_task
        if task is None or task.cancelled():
            return {}
        return await asyncio.shield(task)

    async def _run_passes(self) -> dict[str, int]:
        outcomes: Counter[str] = Counter()
        while True:
            self._rerun_requested = False
            try:
                outcomes.update(await self.process_queue())
            except Exception as e:
                logger.error("Queue pass failed", error=str(e))
            if not self._rerun_requested or self._stopping:
                break
        return dict(outcomes)

    def _schedule_follow_up(self) -> None:
        if self._stopping:
            return
        if self._follow_up_task is not None and not self._follow_up_task.done():
            return
        delay = self._backoff.next_delay()
        logger.debug("Scheduling follow-up queue pass", delay=round(delay, 2))
        self._follow_up_task = asyncio.create_task(self._delayed_pass(delay))

    async def _delayed_pass(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self.request_processing()

    async def _periodic_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._config.process_interval_seconds)
            try:
                await self.recover_stale()
            except Exception as e:
                logger.error("Stale record recovery failed", error=str(e))
            if self.is_online:
                self.request_processing()

    async def _on_connectivity_change(self, online: bool) -> None:
        if online:
            logger.info("Back online, processing delivery queue")
            self._backoff.reset()
            self.request_processing()

    # ── Inspection and recovery ───────────────────────────

    async def get_pending_count(self, user_id: str | None = None) -> int:
        return await self._repo.count_by_status("pending", user_id=user_id)

    async def get_failed(self, user_id: str | None = None) -> list[DeliveryRecord]:
        return await self._repo.list_failed(user_id)

    async def recover_stale(self) -> int:
        """Release records left in ``sending`` by a crashed or cancelled pass.

        Runs on start and on every periodic tick.
        """
        recovered = await self._repo.recover_stale(
            self._config.stale_sending_seconds, self._config.max_retries,
        )
        if recovered:
            logger.warning("Recovered stale sending records", count=recovered)
        return recovered

    async def retry_failed(self, record_id: int) -> bool:
        """Re-arm a failed record with a fresh retry budget and process it."""
        rearmed = await self._repo.rearm(record_id)
        if rearmed:
            logger.info("Failed record re-armed", record_id=record_id)
            self.request_processing()
        return rearmed
