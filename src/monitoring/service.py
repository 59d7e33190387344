"""Multi-city monitoring cycle.

One cycle, for one user:
1. Load alert settings (defaults on failure) and the tracked cities
2. Pick the priority city: the user's current city if given, else the
   most recently checked one
3. Start evaluations of every other city as background tasks
4. Evaluate the priority city in the foreground, save its alerts to
   history, and dispatch notifications for it alone
5. Wait for the other cities, save their alerts to history in one batch

Per-city failures are isolated: a city whose fetch or evaluation fails
contributes no alerts and the rest of the cycle carries on. A failed
history write marks the cycle degraded but never drops computed alerts.
"""

import asyncio
import time
from datetime import datetime, timezone

import structlog

from src.alerts.config import AlertConfig
from src.alerts.repository import AlertHistoryRepository, AlertSettingsRepository
from src.alerts.schemas import Alert, AlertSettings
from src.alerts.triggers import evaluate_weather
from src.cities.repository import TrackedCityRepository
from src.cities.schemas import TrackedCity
from src.monitoring.config import MonitoringConfig
from src.monitoring.schemas import CycleReport
from src.notifications.dispatcher import NotificationDispatcher
from src.observability.metrics import get_metrics
from src.weather.provider import WeatherProvider, WeatherProviderError

logger = structlog.get_logger(__name__)


def select_priority_city(
    cities: list[TrackedCity],
    user_id: str,
    current_city: str | None = None,
    current_country: str | None = None,
) -> TrackedCity:
    """Choose the single city allowed to trigger notifications.

    The user's current city wins; if it is not tracked a transient
    TrackedCity is returned (never persisted). Otherwise the city with the
    latest ``last_checked_at`` wins, ties going to the first in the list.
    """
    if current_city:
        for city in cities:
            if city.matches(current_city, current_country):
                return city
        return TrackedCity(
            city=current_city.strip(),
            country=(current_country or "").strip(),
            user_id=user_id,
        )

    priority = cities[0]
    for city in cities[1:]:
        if city.last_checked_at > priority.last_checked_at:
            priority = city
    return priority


class MonitoringService:
    """
    Runs monitoring cycles over a user's tracked cities.

    Usage:
        service = MonitoringService(provider, cities, settings, history, dispatcher)
        alerts = await service.run_cycle("user-1")
        print(service.last_report.to_dict())
    """

    def __init__(
        self,
        weather_provider: WeatherProvider,
        city_repo: TrackedCityRepository,
        settings_repo: AlertSettingsRepository,
        history_repo: AlertHistoryRepository,
        dispatcher: NotificationDispatcher,
        config: MonitoringConfig | None = None,
        alert_config: AlertConfig | None = None,
    ) -> None:
        self._provider = weather_provider
        self._cities = city_repo
        self._settings = settings_repo
        self._history = history_repo
        self._dispatcher = dispatcher
        self._config = config or MonitoringConfig()
        self._alert_config = alert_config or AlertConfig()
        self._metrics = get_metrics()
        self._last_report: CycleReport | None = None

    @property
    def last_report(self) -> CycleReport | None:
        """Report of the most recently finished cycle."""
        return self._last_report

    async def run_cycle(
        self,
        user_id: str,
        current_city: str | None = None,
        current_country: str | None = None,
        scope: str | None = None,
    ) -> list[Alert]:
        """Evaluate every tracked city for a user.

        Args:
            user_id: User whose cities are checked.
            current_city: City the user is in now (becomes the priority city).
            current_country: Country of ``current_city``.
            scope: ``"favorites"`` or ``"all"`` (config default when None).

        Returns:
            Priority-city alerts followed by alerts for every other city.
        """
        with structlog.contextvars.bound_contextvars(user_id=user_id):
            return await self._run_cycle(user_id, current_city, current_country, scope)

    async def _run_cycle(
        self,
        user_id: str,
        current_city: str | None,
        current_country: str | None,
        scope: str | None,
    ) -> list[Alert]:
        start = time.monotonic()
        report = CycleReport(user_id=user_id, started_at=datetime.now(timezone.utc))

        settings = await self._load_settings(user_id)
        cities = await self._load_cities(user_id, scope or self._config.city_scope, settings)

        if not cities:
            logger.debug("No tracked cities, nothing to monitor")
            self._finish(report, start)
            return []

        priority = select_priority_city(cities, user_id, current_city, current_country)
        others = [c for c in cities if c is not priority]
        report.priority_city = priority.display_name

        # Fan out every other city before the priority city is awaited
        semaphore = asyncio.Semaphore(self._config.max_concurrent_evaluations)
        tasks = [
            asyncio.create_task(self._evaluate_bounded(city, settings, semaphore, report))
            for city in others
        ]

        try:
            priority_alerts = await self._evaluate_city(priority, settings, report)
            if priority_alerts:
                await self._save_history(user_id, priority_alerts, report)
                await self._dispatch(user_id, priority_alerts, settings, report)

            results = await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        other_alerts: list[Alert] = []
        for city, result in zip(others, results):
            if isinstance(result, BaseException):
                logger.error(
                    "City task crashed", city=city.display_name, error=str(result),
                )
                self._record_failure(report, city, "crash")
                continue
            other_alerts.extend(result)

        if other_alerts:
            await self._save_history(user_id, other_alerts, report)

        self._finish(report, start)
        return priority_alerts + other_alerts

    # ── Loading ──────────────────────────────────────────────

    async def _load_settings(self, user_id: str) -> AlertSettings:
        try:
            return await self._settings.get(user_id)
        except Exception as e:
            logger.warning("Failed to load alert settings, using defaults", error=str(e))
            return AlertSettings.defaults(user_id, self._alert_config)

    async def _load_cities(
        self, user_id: str, scope: str, settings: AlertSettings,
    ) -> list[TrackedCity]:
        try:
            cities = await self._cities.get_tracked(user_id, scope)
        except Exception as e:
            logger.error("Failed to load tracked cities", error=str(e))
            return []
        return [c for c in cities if settings.monitors(c.display_name)]

    # ── Evaluation ───────────────────────────────────────────

    async def _evaluate_bounded(
        self,
        city: TrackedCity,
        settings: AlertSettings,
        semaphore: asyncio.Semaphore,
        report: CycleReport,
    ) -> list[Alert]:
        async with semaphore:
            return await self._evaluate_city(city, settings, report)

    async def _evaluate_city(
        self,
        city: TrackedCity,
        settings: AlertSettings,
        report: CycleReport,
    ) -> list[Alert]:
        """Fetch and evaluate one city. Never raises; failures yield []."""
        report.cities_checked += 1
        try:
            alerts = await asyncio.wait_for(
                self._fetch_and_evaluate(city, settings),
                timeout=self._config.city_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "City evaluation timed out",
                city=city.display_name,
                timeout=self._config.city_timeout_seconds,
            )
            self._record_failure(report, city, "timeout")
            return []
        except WeatherProviderError as e:
            logger.warning("Weather fetch failed", city=city.display_name, error=str(e))
            self._record_failure(report, city, "provider")
            return []
        except Exception:
            logger.exception("City evaluation failed", city=city.display_name)
            self._record_failure(report, city, "evaluation")
            return []

        report.alerts_by_city[city.display_name] = len(alerts)
        for alert in alerts:
            self._metrics.record_alert(alert.alert_type, alert.severity)
        return alerts

    async def _fetch_and_evaluate(
        self, city: TrackedCity, settings: AlertSettings,
    ) -> list[Alert]:
        country = city.country or None
        weather, forecast = await asyncio.gather(
            self._provider.get_current_weather(city.city, country),
            self._provider.get_forecast(city.city, country),
        )
        if weather is None:
            logger.info("No weather data for city", city=city.display_name)
            return []

        alerts = evaluate_weather(weather, forecast, settings, self._alert_config)
        for alert in alerts:
            alert.country = city.country
        return alerts

    def _record_failure(self, report: CycleReport, city: TrackedCity, error_type: str) -> None:
        report.cities_failed.append(city.display_name)
        report.alerts_by_city[city.display_name] = 0
        self._metrics.record_city_error(error_type)

    # ── Side effects ─────────────────────────────────────────

    async def _save_history(
        self, user_id: str, alerts: list[Alert], report: CycleReport,
    ) -> None:
        try:
            inserted = await self._history.save_batch(user_id, alerts)
            logger.debug("Alerts saved to history", count=inserted)
        except Exception as e:
            report.history_failures += 1
            self._metrics.history_write_failures.inc()
            logger.error(
                "Failed to save alert history",
                alerts=len(alerts),
                error=str(e),
            )

    async def _dispatch(
        self,
        user_id: str,
        alerts: list[Alert],
        settings: AlertSettings,
        report: CycleReport,
    ) -> None:
        try:
            result = await self._dispatcher.dispatch_batch(alerts, settings, user_id)
        except Exception as e:
            logger.error("Notification dispatch failed", error=str(e))
            return
        report.email_record_id = result.email_record_id
        report.push_sent = result.push_sent

    def _finish(self, report: CycleReport, start: float) -> None:
        report.duration_seconds = time.monotonic() - start
        self._last_report = report
        self._metrics.record_cycle(report.status, report.duration_seconds)
        logger.info(
            "Monitoring cycle complete",
            status=report.status,
            priority_city=report.priority_city,
            cities=report.cities_checked,
            failed=len(report.cities_failed),
            alerts=report.total_alerts,
            duration_ms=round(report.duration_seconds * 1000, 1),
        )
