"""
Alert pipeline facade.

Wires the weather provider, repositories, dispatcher, delivery queue,
connectivity monitor, and monitoring service into one object and exposes
the operations an application calls: run a cycle, read history, inspect
the delivery queue, and manage tracked cities and settings.

Features:
- Built from Settings with create_pipeline()
- Start/stop lifecycle for background delivery and scheduling
- Every collaborator injectable for tests
"""

from dataclasses import dataclass
from typing import Any

import structlog

from src.alerts.config import AlertConfig
from src.alerts.repository import AlertHistoryRepository, AlertSettingsRepository
from src.alerts.schemas import Alert, AlertSettings
from src.cities.repository import TrackedCityRepository
from src.cities.schemas import TrackedCity
from src.config.settings import Settings, get_settings
from src.delivery.config import DeliveryConfig
from src.delivery.connectivity import ConnectivityMonitor
from src.delivery.queue import DeliveryQueue
from src.delivery.repository import DeliveryRepository
from src.delivery.schemas import DeliveryRecord
from src.monitoring.config import MonitoringConfig
from src.monitoring.scheduler import MonitoringScheduler
from src.monitoring.service import MonitoringService
from src.notifications.dispatcher import NotificationDispatcher
from src.notifications.identity import IdentityResolver, StaticIdentityResolver
from src.notifications.tracker import SentAlertTracker
from src.notifications.transports import (
    EmailTransport,
    HttpEmailTransport,
    LocalNotificationHandler,
    LocalNotificationTransport,
    SmtpEmailTransport,
    WebPushTransport,
)
from src.storage.database import Database
from src.weather.provider import HttpWeatherProvider, WeatherProvider

logger = structlog.get_logger(__name__)


@dataclass
class PipelineComponents:
    """Collaborators the facade delegates to."""

    database: Database
    weather_provider: WeatherProvider
    city_repo: TrackedCityRepository
    settings_repo: AlertSettingsRepository
    history_repo: AlertHistoryRepository
    delivery_queue: DeliveryQueue
    dispatcher: NotificationDispatcher
    monitoring: MonitoringService
    connectivity: ConnectivityMonitor
    email_transport: EmailTransport


class AlertPipeline:
    """
    Entry point for the weather alert pipeline.

    Usage:
        pipeline = create_pipeline(identity=StaticIdentityResolver({"u1": "a@b.c"}))
        await pipeline.start()
        alerts = await pipeline.run_monitoring_cycle("u1", current_city="Paris")
        await pipeline.stop()
    """

    def __init__(self, components: PipelineComponents) -> None:
        self._c = components
        self._scheduler: MonitoringScheduler | None = None
        self._started = False

    @property
    def components(self) -> PipelineComponents:
        return self._c

    @property
    def monitoring(self) -> MonitoringService:
        return self._c.monitoring

    @property
    def delivery_queue(self) -> DeliveryQueue:
        return self._c.delivery_queue

    @property
    def connectivity(self) -> ConnectivityMonitor:
        return self._c.connectivity

    # ── Lifecycle ─────────────────────────────────────────

    async def connect(self) -> None:
        """Connect the database only (for one-shot commands)."""
        await self._c.database.connect()

    async def start(self, connect_database: bool = True) -> None:
        """Connect the database and start connectivity probing and the delivery queue."""
        if self._started:
            return
        if connect_database:
            await self.connect()
        await self._c.connectivity.start()
        await self._c.delivery_queue.start()
        self._started = True
        logger.info("Alert pipeline started")

    async def start_scheduler(
        self,
        user_ids: list[str],
        interval_seconds: float | None = None,
        config: MonitoringConfig | None = None,
    ) -> MonitoringScheduler:
        """Run monitoring cycles for ``user_ids`` periodically and on reconnect."""
        self._scheduler = MonitoringScheduler(
            self._c.monitoring,
            user_ids,
            config=config,
            connectivity=self._c.connectivity,
            interval_seconds=interval_seconds,
        )
        await self._scheduler.start()
        return self._scheduler

    async def stop(self) -> None:
        if self._scheduler is not None:
            await self._scheduler.stop()
            self._scheduler = None
        await self._c.delivery_queue.stop()
        await self._c.connectivity.stop()
        await self._c.email_transport.close()
        await self._c.weather_provider.close()
        await self._c.database.close()
        self._started = False
        logger.info("Alert pipeline stopped")

    async def set_online(self, online: bool) -> None:
        """Forward an external connectivity event."""
        await self._c.connectivity.set_online(online)

    # ── Monitoring ────────────────────────────────────────

    async def run_monitoring_cycle(
        self,
        user_id: str,
        current_city: str | None = None,
        current_country: str | None = None,
    ) -> list[Alert]:
        return await self._c.monitoring.run_cycle(
            user_id, current_city=current_city, current_country=current_country,
        )

    # ── History ───────────────────────────────────────────

    async def get_alert_history(
        self, user_id: str, limit: int | None = None,
    ) -> list[Alert]:
        """Alerts for a user, newest first."""
        return await self._c.history_repo.get_history(user_id, limit=limit)

    async def mark_alert_read(self, user_id: str, alert_id: str) -> bool:
        return await self._c.history_repo.mark_read(user_id, alert_id)

    async def clear_alert_history(self, user_id: str) -> int:
        return await self._c.history_repo.clear(user_id)

    # ── Delivery ──────────────────────────────────────────

    async def get_pending_delivery_count(self, user_id: str) -> int:
        return await self._c.delivery_queue.get_pending_count(user_id)

    async def get_failed_deliveries(self, user_id: str) -> list[DeliveryRecord]:
        return await self._c.delivery_queue.get_failed(user_id)

    async def retry_failed_delivery(self, record_id: int) -> bool:
        return await self._c.delivery_queue.retry_failed(record_id)

    # ── Cities and settings ───────────────────────────────

    async def record_city_visit(
        self,
        user_id: str,
        city: str,
        country: str = "",
        event_id: str | None = None,
    ) -> TrackedCity:
        return await self._c.city_repo.record_visit(user_id, city, country, event_id)

    async def add_favorite_city(
        self, user_id: str, city: str, country: str = "",
    ) -> TrackedCity:
        return await self._c.city_repo.add_favorite(user_id, city, country)

    async def remove_city(self, user_id: str, city: str, country: str = "") -> bool:
        return await self._c.city_repo.remove(user_id, city, country)

    async def get_tracked_cities(self, user_id: str, scope: str = "all") -> list[TrackedCity]:
        return await self._c.city_repo.get_tracked(user_id, scope)

    async def get_alert_settings(self, user_id: str) -> AlertSettings:
        return await self._c.settings_repo.get(user_id)

    async def save_alert_settings(self, settings: AlertSettings) -> None:
        await self._c.settings_repo.save(settings)

    async def health_check(self) -> dict[str, Any]:
        return {
            "database": await self._c.database.health_check(),
            "online": self._c.connectivity.is_online,
        }


def create_email_transport(settings: Settings, timeout: float) -> EmailTransport:
    """SMTP or HTTP email transport, per ``settings.email_transport``."""
    if settings.email_transport == "http":
        return HttpEmailTransport(settings.notifications_api_url, timeout=timeout)

    if not settings.smtp_configured:
        logger.warning("SMTP credentials not configured; email sends will fail")
    return SmtpEmailTransport(
        smtp_server=settings.smtp_server,
        smtp_port=settings.smtp_port,
        smtp_username=settings.smtp_username,
        smtp_password=settings.smtp_password,
        from_address=settings.smtp_from_address,
        from_name=settings.smtp_from_name,
        use_tls=settings.smtp_use_tls,
        timeout=timeout,
    )


def create_pipeline(
    settings: Settings | None = None,
    database: Database | None = None,
    identity: IdentityResolver | None = None,
    local_handler: LocalNotificationHandler | None = None,
    weather_provider: WeatherProvider | None = None,
    email_transport: EmailTransport | None = None,
    alert_config: AlertConfig | None = None,
    delivery_config: DeliveryConfig | None = None,
    monitoring_config: MonitoringConfig | None = None,
) -> AlertPipeline:
    """Build an AlertPipeline from settings, overriding any collaborator given."""
    settings = settings or get_settings()
    alert_config = alert_config or AlertConfig()
    delivery_config = delivery_config or DeliveryConfig()
    monitoring_config = monitoring_config or MonitoringConfig()

    database = database or Database(
        database_url=str(settings.database_url),
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
    )
    provider = weather_provider or HttpWeatherProvider(
        settings.weather_api_url, timeout=settings.weather_api_timeout,
    )
    connectivity = ConnectivityMonitor(
        probe_url=settings.connectivity_probe_url,
        probe_interval=settings.connectivity_probe_interval,
    )

    transport = email_transport or create_email_transport(
        settings, delivery_config.send_timeout_seconds,
    )
    queue = DeliveryQueue(
        DeliveryRepository(database),
        transport,
        connectivity=connectivity,
        config=delivery_config,
        app_name=settings.smtp_from_name,
    )

    push_transport = None
    if settings.push_api_url:
        push_transport = WebPushTransport(settings.push_api_url, timeout=settings.push_timeout)

    dispatcher = NotificationDispatcher(
        delivery_queue=queue,
        identity=identity or StaticIdentityResolver(),
        tracker=SentAlertTracker(),
        local_transport=LocalNotificationTransport(local_handler),
        push_transport=push_transport,
    )

    city_repo = TrackedCityRepository(
        database, max_searched=monitoring_config.max_searched_cities,
    )
    settings_repo = AlertSettingsRepository(database, alert_config)
    history_repo = AlertHistoryRepository(database, alert_config)

    monitoring = MonitoringService(
        provider,
        city_repo,
        settings_repo,
        history_repo,
        dispatcher,
        config=monitoring_config,
        alert_config=alert_config,
    )

    return AlertPipeline(
        PipelineComponents(
            database=database,
            weather_provider=provider,
            city_repo=city_repo,
            settings_repo=settings_repo,
            history_repo=history_repo,
            delivery_queue=queue,
            dispatcher=dispatcher,
            monitoring=monitoring,
            connectivity=connectivity,
            email_transport=transport,
        )
    )
