"""
Prometheus metrics for the weather alert pipeline.

Covers monitoring cycles, alert generation, per-city evaluation errors,
notification dispatch, and the email delivery queue. Exposed via HTTP
endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from src.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the alert pipeline.

    Usage:
        metrics = get_metrics()
        metrics.start_server()
        metrics.record_alert("SevereHeat", "High")
    """

    def __init__(self):
        self.cycles_run = Counter(
            "weather_alerts_cycles_total",
            "Monitoring cycles run",
            ["status"],  # ok, degraded, empty
        )

        self.cycle_latency = Histogram(
            "weather_alerts_cycle_latency_seconds",
            "Wall-clock duration of a monitoring cycle",
            buckets=LATENCY_BUCKETS,
        )

        self.alerts_generated = Counter(
            "weather_alerts_generated_total",
            "Alerts produced by the evaluator",
            ["alert_type", "severity"],
        )

        self.city_errors = Counter(
            "weather_alerts_city_errors_total",
            "Per-city evaluation failures",
            ["error_type"],
        )

        self.history_write_failures = Counter(
            "weather_alerts_history_write_failures_total",
            "Failed alert history batch writes",
        )

        self.notifications = Counter(
            "weather_alerts_notifications_total",
            "Notifications dispatched",
            ["channel", "status"],  # channel: local, push, email
        )

        self.delivery_attempts = Counter(
            "weather_alerts_delivery_attempts_total",
            "Email delivery attempts by outcome",
            ["outcome"],  # sent, retry, failed, skipped
        )

        self.delivery_pending = Gauge(
            "weather_alerts_delivery_pending",
            "Pending records seen by the last queue pass",
        )

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        port = port or get_settings().metrics_port
        start_http_server(port, registry=REGISTRY)
        logger.info("Prometheus metrics server started on port %d", port)

    def record_cycle(self, status: str, duration: float) -> None:
        self.cycles_run.labels(status=status).inc()
        self.cycle_latency.observe(duration)

    def record_alert(self, alert_type: str, severity: str) -> None:
        self.alerts_generated.labels(alert_type=alert_type, severity=severity).inc()

    def record_city_error(self, error_type: str) -> None:
        self.city_errors.labels(error_type=error_type).inc()

    def record_notification(self, channel: str, success: bool) -> None:
        self.notifications.labels(
            channel=channel, status="sent" if success else "failed",
        ).inc()

    def record_delivery(self, outcome: str) -> None:
        self.delivery_attempts.labels(outcome=outcome).inc()

    def set_pending_deliveries(self, count: int) -> None:
        self.delivery_pending.set(count)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
