"""
Command-line interface for weather-alerts.

Provides commands to run the monitoring service, run one-off cycles and
delivery passes, inspect history and the delivery queue, and initialize
the database.

Usage:
    weather-alerts init-db                      # Create tables
    weather-alerts run --user u1 --email a@b.c  # Monitor until stopped
    weather-alerts check --user u1 --city Paris # One monitoring cycle
    weather-alerts process-queue                # One delivery pass
    weather-alerts history --user u1            # Recent alerts
    weather-alerts health                       # Check dependencies
"""

import asyncio
import signal
import sys

import click

from src.config.settings import get_settings
from src.observability.logging import setup_logging
from src.observability.metrics import get_metrics


def _identity(users: tuple[str, ...], emails: tuple[str, ...]):
    """Map --user values to --email values positionally."""
    from src.notifications.identity import StaticIdentityResolver

    return StaticIdentityResolver(dict(zip(users, emails)))


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Weather Alerts - multi-city monitoring and alert delivery."""
    setup_logging("DEBUG" if debug else None)


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""
    from src.storage.database import Database
    from src.storage.schema import init_schema

    async def run():
        db = Database()
        await db.connect()
        try:
            await init_schema(db)
            click.echo("Database initialized successfully")
        finally:
            await db.close()

    asyncio.run(run())


@main.command()
@click.option("--user", "users", multiple=True, required=True, help="User to monitor (repeatable)")
@click.option("--email", "emails", multiple=True, help="Alert email for each --user, in order")
@click.option("--interval", default=None, type=float, help="Seconds between cycles")
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
def run(
    users: tuple[str, ...],
    emails: tuple[str, ...],
    interval: float | None,
    metrics: bool,
) -> None:
    """Run monitoring cycles and email delivery until stopped."""
    from src.services.alert_pipeline import create_pipeline

    async def serve():
        pipeline = create_pipeline(identity=_identity(users, emails))

        if metrics:
            get_metrics().start_server()

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop_event.set)

        await pipeline.start()
        try:
            await pipeline.start_scheduler(list(users), interval_seconds=interval)
            await stop_event.wait()
        finally:
            await pipeline.stop()

    asyncio.run(serve())


@main.command()
@click.option("--user", required=True, help="User to check")
@click.option("--city", default=None, help="City the user is in now")
@click.option("--country", default=None, help="Country of --city")
@click.option("--email", default=None, help="Address for alert emails")
def check(user: str, city: str | None, country: str | None, email: str | None) -> None:
    """Run one monitoring cycle and print the alerts."""
    from src.services.alert_pipeline import create_pipeline

    async def run_check():
        emails = (email,) if email else ()
        pipeline = create_pipeline(identity=_identity((user,), emails))
        await pipeline.connect()
        try:
            alerts = await pipeline.run_monitoring_cycle(
                user, current_city=city, current_country=country,
            )
            # The dispatcher already started a pass for any new email
            outcomes = await pipeline.delivery_queue.wait_idle()
            if not outcomes:
                outcomes = await pipeline.delivery_queue.process_queue(user)
            report = pipeline.monitoring.last_report
        finally:
            await pipeline.stop()

        if not alerts:
            click.echo("No alerts")
        for alert in alerts:
            click.echo(
                f"[{alert.severity:<6}] {alert.alert_type:<12} "
                f"{alert.city}, {alert.country}: {alert.message}"
            )

        if report is not None:
            click.echo("-" * 40)
            click.echo(f"Priority city:  {report.priority_city}")
            click.echo(f"Cities checked: {report.cities_checked}")
            if report.cities_failed:
                click.echo(f"Cities failed:  {', '.join(report.cities_failed)}")
            if report.degraded:
                click.echo(click.style("History write failed (degraded)", fg="yellow"))
        if outcomes:
            click.echo(f"Email delivery: {outcomes}")

    asyncio.run(run_check())


@main.command("process-queue")
@click.option("--user", default=None, help="Only this user's records")
def process_queue(user: str | None) -> None:
    """Run one email delivery pass."""
    from src.services.alert_pipeline import create_pipeline

    async def run():
        pipeline = create_pipeline()
        await pipeline.connect()
        try:
            outcomes = await pipeline.delivery_queue.process_queue(user)
        finally:
            await pipeline.stop()

        if not outcomes:
            click.echo("Nothing to deliver")
            return
        for outcome, count in sorted(outcomes.items()):
            click.echo(f"  {outcome}: {count}")

    asyncio.run(run())


@main.command()
@click.option("--user", required=True, help="User whose history to show")
@click.option("--limit", default=20, help="Maximum alerts to show")
def history(user: str, limit: int) -> None:
    """Show a user's alert history, newest first."""
    from src.services.alert_pipeline import create_pipeline

    async def run():
        pipeline = create_pipeline()
        await pipeline.connect()
        try:
            alerts = await pipeline.get_alert_history(user, limit=limit)
        finally:
            await pipeline.stop()

        if not alerts:
            click.echo("No alert history")
            return
        for alert in alerts:
            marker = " " if alert.read else "*"
            click.echo(
                f"{marker} {alert.created_at:%Y-%m-%d %H:%M} "
                f"{alert.alert_type:<12} {alert.city}: {alert.message}"
            )

    asyncio.run(run())


@main.command()
@click.option("--user", required=True, help="User whose queue to count")
def pending(user: str) -> None:
    """Show the number of emails waiting to be delivered."""
    from src.services.alert_pipeline import create_pipeline

    async def run():
        pipeline = create_pipeline()
        await pipeline.connect()
        try:
            count = await pipeline.get_pending_delivery_count(user)
        finally:
            await pipeline.stop()
        click.echo(f"Pending deliveries: {count}")

    asyncio.run(run())


@main.command()
@click.option("--user", required=True, help="User whose failed emails to list")
def failed(user: str) -> None:
    """List emails that permanently failed."""
    from src.services.alert_pipeline import create_pipeline

    async def run():
        pipeline = create_pipeline()
        await pipeline.connect()
        try:
            records = await pipeline.get_failed_deliveries(user)
        finally:
            await pipeline.stop()

        if not records:
            click.echo("No failed deliveries")
            return
        for record in records:
            click.echo(
                f"#{record.record_id} {record.alert_type} {record.city} "
                f"-> {record.recipient} (attempts: {record.retry_count}) "
                f"{record.last_error or ''}"
            )

    asyncio.run(run())


@main.command()
@click.argument("record_id", type=int)
def retry(record_id: int) -> None:
    """Re-arm a failed email and try it again."""
    from src.services.alert_pipeline import create_pipeline

    async def run():
        pipeline = create_pipeline()
        await pipeline.connect()
        try:
            rearmed = await pipeline.retry_failed_delivery(record_id)
            if rearmed:
                await pipeline.delivery_queue.wait_idle()
        finally:
            await pipeline.stop()

        if rearmed:
            click.echo(f"Record {record_id} re-armed")
        else:
            click.echo(f"Record {record_id} is not a failed delivery")
            sys.exit(1)

    asyncio.run(run())


@main.command()
@click.option("--user", required=True, help="Owner of the city")
@click.option("--city", required=True, help="City name")
@click.option("--country", default="", help="Country")
@click.option("--favorite", is_flag=True, help="Pin as favorite")
def track(user: str, city: str, country: str, favorite: bool) -> None:
    """Track a city (as a search visit, or a favorite)."""
    from src.services.alert_pipeline import create_pipeline

    async def run():
        pipeline = create_pipeline()
        await pipeline.connect()
        try:
            if favorite:
                tracked = await pipeline.add_favorite_city(user, city, country)
            else:
                tracked = await pipeline.record_city_visit(user, city, country)
        finally:
            await pipeline.stop()
        click.echo(f"Tracking {tracked.display_name} (visits: {tracked.check_count})")

    asyncio.run(run())


@main.command()
def health() -> None:
    """Check health of all dependencies."""
    import httpx
    import structlog
    logger = structlog.get_logger()

    async def run_check():
        results: dict[str, bool] = {}
        settings = get_settings()

        # Check PostgreSQL
        try:
            from src.storage.database import Database
            db = Database()
            await db.connect()
            results["postgres"] = await db.health_check()
            await db.close()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        # Check weather backend
        try:
            async with httpx.AsyncClient(timeout=settings.weather_api_timeout) as client:
                resp = await client.get(settings.weather_api_url)
            results["weather_api"] = resp.status_code < 500
        except httpx.HTTPError as e:
            results["weather_api"] = False
            logger.error("Weather API health check failed", error=str(e))

        results["smtp_configured"] = settings.smtp_configured
        results["push_configured"] = settings.push_api_url is not None

        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)

        all_healthy = True
        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
            if name in ("postgres", "weather_api") and not status:
                all_healthy = False

        click.echo("-" * 40)

        if all_healthy:
            click.echo(click.style("All core services healthy!", fg="green"))
            sys.exit(0)
        else:
            click.echo(click.style("Some services unhealthy!", fg="red"))
            sys.exit(1)

    asyncio.run(run_check())


if __name__ == "__main__":
    main()
