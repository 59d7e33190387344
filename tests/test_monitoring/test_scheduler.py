"""Tests for MonitoringScheduler."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.delivery.connectivity import ConnectivityMonitor
from src.monitoring.scheduler import MonitoringScheduler


@pytest.fixture
def mock_service():
    service = MagicMock()
    service.run_cycle = AsyncMock(return_value=[])
    return service


class TestRunOnce:

    @pytest.mark.asyncio
    async def test_runs_every_user(self, mock_service):
        scheduler = MonitoringScheduler(mock_service, ["u1", "u2"])
        scheduler.add_user("u3")
        scheduler.add_user("u1")

        await scheduler.run_once()

        users = [c.args[0] for c in mock_service.run_cycle.await_args_list]
        assert users == ["u1", "u2", "u3"]
        assert scheduler.cycles_run == 3

    @pytest.mark.asyncio
    async def test_passes_current_location(self, mock_service):
        scheduler = MonitoringScheduler(mock_service, ["u1"])
        scheduler.set_current_location("u1", "Paris", "FR")

        await scheduler.run_once()
        mock_service.run_cycle.assert_awaited_with(
            "u1", current_city="Paris", current_country="FR",
        )

        scheduler.set_current_location("u1", None)
        await scheduler.run_once()
        mock_service.run_cycle.assert_awaited_with(
            "u1", current_city=None, current_country=None,
        )

    @pytest.mark.asyncio
    async def test_failing_user_does_not_stop_round(self, mock_service):
        mock_service.run_cycle.side_effect = [RuntimeError("boom"), []]
        scheduler = MonitoringScheduler(mock_service, ["u1", "u2"])

        await scheduler.run_once()

        assert mock_service.run_cycle.await_count == 2

    @pytest.mark.asyncio
    async def test_skipped_while_offline(self, mock_service):
        connectivity = ConnectivityMonitor(initially_online=False)
        scheduler = MonitoringScheduler(mock_service, ["u1"], connectivity=connectivity)

        await scheduler.run_once()

        mock_service.run_cycle.assert_not_awaited()


class TestLoop:

    @pytest.mark.asyncio
    async def test_start_runs_immediately_and_stop_cancels(self, mock_service):
        scheduler = MonitoringScheduler(mock_service, ["u1"], interval_seconds=3600)
        await scheduler.start()
        await asyncio.sleep(0.01)

        assert scheduler.is_running
        assert scheduler.cycles_run == 1

        await scheduler.stop()
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_reconnect_triggers_round(self, mock_service):
        connectivity = ConnectivityMonitor(initially_online=False)
        scheduler = MonitoringScheduler(
            mock_service, ["u1"], connectivity=connectivity, interval_seconds=3600,
        )
        await scheduler.start()
        await asyncio.sleep(0.01)
        mock_service.run_cycle.assert_not_awaited()

        await connectivity.set_online(True)
        await asyncio.sleep(0.01)

        mock_service.run_cycle.assert_awaited_once()
        await scheduler.stop()
