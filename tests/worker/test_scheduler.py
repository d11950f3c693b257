"""
Tests for the reconciliation scheduler.
"""

from unittest.mock import MagicMock, patch

import pytest

from parcelwatch.db.errors import StoreTimeoutError
from parcelwatch.models.cycle import CycleSummary, CycleTrigger
from parcelwatch.worker.scheduler import (
    CYCLE_JOB_ID,
    init_scheduler,
    run_scheduled_cycle,
    shutdown_scheduler,
)


@pytest.fixture
def mock_orchestrator():
    with patch("parcelwatch.worker.scheduler.get_orchestrator") as mock_get:
        orchestrator = MagicMock()
        mock_get.return_value = orchestrator
        yield orchestrator


class TestRunScheduledCycle:
    @pytest.mark.asyncio
    async def test_runs_scheduled_cycle(self, mock_orchestrator):
        summary = CycleSummary(trigger=CycleTrigger.SCHEDULED, new=1)
        mock_orchestrator.run_cycle.return_value = summary

        assert await run_scheduled_cycle() == summary
        mock_orchestrator.run_cycle.assert_called_once_with(CycleTrigger.SCHEDULED)

    @pytest.mark.asyncio
    async def test_store_timeout_is_contained(self, mock_orchestrator):
        mock_orchestrator.run_cycle.side_effect = StoreTimeoutError("pool exhausted")

        assert await run_scheduled_cycle() is None

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_contained(self, mock_orchestrator):
        mock_orchestrator.run_cycle.side_effect = RuntimeError("boom")

        assert await run_scheduled_cycle() is None


class TestInitScheduler:
    @pytest.mark.asyncio
    async def test_registers_single_interval_job(self):
        try:
            scheduler = init_scheduler(interval_minutes=5, first_run_delay_seconds=3600)

            assert init_scheduler() is scheduler
            job = scheduler.get_job(CYCLE_JOB_ID)
            assert job is not None
            assert job.trigger.interval.total_seconds() == 300
            assert job.max_instances == 2
        finally:
            shutdown_scheduler()
