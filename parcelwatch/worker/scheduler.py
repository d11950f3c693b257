"""
Interval scheduler for reconciliation cycles.

The cycle itself is synchronous (blocking HTTP and database calls), so the
job hands it to a worker thread and the event loop stays responsive.
"""

import asyncio
import logging
from datetime import datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from parcelwatch.config import (
    CYCLE_INTERVAL_MINUTES,
    FIRST_CYCLE_DELAY_SECONDS,
    SCHEDULER_TIMEZONE,
)
from parcelwatch.db.errors import StoreTimeoutError
from parcelwatch.engine import get_orchestrator
from parcelwatch.models.cycle import CycleSummary, CycleTrigger

logger = logging.getLogger(__name__)

CYCLE_JOB_ID = "reconciliation-cycle"

_scheduler: AsyncIOScheduler | None = None


async def run_scheduled_cycle() -> CycleSummary | None:
    """Scheduler job: run one cycle in a worker thread."""
    try:
        return await asyncio.to_thread(
            get_orchestrator().run_cycle, CycleTrigger.SCHEDULED
        )
    except StoreTimeoutError as e:
        logger.error("Scheduled cycle aborted by store timeout: %s", e)
    except Exception:
        logger.exception("Scheduled cycle failed")
    return None


def init_scheduler(
    interval_minutes: int = CYCLE_INTERVAL_MINUTES,
    first_run_delay_seconds: int = FIRST_CYCLE_DELAY_SECONDS,
) -> AsyncIOScheduler:
    """Start the interval scheduler (must be called with a running event loop)."""
    global _scheduler
    if _scheduler is not None:
        return _scheduler

    _scheduler = AsyncIOScheduler(timezone=SCHEDULER_TIMEZONE)
    _scheduler.add_job(
        run_scheduled_cycle,
        "interval",
        minutes=interval_minutes,
        id=CYCLE_JOB_ID,
        # Overlap is handled by the orchestrator's single-flight lock, which
        # records the skip
        max_instances=2,
        coalesce=True,
        next_run_time=datetime.now(_scheduler.timezone)
        + timedelta(seconds=first_run_delay_seconds),
    )
    _scheduler.start()
    logger.info("Scheduler started: cycle every %d minutes", interval_minutes)
    return _scheduler


def shutdown_scheduler():
    """Stop the scheduler if it is running."""
    global _scheduler
    if _scheduler is None:
        return
    _scheduler.shutdown(wait=False)
    _scheduler = None
