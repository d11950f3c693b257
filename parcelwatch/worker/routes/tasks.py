"""
Manual trigger endpoints.

Cycles and manual checks share the orchestrator's single-flight lock: a
trigger that arrives while another run is in progress is rejected with 409.
"""

import asyncio
import logging

from fastapi import APIRouter, HTTPException

from parcelwatch.db import DatabaseConnection
from parcelwatch.engine import get_orchestrator
from parcelwatch.engine.errors import (
    CycleInProgressError,
    SessionDisabledError,
    SessionNotFoundError,
)
from parcelwatch.models.cycle import CycleSummary, CycleTrigger, SessionCheckResult

logger = logging.getLogger(__name__)

router = APIRouter()


def _check_db_available():
    """Check if database is available, raise 503 if not."""
    if not DatabaseConnection.is_initialized():
        raise HTTPException(status_code=503, detail="Database not available")


@router.post("/reconcile", response_model=CycleSummary)
async def reconcile() -> CycleSummary:
    """
    Run a reconciliation cycle now.

    Returns:
        CycleSummary of the completed cycle

    Raises:
        409 when another cycle is running, 503 on store timeout
    """
    _check_db_available()

    summary = await asyncio.to_thread(get_orchestrator().run_cycle, CycleTrigger.MANUAL)
    if summary.skipped:
        raise HTTPException(
            status_code=409, detail="A reconciliation cycle is already running"
        )

    return summary


@router.post("/sessions/{session_id}/check", response_model=SessionCheckResult)
async def check_session(session_id: str) -> SessionCheckResult:
    """Poll one session now; a pending session may be promoted."""
    _check_db_available()

    try:
        return await asyncio.to_thread(get_orchestrator().check_session, session_id)
    except CycleInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    except SessionDisabledError:
        raise HTTPException(
            status_code=409, detail=f"Session is disabled: {session_id}"
        )


@router.post("/check-pending", response_model=list[SessionCheckResult])
async def check_pending() -> list[SessionCheckResult]:
    """Poll every pending session once."""
    _check_db_available()

    try:
        return await asyncio.to_thread(get_orchestrator().check_pending)
    except CycleInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
