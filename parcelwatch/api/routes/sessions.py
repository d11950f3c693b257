"""
Marketplace session API routes.

Credentials are submitted here and queued as pending sessions.
"""

import asyncio
import re

from fastapi import APIRouter, HTTPException, Query

from parcelwatch.db import DatabaseConnection, UnitOfWork
from parcelwatch.engine import get_orchestrator
from parcelwatch.engine.errors import CycleInProgressError
from parcelwatch.models.session import (
    SessionStats,
    SessionStatus,
    SessionSubmitRequest,
    SessionSummary,
)

router = APIRouter()

MIN_CREDENTIAL_LENGTH = 10
MAX_CREDENTIAL_LENGTH = 5000
DANGEROUS_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (r"<script", r"javascript:", r"data:", r"vbscript:")
]


def _check_db_available():
    """Check if database is available, raise 503 if not."""
    if not DatabaseConnection.is_initialized():
        raise HTTPException(status_code=503, detail="Database not available")


def validate_credential(credential: str) -> str:
    """
    Validate a submitted credential.

    Returns:
        The trimmed credential

    Raises:
        HTTPException: 400 for empty, too short, too long or unsafe input
    """
    trimmed = (credential or "").strip()
    if len(trimmed) < MIN_CREDENTIAL_LENGTH:
        raise HTTPException(status_code=400, detail="Credential too short")
    if len(trimmed) > MAX_CREDENTIAL_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Credential too long (max {MAX_CREDENTIAL_LENGTH} chars)",
        )
    if any(pattern.search(trimmed) for pattern in DANGEROUS_PATTERNS):
        raise HTTPException(status_code=400, detail="Invalid credential format")
    return trimmed


@router.post("/sessions", status_code=201)
async def submit_session(request: SessionSubmitRequest):
    """
    Submit a marketplace credential.

    The session starts pending. With ``check_now`` it is polled right away
    and may be promoted to active (or disabled) before the response returns.
    """
    _check_db_available()
    credential = validate_credential(request.credential)

    orchestrator = get_orchestrator()
    session = orchestrator.sessions.submit(credential)
    response = {"id": session.id, "status": session.status.value}

    if request.check_now:
        try:
            result = await asyncio.to_thread(orchestrator.check_session, session.id)
        except CycleInProgressError:
            response["check"] = None
            response["message"] = "A cycle is running; the session stays queued"
            return response
        response["status"] = result.status.value
        response["check"] = result.model_dump(mode="json")

    return response


@router.get("/sessions", response_model=list[SessionSummary])
async def list_sessions(
    status: str | None = Query(default=None, description="Filter by status"),
) -> list[SessionSummary]:
    """List sessions, optionally filtered by status."""
    _check_db_available()

    session_status = None
    if status:
        try:
            session_status = SessionStatus(status)
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid status: {status}. Valid values: {[s.value for s in SessionStatus]}",
            )

    with UnitOfWork() as uow:
        if session_status:
            sessions = uow.sessions.get_by_status(session_status)
        else:
            sessions = uow.sessions.list_all()

    return [SessionSummary.from_session(s) for s in sessions]


@router.get("/sessions/stats", response_model=SessionStats)
async def session_stats() -> SessionStats:
    """Session counts per status plus the delivered archive size."""
    _check_db_available()
    return get_orchestrator().sessions.stats()


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str):
    """Delete a session together with the orders it owns."""
    _check_db_available()

    if not get_orchestrator().sessions.remove(session_id):
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")

    return {"success": True, "session_id": session_id}
