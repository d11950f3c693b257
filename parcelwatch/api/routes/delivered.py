"""
Delivered archive API routes.

The archive is paged newest first with a ``(delivered_at, id)`` cursor.
"""

from datetime import datetime

from fastapi import APIRouter, HTTPException, Query

from parcelwatch.db import DatabaseConnection, UnitOfWork
from parcelwatch.models.order import DeliveredPage, DeliveredRecord, DeliveredUpdate

router = APIRouter()


def _check_db_available():
    """Check if database is available, raise 503 if not."""
    if not DatabaseConnection.is_initialized():
        raise HTTPException(status_code=503, detail="Database not available")


@router.get("/delivered", response_model=DeliveredPage)
async def list_delivered(
    cursor: datetime | None = Query(
        default=None, description="delivered_at of the last record already seen"
    ),
    cursor_id: str | None = Query(
        default=None, description="id of the last record already seen"
    ),
    limit: int = Query(default=20, ge=1, le=100, description="Page size"),
) -> DeliveredPage:
    """
    Page through delivered orders, newest first.

    Returns 503 when the store query times out.
    """
    _check_db_available()

    with UnitOfWork() as uow:
        return uow.delivered.get_page(cursor=cursor, cursor_id=cursor_id, limit=limit)


@router.put("/delivered/{order_id}", response_model=DeliveredRecord)
async def update_delivered(order_id: str, update: DeliveredUpdate) -> DeliveredRecord:
    """Edit the archived snapshot of a delivered order."""
    _check_db_available()

    with UnitOfWork() as uow:
        record = uow.delivered.update(order_id, update)
        if record is None:
            raise HTTPException(
                status_code=404, detail=f"Delivered order not found: {order_id}"
            )
        uow.commit()

    return record


@router.delete("/delivered/{order_id}")
async def delete_delivered(order_id: str):
    """Remove an order from the delivered archive."""
    _check_db_available()

    with UnitOfWork() as uow:
        if not uow.delivered.delete_by_order_id(order_id):
            raise HTTPException(
                status_code=404, detail=f"Delivered order not found: {order_id}"
            )
        uow.commit()

    return {"success": True, "order_id": order_id}
