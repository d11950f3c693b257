"""
Active order API routes.
"""

from fastapi import APIRouter, HTTPException

from parcelwatch.db import DatabaseConnection, UnitOfWork
from parcelwatch.models.order import ActiveOrdersResponse, TrackingJourney

router = APIRouter()


def _check_db_available():
    """Check if database is available, raise 503 if not."""
    if not DatabaseConnection.is_initialized():
        raise HTTPException(status_code=503, detail="Database not available")


@router.get("/orders/active", response_model=ActiveOrdersResponse)
async def list_active_orders() -> ActiveOrdersResponse:
    """Return every order in the active cache."""
    _check_db_available()

    with UnitOfWork() as uow:
        orders = uow.orders.list_all()

    return ActiveOrdersResponse(orders=orders, total=len(orders))


@router.get("/orders/{order_id}/journey", response_model=TrackingJourney)
async def get_order_journey(order_id: str) -> TrackingJourney:
    """Return the cached carrier history of an active order."""
    _check_db_available()

    with UnitOfWork() as uow:
        order = uow.orders.get_by_id(order_id)
        if order is None:
            raise HTTPException(status_code=404, detail=f"Order not found: {order_id}")

        journey = uow.journeys.get(order.tracking_number) if order.tracking_number else None
        if journey is None:
            raise HTTPException(
                status_code=404, detail=f"No tracking history for order: {order_id}"
            )

    return journey
