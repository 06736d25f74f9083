# app/routers/orders.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import get_current_buyer_id
from app.database import get_session
from app.routers.deps import order_service as service
from app.schemas.order import (
    CheckoutResult,
    OrderCreate,
    OrderRead,
    OrderStatusUpdate,
    OrderStatusValue,
    OrderWithItemsRead,
)

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("/checkout", response_model=CheckoutResult)
def checkout(
    payload: OrderCreate,
    session: Session = Depends(get_session),
    buyer_id: str | None = Depends(get_current_buyer_id),
):
    """
    Create an order from the current buyer's cart.
    """
    return service.build(session, buyer_id, payload)


@router.get("", response_model=list[OrderRead])
def list_my_orders(
    status: OrderStatusValue | None = None,
    session: Session = Depends(get_session),
    buyer_id: str | None = Depends(get_current_buyer_id),
):
    """
    List the buyer's orders (without items), newest first.
    """
    return service.list_orders(session, buyer_id, status)


@router.get("/{order_id}", response_model=OrderWithItemsRead)
def get_my_order(
    order_id: str,
    session: Session = Depends(get_session),
    buyer_id: str | None = Depends(get_current_buyer_id),
):
    """
    Get a single order (with items) belonging to the current buyer.
    """
    return service.get_order(session, buyer_id, order_id)


@router.patch("/{order_id}/status", response_model=OrderRead)
def update_order_status(
    order_id: str,
    payload: OrderStatusUpdate,
    session: Session = Depends(get_session),
    buyer_id: str | None = Depends(get_current_buyer_id),
):
    """
    Update order status with the lifecycle state machine.

      pending   -> confirmed, cancelled

      confirmed -> shipped, cancelled

      shipped   -> delivered, cancelled

      delivered, cancelled -> (no change)
    """
    return service.transition(session, buyer_id, order_id, payload.status)
