# app/routers/cart.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import get_current_buyer_id
from app.database import get_session
from app.routers.deps import cart_service as service
from app.schemas.cart import (
    CartActionResult,
    CartBulkRemove,
    CartItemCreate,
    CartItemUpdate,
    CartSummary,
    CartTotal,
)
from app.schemas.common import ActionResult

router = APIRouter(prefix="/cart", tags=["Cart"])


@router.get("", response_model=CartSummary)
def get_my_cart(
    session: Session = Depends(get_session),
    buyer_id: str | None = Depends(get_current_buyer_id),
):
    """
    Get the current buyer's cart, priced with live catalog data.
    """
    return service.summary(session, buyer_id)


@router.get("/total", response_model=CartTotal)
def get_cart_total(
    session: Session = Depends(get_session),
    buyer_id: str | None = Depends(get_current_buyer_id),
):
    return service.total(session, buyer_id)


@router.post("", response_model=CartActionResult)
def add_to_cart(
    payload: CartItemCreate,
    session: Session = Depends(get_session),
    buyer_id: str | None = Depends(get_current_buyer_id),
):
    """
    Add product to the current buyer's cart.

    Adding a product that is already in the cart increases its quantity.
    """
    return service.add(session, buyer_id, payload.product_id, payload.quantity)


@router.patch("/{line_id}", response_model=CartActionResult)
def update_cart_item(
    line_id: uuid.UUID,
    payload: CartItemUpdate,
    session: Session = Depends(get_session),
    buyer_id: str | None = Depends(get_current_buyer_id),
):
    return service.set_quantity(session, buyer_id, line_id, payload.quantity)


@router.delete("/{line_id}", response_model=ActionResult)
def remove_cart_item(
    line_id: uuid.UUID,
    session: Session = Depends(get_session),
    buyer_id: str | None = Depends(get_current_buyer_id),
):
    return service.remove(session, buyer_id, line_id)


@router.post("/remove", response_model=ActionResult)
def remove_cart_items(
    payload: CartBulkRemove,
    session: Session = Depends(get_session),
    buyer_id: str | None = Depends(get_current_buyer_id),
):
    """
    Remove several lines at once (e.g. "delete selected").
    """
    return service.remove_many(session, buyer_id, payload.line_ids)


@router.delete("", response_model=ActionResult)
def clear_cart(
    session: Session = Depends(get_session),
    buyer_id: str | None = Depends(get_current_buyer_id),
):
    return service.clear(session, buyer_id)
