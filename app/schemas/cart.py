# app/schemas/cart.py
import uuid
from datetime import datetime

from pydantic import ConfigDict
from sqlmodel import SQLModel

from app.schemas.common import ActionResult


class CartItemCreate(SQLModel):
    """
    Payload for adding to cart.

    quantity is range-checked by the service so that a bad value is
    reported as InvalidQuantity like every other cart error.
    """

    model_config = ConfigDict(extra="forbid")

    product_id: uuid.UUID
    quantity: int = 1


class CartItemUpdate(SQLModel):
    """
    Payload for updating quantity of a cart line.
    """

    model_config = ConfigDict(extra="forbid")

    quantity: int


class CartBulkRemove(SQLModel):
    model_config = ConfigDict(extra="forbid")

    line_ids: list[uuid.UUID]


class PricedCartLine(SQLModel):
    """
    A cart line joined with the product as it is *now*.

    Never stored; rebuilt on every read so prices and stock are never stale.
    """

    id: uuid.UUID
    buyer_id: str
    product_id: uuid.UUID
    quantity: int
    display_name: str
    unit_price: int
    available_quantity: int
    is_purchasable: bool
    line_total: int
    created_at: datetime


class CartTotal(SQLModel):
    subtotal: int
    item_count: int


class CartSummary(SQLModel):
    """
    Full cart response model with totals.
    """

    success: bool = True
    items: list[PricedCartLine]
    subtotal: int
    item_count: int


class CartActionResult(ActionResult):
    quantity: int | None = None
