# app/models/cart.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class CartItem(SQLModel, table=True):
    """
    Shopping cart entry for a buyer.
    One buyer cannot have 2 rows for the same product.

    No price is stored here: prices are always re-read from the catalog
    when the cart is rendered or checked out.
    """

    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("buyer_id", "product_id", name="uq_cart_items_buyer_product"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    buyer_id: str = Field(
        index=True,
        description="Opaque id of the authenticated buyer (JWT sub)",
    )

    product_id: uuid.UUID = Field(
        index=True,
        description="Weak reference to products.id; re-resolved on every read",
    )

    quantity: int = Field(
        gt=0,
        description="Must be >= 1",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
