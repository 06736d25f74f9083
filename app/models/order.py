# app/models/order.py
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class Order(SQLModel, table=True):
    """
    Customer order header.

    total_amount is fixed at checkout (sum of its lines) and never
    recomputed from the catalog. Orders are never removed; cancellation
    is a status value.
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    buyer_id: str = Field(
        index=True,
    )

    total_amount: int = Field(
        ge=0,
        description="Order total in the smallest currency unit",
    )

    # pending | confirmed | shipped | delivered | cancelled
    status: str = Field(
        default="pending",
        index=True,
        description="Order status lifecycle",
    )

    # {recipient_name, phone, postal_code, address_line, detail_line}
    shipping_address: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSON),
    )

    note: str | None = Field(
        default=None,
        description="Optional note / special instructions",
    )

    # True when checkout took the items out of products.stock_quantity;
    # cancelling from pending/confirmed gives them back.
    stock_reserved: bool = Field(default=False)

    # ---- Payment fields (written by the payment reconciler) ----

    # Gateway payment key; unique so one authorization confirms one order
    payment_id: str | None = Field(
        default=None,
        unique=True,
        index=True,
    )
    payment_method: str | None = Field(default=None)

    # pending | success | failed | cancelled
    payment_status: str | None = Field(default=None, index=True)
    paid_at: datetime | None = Field(default=None)
    payment_info: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSON),
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class OrderItem(SQLModel, table=True):
    """
    Line item inside an order.

    Freezes product name and unit price at purchase time, so later catalog
    edits (or deleting the product) never change a placed order.
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    product_id: uuid.UUID = Field(
        index=True,
    )

    product_name: str = Field(
        description="Product name at time of order",
    )

    quantity: int = Field(
        gt=0,
        description="Quantity ordered (>=1)",
    )

    unit_price: int = Field(
        ge=0,
        description="Unit price at time of order",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
