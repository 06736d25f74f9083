# app/schemas/order.py
import re
import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

OrderStatusValue = Literal["pending", "confirmed", "shipped", "delivered", "cancelled"]
PaymentStatusValue = Literal["pending", "success", "failed", "cancelled"]

PHONE_PATTERN = re.compile(r"^01[0-9]-?[0-9]{3,4}-?[0-9]{4}$")
POSTAL_CODE_PATTERN = re.compile(r"^\d{5,6}$")


class ShippingAddress(SQLModel):
    """
    Delivery destination, stored as JSON on the order.

    Rules:
      - recipient_name: 1..50 chars
      - phone: Korean mobile number, dashes optional (010-1234-5678)
      - postal_code: 5 or 6 digits
      - address_line: 1..200 chars (road address)
      - detail_line: 1..100 chars (unit, floor, ...)
    """

    model_config = ConfigDict(extra="forbid")

    recipient_name: str = Field(max_length=50)
    phone: str
    postal_code: str
    address_line: str = Field(max_length=200)
    detail_line: str = Field(max_length=100)

    @field_validator("recipient_name", "address_line", "detail_line")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v: str) -> str:
        v = v.strip()
        if not PHONE_PATTERN.match(v):
            raise ValueError("invalid phone number (e.g. 010-1234-5678)")
        return v

    @field_validator("postal_code")
    @classmethod
    def valid_postal_code(cls, v: str) -> str:
        v = v.strip()
        if not POSTAL_CODE_PATTERN.match(v):
            raise ValueError("postal code must be 5 or 6 digits")
        return v


class OrderCreate(SQLModel):
    """
    Payload for creating an order from the current cart.

    Backend derives:
      - buyer_id from token
      - status = 'pending'
      - total_amount and items from the live cart snapshot
    """

    model_config = ConfigDict(extra="forbid")

    shipping_address: ShippingAddress
    note: str | None = Field(default=None, max_length=500)

    @field_validator("note", mode="before")
    @classmethod
    def normalize_note(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class CheckoutResult(SQLModel):
    success: bool = True
    order_id: uuid.UUID
    total_amount: int
    message: str


class OrderRead(SQLModel):
    """
    Representation of an order header (without items).
    """

    id: uuid.UUID
    buyer_id: str
    total_amount: int
    status: OrderStatusValue
    status_label: str
    shipping_address: dict[str, Any] | None
    note: str | None
    payment_id: str | None
    payment_method: str | None
    payment_status: PaymentStatusValue | None
    paid_at: datetime | None
    payment_info: dict[str, Any] | None
    created_at: datetime
    updated_at: datetime


class OrderItemRead(SQLModel):
    """
    Representation of a single order line item.
    """

    id: uuid.UUID
    order_id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    quantity: int
    unit_price: int
    line_total: int
    created_at: datetime


class OrderWithItemsRead(OrderRead):
    """
    Full order view including items.
    """

    items: list[OrderItemRead]


class OrderStatusUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    status: OrderStatusValue
