# app/schemas/payment.py
import uuid

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field


class Receipt(SQLModel):
    receipt_key: str | None = None
    receipt_url: str | None = None


class Fee(SQLModel):
    amount: int
    payer: str | None = None


class PaymentFailure(SQLModel):
    code: str
    message: str


class PaymentCancellation(SQLModel):
    amount: int
    reason: str
    cancelled_at: str


class PaymentRecord(SQLModel):
    """
    Canonical payment details, stored as JSON in orders.payment_info.

    Built from the gateway's confirm response, written once. Later
    cancellations are appended to `cancellations`; earlier fields are
    never overwritten.
    """

    amount: int
    method: str
    payment_key: str
    gateway_order_id: str
    receipt: Receipt | None = None
    fee: Fee | None = None
    failure: PaymentFailure | None = None
    cancellations: list[PaymentCancellation] = Field(default_factory=list)


class PaymentRequestResult(SQLModel):
    """What the client-side gateway widget needs to start a payment."""

    success: bool = True
    order_id: uuid.UUID
    amount: int
    order_name: str
    message: str


class PaymentConfirmRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    payment_key: str
    order_id: str
    amount: int

    @field_validator("payment_key")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("payment_key cannot be empty")
        return v


class PaymentCancelRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    reason: str | None = Field(default=None, max_length=200)
