# app/utils/orders.py
"""
Order status lifecycle.

    pending -> confirmed -> shipped -> delivered
       |          |           |
       +----------+-----------+--> cancelled

delivered and cancelled are terminal.
"""

import uuid
from enum import Enum

from app.core.errors import NotFound


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# Statuses from which the buyer may cancel through the payment flow.
# Cancelling after shipment goes through returns, not through payments.
PAYMENT_CANCELLABLE: frozenset[OrderStatus] = frozenset(
    {OrderStatus.PENDING, OrderStatus.CONFIRMED}
)

STATUS_LABELS: dict[OrderStatus, str] = {
    OrderStatus.PENDING: "Awaiting payment",
    OrderStatus.CONFIRMED: "Confirmed",
    OrderStatus.SHIPPED: "Shipped",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.CANCELLED: "Cancelled",
}


def can_transition(current: str, new: str) -> bool:
    """True only for edges in ALLOWED_TRANSITIONS. Same-state is never allowed."""
    try:
        current_status = OrderStatus(current)
        new_status = OrderStatus(new)
    except ValueError:
        return False
    if current_status == new_status:
        return False
    return new_status in ALLOWED_TRANSITIONS[current_status]


def status_label(status: str) -> str:
    try:
        return STATUS_LABELS[OrderStatus(status)]
    except ValueError:
        return status


def parse_order_id(raw: str | uuid.UUID) -> uuid.UUID:
    """
    Parse an order id from a path or payload.

    A malformed id is reported exactly like a missing order.
    """
    if isinstance(raw, uuid.UUID):
        return raw
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        raise NotFound("Order not found.")
