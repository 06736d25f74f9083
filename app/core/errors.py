# app/core/errors.py
"""
Error taxonomy for the checkout core.

Every failure a caller can observe is a ShopError subclass with:
  - kind:        stable machine-readable identifier ("InsufficientStock", ...)
  - status_code: HTTP status used by the API layer
  - message:     user-facing text (never contains internal exception text)
  - details:     kind-specific identifiers (order_id, amounts, ...)

Two kinds mark partial failures where a side effect already happened and
an operator must reconcile: OrderItemsPersistFailed and
PostPaymentPersistFailed. GatewayTimeout is indeterminate (the charge may
have succeeded remotely). None of these are ever retried automatically.
"""

from typing import Any

from fastapi import status


class ShopError(Exception):
    kind: str = "ShopError"
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "The request could not be completed."

    def __init__(self, message: str | None = None, **details: Any):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": False,
            "error": self.kind,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        return body


# ---- Validation (no side effect) ----


class Unauthenticated(ShopError):
    kind = "Unauthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Sign-in is required."


class InvalidQuantity(ShopError):
    kind = "InvalidQuantity"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Quantity must be at least 1."


class ProductUnavailable(ShopError):
    kind = "ProductUnavailable"
    status_code = status.HTTP_409_CONFLICT
    default_message = "The product was not found or is not currently for sale."


class InsufficientStock(ShopError):
    kind = "InsufficientStock"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, requested: int, available: int, message: str | None = None, **details: Any):
        super().__init__(
            message or f"Not enough stock (requested {requested}, available {available}).",
            requested=requested,
            available=available,
            **details,
        )
        self.requested = requested
        self.available = available


class NotFound(ShopError):
    """Used for both missing and not-owned rows, so existence never leaks."""

    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found or you do not have access to it."


class EmptyCart(ShopError):
    kind = "EmptyCart"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Your cart is empty. Add products before placing an order."


class LineInvalid(ShopError):
    kind = "LineInvalid"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, product_id: str, product_name: str | None, reason: str):
        name = product_name or "Unknown product"
        super().__init__(
            f'"{name}": {reason}',
            product_id=product_id,
            product_name=product_name,
            reason=reason,
        )


class NoChange(ShopError):
    kind = "NoChange"
    status_code = status.HTTP_409_CONFLICT
    default_message = "The order already has this status."


class IllegalTransition(ShopError):
    kind = "IllegalTransition"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, from_status: str, to_status: str, message: str | None = None):
        super().__init__(
            message or f"An order cannot move from {from_status} to {to_status}.",
            **{"from": from_status, "to": to_status},
        )
        self.from_status = from_status
        self.to_status = to_status


class AlreadyPaid(ShopError):
    kind = "AlreadyPaid"
    status_code = status.HTTP_409_CONFLICT
    default_message = "This order has already been paid."


class NotPayable(ShopError):
    kind = "NotPayable"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current_status: str, message: str | None = None):
        super().__init__(
            message or f"Orders in status {current_status} cannot be paid or cancelled here.",
            current_status=current_status,
        )
        self.current_status = current_status


class AmountMismatch(ShopError):
    kind = "AmountMismatch"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, expected: int, reported: int):
        super().__init__(
            "The payment amount does not match the order total.",
            expected=expected,
            reported=reported,
        )
        self.expected = expected
        self.reported = reported


class DuplicatePaymentKey(ShopError):
    kind = "DuplicatePaymentKey"
    status_code = status.HTTP_409_CONFLICT
    default_message = "This payment has already been applied to another order."


class InvalidRequest(ShopError):
    kind = "InvalidRequest"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "The request is invalid."


class InvalidShippingAddress(ShopError):
    kind = "InvalidShippingAddress"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "The shipping address is invalid."


# ---- Gateway ----


class GatewayRejected(ShopError):
    kind = "GatewayRejected"
    status_code = status.HTTP_402_PAYMENT_REQUIRED

    def __init__(self, message: str | None = None, code: str | None = None):
        super().__init__(message or "The payment was not approved.", code=code)
        self.code = code


class GatewayTimeout(ShopError):
    """The gateway did not answer in time. The charge may or may not exist."""

    kind = "GatewayTimeout"
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    default_message = (
        "We could not confirm the payment result. Please do not pay again; "
        "contact support so we can check the payment."
    )


class PaymentGatewayNotConfigured(ShopError):
    kind = "PaymentGatewayNotConfigured"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Payment is temporarily unavailable. Please contact support."


# ---- Partial failures (side effect happened, reconcile manually) ----


class OrderItemsPersistFailed(ShopError):
    kind = "OrderItemsPersistFailed"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = (
        "We could not save the items of your order. Please contact support "
        "with the order number."
    )


class PostPaymentPersistFailed(ShopError):
    kind = "PostPaymentPersistFailed"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = (
        "Your payment was approved but we could not update the order. "
        "Please contact support; do not pay again."
    )


# ---- Infrastructure ----


class StoreUnavailable(ShopError):
    kind = "StoreUnavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "The service is temporarily unavailable. Please try again shortly."
