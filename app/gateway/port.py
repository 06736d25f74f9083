# app/gateway/port.py
"""Payment gateway port (abstract interface).

The payment service only talks to this interface, so the Toss adapter
(production) and the fake adapter (dev/test) are interchangeable.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


class GatewayUnavailableError(Exception):
    """The gateway did not give a usable answer (timeout, transport error).

    The outcome of the charge is unknown: it may have been approved remotely.
    """


@dataclass(frozen=True)
class AuthorizationResult:
    """Result of confirming a previously initiated payment."""

    success: bool
    payment_key: str | None = None
    order_id: str | None = None
    method: str | None = None
    total_amount: int | None = None
    receipt_key: str | None = None
    receipt_url: str | None = None
    fee_amount: int | None = None
    fee_payer: str | None = None
    failure_code: str | None = None
    failure_message: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    name: str = "gateway"

    @abstractmethod
    def authorize(
        self,
        payment_key: str,
        order_id: str,
        amount: int,
    ) -> AuthorizationResult:
        """Approve a payment the buyer started in the client widget.

        Raises:
            GatewayUnavailableError: when no definitive answer was received.
        """
        ...
