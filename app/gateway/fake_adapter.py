# app/gateway/fake_adapter.py
"""Configurable fake payment gateway for development and testing.

Simulates the confirm endpoint without any external calls. It can be
configured to approve, reject or time out, and records every call so
tests can assert the gateway was (or was not) contacted.
"""

from uuid import uuid4

from app.gateway.port import AuthorizationResult, GatewayUnavailableError, PaymentGateway


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    name = "fake"

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.should_time_out: bool = False
        self.failure_code: str = "REJECT_CARD_COMPANY"
        self.failure_message: str = "Card declined"
        self.method: str = "카드"
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool = True,
        failure_message: str = "Card declined",
        failure_code: str = "REJECT_CARD_COMPANY",
        should_time_out: bool = False,
        method: str = "카드",
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_message = failure_message
        self.failure_code = failure_code
        self.should_time_out = should_time_out
        self.method = method

    def authorize(self, payment_key: str, order_id: str, amount: int) -> AuthorizationResult:
        self.calls.append(
            {
                "method": "authorize",
                "payment_key": payment_key,
                "order_id": order_id,
                "amount": amount,
            }
        )

        if self.should_time_out:
            raise GatewayUnavailableError("fake gateway timed out")

        if not self.should_succeed:
            return AuthorizationResult(
                success=False,
                payment_key=payment_key,
                order_id=order_id,
                failure_code=self.failure_code,
                failure_message=self.failure_message,
            )

        receipt_key = f"fake_rcpt_{uuid4().hex[:12]}"
        return AuthorizationResult(
            success=True,
            payment_key=payment_key,
            order_id=order_id,
            method=self.method,
            total_amount=amount,
            receipt_key=receipt_key,
            receipt_url=f"https://dashboard.example.test/receipt/{receipt_key}",
            raw={"paymentKey": payment_key, "orderId": order_id, "totalAmount": amount},
        )
