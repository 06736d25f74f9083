# app/gateway/toss_adapter.py
"""Toss Payments adapter.

Calls POST {base_url}/payments/confirm with HTTP Basic auth, where the
username is the secret key and the password is empty.

Confirm is never retried here: a retry after a timeout could approve a
payment whose first attempt already went through. Idempotency on the
gateway side is keyed by paymentKey.

Only a 4xx reply is a definite rejection. A 5xx reply or an unreadable 2xx
body leaves the charge state unknown and raises GatewayUnavailableError.
"""

from typing import Any

import httpx

from app.core.logging import get_logger
from app.gateway.port import AuthorizationResult, GatewayUnavailableError, PaymentGateway

logger = get_logger(__name__)


class TossPaymentsGateway(PaymentGateway):
    name = "toss"

    def __init__(
        self,
        secret_key: str,
        base_url: str = "https://api.tosspayments.com/v1",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            auth=(secret_key, ""),
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def authorize(self, payment_key: str, order_id: str, amount: int) -> AuthorizationResult:
        logger.info("gateway.confirm.request", payment_key=payment_key, order_id=order_id, amount=amount)
        try:
            response = self._client.post(
                "/payments/confirm",
                json={"paymentKey": payment_key, "orderId": order_id, "amount": amount},
            )
        except httpx.TimeoutException as exc:
            logger.error("gateway.confirm.timeout", payment_key=payment_key, order_id=order_id)
            raise GatewayUnavailableError("payment gateway timed out") from exc
        except httpx.TransportError as exc:
            logger.error(
                "gateway.confirm.transport_error",
                payment_key=payment_key,
                order_id=order_id,
                error=str(exc),
            )
            raise GatewayUnavailableError("payment gateway unreachable") from exc

        if response.is_success:
            try:
                body = response.json()
            except ValueError as exc:
                # 2xx means approved; an unreadable body leaves us unable to record it
                raise GatewayUnavailableError("unreadable gateway response") from exc
            if not isinstance(body, dict):
                logger.error(
                    "gateway.confirm.unreadable_body",
                    payment_key=payment_key,
                    order_id=order_id,
                    body_type=type(body).__name__,
                )
                raise GatewayUnavailableError("unreadable gateway response")
            return self._parse_success(body)

        body = self._safe_json(response)
        if response.status_code >= 500:
            # Server-side failure: the approval may have happened before it broke
            logger.error(
                "gateway.confirm.server_error",
                payment_key=payment_key,
                order_id=order_id,
                http_status=response.status_code,
                code=body.get("code"),
            )
            raise GatewayUnavailableError(
                f"payment gateway server error ({response.status_code})"
            )

        logger.warning(
            "gateway.confirm.rejected",
            payment_key=payment_key,
            order_id=order_id,
            http_status=response.status_code,
            code=body.get("code"),
        )
        return AuthorizationResult(
            success=False,
            payment_key=payment_key,
            order_id=order_id,
            failure_code=body.get("code"),
            failure_message=body.get("message") or "Payment approval failed.",
            raw=body,
        )

    @staticmethod
    def _safe_json(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    @staticmethod
    def _parse_success(body: dict[str, Any]) -> AuthorizationResult:
        receipt = body.get("receipt") or {}
        fee = body.get("fee") or {}
        return AuthorizationResult(
            success=True,
            payment_key=body.get("paymentKey"),
            order_id=body.get("orderId"),
            method=body.get("method"),
            total_amount=body.get("totalAmount"),
            receipt_key=receipt.get("receiptKey"),
            receipt_url=receipt.get("url") or receipt.get("receiptUrl"),
            fee_amount=fee.get("amount"),
            fee_payer=fee.get("payer"),
            raw=body,
        )
