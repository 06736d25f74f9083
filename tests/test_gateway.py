import base64
import json

import httpx
import pytest

from app.core.config import get_settings
from app.core.errors import GatewayRejected, GatewayTimeout, PaymentGatewayNotConfigured
from app.gateway import factory
from app.gateway.fake_adapter import FakeGateway
from app.gateway.port import GatewayUnavailableError
from app.gateway.toss_adapter import TossPaymentsGateway
from app.services.payment_service import PaymentService


def _toss(handler) -> TossPaymentsGateway:
    return TossPaymentsGateway(
        secret_key="test_sk_123",
        base_url="https://api.tosspayments.test/v1",
        transport=httpx.MockTransport(handler),
    )


class TestTossPaymentsGateway:
    def test_confirm_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "paymentKey": "pay_key_1",
                    "orderId": "order-1",
                    "method": "카드",
                    "totalAmount": 2500,
                    "receipt": {"url": "https://receipt.example.test/1"},
                    "fee": {"amount": 75, "payer": "merchant"},
                },
            )

        result = _toss(handler).authorize("pay_key_1", "order-1", 2500)

        assert result.success is True
        assert result.total_amount == 2500
        assert result.method == "카드"
        assert result.receipt_url == "https://receipt.example.test/1"
        assert result.fee_amount == 75
        assert seen["url"] == "https://api.tosspayments.test/v1/payments/confirm"
        assert seen["body"] == {"paymentKey": "pay_key_1", "orderId": "order-1", "amount": 2500}
        expected_auth = base64.b64encode(b"test_sk_123:").decode()
        assert seen["auth"] == f"Basic {expected_auth}"

    def test_rejection_carries_code_and_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                400,
                json={"code": "REJECT_CARD_COMPANY", "message": "Card company rejected the payment"},
            )

        result = _toss(handler).authorize("pay_key_1", "order-1", 2500)

        assert result.success is False
        assert result.failure_code == "REJECT_CARD_COMPANY"
        assert result.failure_message == "Card company rejected the payment"

    def test_rejection_without_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, text="forbidden")

        result = _toss(handler).authorize("pay_key_1", "order-1", 2500)

        assert result.success is False
        assert result.failure_code is None
        assert result.failure_message

    @pytest.mark.parametrize("status_code", [500, 502, 504])
    def test_server_error_is_unavailable(self, status_code):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                status_code,
                json={"code": "FAILED_INTERNAL_SYSTEM_PROCESSING", "message": "Internal error"},
            )

        with pytest.raises(GatewayUnavailableError):
            _toss(handler).authorize("pay_key_1", "order-1", 2500)

    @pytest.mark.parametrize("payload", [["approved"], "approved", 2500, None])
    def test_success_with_non_object_body_is_unavailable(self, payload):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=payload)

        with pytest.raises(GatewayUnavailableError):
            _toss(handler).authorize("pay_key_1", "order-1", 2500)

    def test_timeout_is_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(GatewayUnavailableError):
            _toss(handler).authorize("pay_key_1", "order-1", 2500)

    def test_connection_error_is_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GatewayUnavailableError):
            _toss(handler).authorize("pay_key_1", "order-1", 2500)


class TestFakeGateway:
    def test_records_calls(self):
        gateway = FakeGateway()

        result = gateway.authorize("pay_key_1", "order-1", 2500)

        assert result.success is True
        assert gateway.calls == [
            {"method": "authorize", "payment_key": "pay_key_1", "order_id": "order-1", "amount": 2500}
        ]

    def test_configured_timeout(self):
        gateway = FakeGateway()
        gateway.configure(should_time_out=True)

        with pytest.raises(GatewayUnavailableError):
            gateway.authorize("pay_key_1", "order-1", 2500)


class TestGatewayFactory:
    @pytest.fixture(autouse=True)
    def _reset(self):
        factory.reset_gateway()
        get_settings.cache_clear()
        yield
        factory.reset_gateway()
        get_settings.cache_clear()

    def test_fake_from_settings(self, monkeypatch):
        monkeypatch.setenv("PAYMENT_GATEWAY", "fake")

        assert isinstance(factory.get_gateway(), FakeGateway)

    def test_toss_without_secret_key(self, monkeypatch):
        monkeypatch.setenv("PAYMENT_GATEWAY", "toss")
        monkeypatch.delenv("TOSS_PAYMENTS_SECRET_KEY", raising=False)

        with pytest.raises(PaymentGatewayNotConfigured):
            factory.get_gateway()

    def test_toss_with_secret_key(self, monkeypatch):
        monkeypatch.setenv("PAYMENT_GATEWAY", "toss")
        monkeypatch.setenv("TOSS_PAYMENTS_SECRET_KEY", "test_sk_123")

        assert isinstance(factory.get_gateway(), TossPaymentsGateway)

    def test_set_gateway_overrides(self):
        gateway = FakeGateway()
        factory.set_gateway(gateway)

        assert factory.get_gateway() is gateway


class TestConfirmThroughToss:
    BUYER = "user_2buyer0000000000000000001"

    def _service(self, order_repo, order_service, handler) -> PaymentService:
        gateway = _toss(handler)
        return PaymentService(order_repo, order_service, lambda: gateway)

    def test_server_error_is_reported_as_timeout(self, session, order_repo, order_service, placed_order):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"code": "FAILED_INTERNAL_SYSTEM_PROCESSING", "message": "x"})

        service = self._service(order_repo, order_service, handler)

        with pytest.raises(GatewayTimeout):
            service.confirm(session, self.BUYER, "pay_key_1", placed_order, 2500)

        assert order_service.get_order(session, self.BUYER, placed_order).status == "pending"

    def test_unreadable_approval_is_reported_as_timeout(self, session, order_repo, order_service, placed_order):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=["approved"])

        service = self._service(order_repo, order_service, handler)

        with pytest.raises(GatewayTimeout):
            service.confirm(session, self.BUYER, "pay_key_1", placed_order, 2500)

    def test_client_error_is_rejected(self, session, order_repo, order_service, placed_order):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"code": "INVALID_CARD_EXPIRATION", "message": "Card expired"})

        service = self._service(order_repo, order_service, handler)

        with pytest.raises(GatewayRejected) as exc_info:
            service.confirm(session, self.BUYER, "pay_key_1", placed_order, 2500)

        assert exc_info.value.code == "INVALID_CARD_EXPIRATION"
