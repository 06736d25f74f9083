# app/gateway/factory.py
"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- TossPaymentsGateway in production (needs TOSS_PAYMENTS_SECRET_KEY)
- FakeGateway for development and testing (PAYMENT_GATEWAY=fake)
"""

from app.core.config import get_settings
from app.core.errors import PaymentGatewayNotConfigured
from app.core.logging import get_logger
from app.gateway.fake_adapter import FakeGateway
from app.gateway.port import PaymentGateway
from app.gateway.toss_adapter import TossPaymentsGateway

logger = get_logger(__name__)

_current_gateway: PaymentGateway | None = None


def build_gateway() -> PaymentGateway:
    settings = get_settings()
    if settings.PAYMENT_GATEWAY == "fake":
        return FakeGateway()

    if not settings.TOSS_PAYMENTS_SECRET_KEY:
        # Configuration problem: logged for operators, generic message for buyers
        logger.error("gateway.not_configured", missing="TOSS_PAYMENTS_SECRET_KEY")
        raise PaymentGatewayNotConfigured()

    return TossPaymentsGateway(
        secret_key=settings.TOSS_PAYMENTS_SECRET_KEY,
        base_url=settings.PAYMENT_GATEWAY_URL,
        timeout=settings.PAYMENT_GATEWAY_TIMEOUT_SECONDS,
    )


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway, building it from settings on first use."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = build_gateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
