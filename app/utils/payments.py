# app/utils/payments.py
from enum import Enum


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CARD = "card"
    VIRTUAL_ACCOUNT = "virtual_account"
    TRANSFER = "transfer"
    MOBILE_PHONE = "mobile_phone"
    GIFT_CERTIFICATE = "gift_certificate"
    BOOK_GIFT_CERTIFICATE = "book_gift_certificate"
    GAME_GIFT_CERTIFICATE = "game_gift_certificate"


# Toss Payments reports the method as a Korean label
GATEWAY_METHOD_LABELS: dict[str, PaymentMethod] = {
    "카드": PaymentMethod.CARD,
    "가상계좌": PaymentMethod.VIRTUAL_ACCOUNT,
    "계좌이체": PaymentMethod.TRANSFER,
    "휴대폰": PaymentMethod.MOBILE_PHONE,
    "상품권": PaymentMethod.GIFT_CERTIFICATE,
    "문화상품권": PaymentMethod.GIFT_CERTIFICATE,
    "도서문화상품권": PaymentMethod.BOOK_GIFT_CERTIFICATE,
    "게임문화상품권": PaymentMethod.GAME_GIFT_CERTIFICATE,
}


def normalize_payment_method(raw: str | None) -> PaymentMethod:
    """
    Map a gateway method label to PaymentMethod.

    Accepts the gateway's Korean labels and our own codes; anything else
    is recorded as a card payment.
    """
    if not raw:
        return PaymentMethod.CARD
    value = raw.strip()
    if value in GATEWAY_METHOD_LABELS:
        return GATEWAY_METHOD_LABELS[value]
    try:
        return PaymentMethod(value.lower())
    except ValueError:
        return PaymentMethod.CARD


def format_amount(amount: int, currency: str = "KRW") -> str:
    """Format an integer amount for messages, e.g. 12,500 KRW."""
    return f"{amount:,} {currency}"
