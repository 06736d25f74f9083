import uuid

import pytest

from app.core.errors import NotFound
from app.database import build_database_url
from app.utils.orders import can_transition, parse_order_id, status_label
from app.utils.payments import PaymentMethod, format_amount, normalize_payment_method

STATUSES = ["pending", "confirmed", "shipped", "delivered", "cancelled"]

ALLOWED = {
    ("pending", "confirmed"),
    ("pending", "cancelled"),
    ("confirmed", "shipped"),
    ("confirmed", "cancelled"),
    ("shipped", "delivered"),
    ("shipped", "cancelled"),
}


class TestTransitionTable:
    @pytest.mark.parametrize("current", STATUSES)
    @pytest.mark.parametrize("new", STATUSES)
    def test_every_pair(self, current, new):
        assert can_transition(current, new) is ((current, new) in ALLOWED)

    def test_unknown_status(self):
        assert can_transition("pending", "refunded") is False
        assert can_transition("refunded", "pending") is False

    def test_labels(self):
        assert status_label("pending") == "Awaiting payment"
        assert status_label("whatever") == "whatever"


class TestParseOrderId:
    def test_uuid_passthrough(self):
        value = uuid.uuid4()
        assert parse_order_id(value) is value

    def test_string(self):
        value = uuid.uuid4()
        assert parse_order_id(str(value)) == value

    def test_malformed(self):
        with pytest.raises(NotFound):
            parse_order_id("order-123")


class TestPaymentHelpers:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("카드", PaymentMethod.CARD),
            ("가상계좌", PaymentMethod.VIRTUAL_ACCOUNT),
            ("계좌이체", PaymentMethod.TRANSFER),
            ("휴대폰", PaymentMethod.MOBILE_PHONE),
            ("transfer", PaymentMethod.TRANSFER),
            ("something new", PaymentMethod.CARD),
            (None, PaymentMethod.CARD),
        ],
    )
    def test_normalize_method(self, raw, expected):
        assert normalize_payment_method(raw) is expected

    def test_format_amount(self):
        assert format_amount(12500) == "12,500 KRW"


class TestDatabaseUrl:
    def test_postgres_gets_sslmode(self):
        assert build_database_url("postgresql://u:p@host/db") == "postgresql://u:p@host/db?sslmode=require"

    def test_existing_query_string(self):
        url = build_database_url("postgresql://u:p@host/db?application_name=shop")
        assert url.endswith("&sslmode=require")

    def test_sslmode_kept(self):
        url = "postgresql://u:p@host/db?sslmode=disable"
        assert build_database_url(url) == url

    def test_sqlite_untouched(self):
        assert build_database_url("sqlite://") == "sqlite://"
