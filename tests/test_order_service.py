import uuid

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from app.core.errors import (
    EmptyCart,
    IllegalTransition,
    InsufficientStock,
    LineInvalid,
    NoChange,
    NotFound,
    OrderItemsPersistFailed,
    Unauthenticated,
)
from app.models.order import Order
from app.repositories.cart_repo import CartRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.services.order_service import CheckoutLog, CheckoutStep, OrderService
from app.services.stock_reservation import StockReservations

BUYER = "user_2buyer0000000000000000001"
OTHER_BUYER = "user_2other0000000000000000002"


class FailingItemsOrderRepository(OrderRepository):
    def create_items(self, session, items):
        raise SQLAlchemyError("order_items insert failed")


class FailingClearCartRepository(CartRepository):
    def clear_buyer_cart(self, session, buyer_id):
        raise SQLAlchemyError("cart delete failed")


class RacingProductRepository(ProductRepository):
    """Loses every conditional decrement, as if another checkout got there first."""

    def __init__(self):
        self.attempts = 0

    def decrement_stock_if_available(self, session, product_id, quantity):
        self.attempts += 1
        return False


def _fill_cart(session, make_product, cart_service):
    mug = make_product(name="Ceramic mug", price=1000, stock=5)
    towel = make_product(name="Linen towel", price=500, stock=5)
    cart_service.add(session, BUYER, mug.id, 2)
    cart_service.add(session, BUYER, towel.id, 1)
    return mug, towel


class TestBuildOrder:
    def test_cart_becomes_pending_order(
        self, session, make_product, cart_service, order_service, checkout_payload
    ):
        _fill_cart(session, make_product, cart_service)

        result = order_service.build(session, BUYER, checkout_payload)

        assert result.success is True
        assert result.total_amount == 2500
        order = order_service.get_order(session, BUYER, result.order_id)
        assert order.status == "pending"
        assert order.total_amount == 2500
        assert order.shipping_address["postal_code"] == "06236"
        assert order.note == "Leave at the door"
        assert len(order.items) == 2
        assert sum(item.line_total for item in order.items) == order.total_amount
        assert cart_service.list_lines(session, BUYER) == []

    def test_items_freeze_name_and_price(
        self, session, make_product, product_repo, cart_service, order_service, checkout_payload
    ):
        mug, _ = _fill_cart(session, make_product, cart_service)
        result = order_service.build(session, BUYER, checkout_payload)

        mug.price = 9999
        mug.name = "Renamed mug"
        product_repo.update(session, mug)

        order = order_service.get_order(session, BUYER, result.order_id)
        mug_line = next(item for item in order.items if item.product_id == mug.id)
        assert mug_line.unit_price == 1000
        assert mug_line.product_name == "Ceramic mug"
        assert order.total_amount == 2500

    def test_stock_is_reserved(
        self, session, make_product, product_repo, cart_service, order_service, checkout_payload
    ):
        mug, towel = _fill_cart(session, make_product, cart_service)

        order_service.build(session, BUYER, checkout_payload)

        assert product_repo.get_by_id(session, mug.id).stock_quantity == 3
        assert product_repo.get_by_id(session, towel.id).stock_quantity == 4

    def test_without_reservation_stock_is_untouched(
        self, session, make_product, product_repo, order_repo, cart_repo, cart_service, checkout_payload
    ):
        service = OrderService(
            order_repo,
            cart_repo,
            cart_service,
            StockReservations(product_repo),
            reserve_stock=False,
        )
        mug, _ = _fill_cart(session, make_product, cart_service)

        result = service.build(session, BUYER, checkout_payload)

        assert product_repo.get_by_id(session, mug.id).stock_quantity == 5
        assert order_repo.get_owned(session, BUYER, result.order_id).stock_reserved is False

    def test_empty_cart(self, session, order_service, checkout_payload):
        with pytest.raises(EmptyCart):
            order_service.build(session, BUYER, checkout_payload)

        assert order_service.list_orders(session, BUYER) == []

    def test_inactive_line_aborts_checkout(
        self, session, make_product, product_repo, cart_service, order_service, checkout_payload
    ):
        mug, towel = _fill_cart(session, make_product, cart_service)
        towel.is_active = False
        product_repo.update(session, towel)

        with pytest.raises(LineInvalid) as exc_info:
            order_service.build(session, BUYER, checkout_payload)

        assert exc_info.value.details["product_id"] == str(towel.id)
        assert order_service.list_orders(session, BUYER) == []
        assert len(cart_service.list_lines(session, BUYER)) == 2
        assert product_repo.get_by_id(session, mug.id).stock_quantity == 5

    def test_stock_drop_after_add_aborts_checkout(
        self, session, make_product, product_repo, cart_service, order_service, checkout_payload
    ):
        mug, _ = _fill_cart(session, make_product, cart_service)
        mug.stock_quantity = 1
        product_repo.update(session, mug)

        with pytest.raises(LineInvalid) as exc_info:
            order_service.build(session, BUYER, checkout_payload)

        assert "requested 2, available 1" in exc_info.value.message
        assert order_service.list_orders(session, BUYER) == []

    def test_price_change_before_checkout_uses_new_price(
        self, session, make_product, product_repo, cart_service, order_service, checkout_payload
    ):
        mug, _ = _fill_cart(session, make_product, cart_service)
        mug.price = 1500
        product_repo.update(session, mug)

        result = order_service.build(session, BUYER, checkout_payload)

        assert result.total_amount == 3500

    def test_lost_stock_race_is_reported_after_one_retry(
        self, session, make_product, order_repo, cart_repo, cart_service, checkout_payload
    ):
        racing_repo = RacingProductRepository()
        service = OrderService(order_repo, cart_repo, cart_service, StockReservations(racing_repo))
        _fill_cart(session, make_product, cart_service)

        with pytest.raises(InsufficientStock) as exc_info:
            service.build(session, BUYER, checkout_payload)

        assert racing_repo.attempts == 2
        assert "product_id" in exc_info.value.details
        assert service.list_orders(session, BUYER) == []
        assert len(cart_service.list_lines(session, BUYER)) == 2

    def test_item_insert_failure_removes_header(
        self, session, make_product, product_repo, cart_repo, cart_service, checkout_payload
    ):
        service = OrderService(
            FailingItemsOrderRepository(),
            cart_repo,
            cart_service,
            StockReservations(product_repo),
        )
        mug, _ = _fill_cart(session, make_product, cart_service)

        with pytest.raises(OrderItemsPersistFailed) as exc_info:
            service.build(session, BUYER, checkout_payload)

        details = exc_info.value.details
        assert uuid.UUID(details["order_id"])
        assert details["header_removed"] is True
        assert session.exec(select(Order)).all() == []
        assert product_repo.get_by_id(session, mug.id).stock_quantity == 5
        assert len(cart_service.list_lines(session, BUYER)) == 2

    def test_cart_clear_failure_keeps_order(
        self, session, make_product, product_repo, order_repo, cart_service, checkout_payload
    ):
        service = OrderService(
            order_repo,
            FailingClearCartRepository(),
            cart_service,
            StockReservations(product_repo),
        )
        _fill_cart(session, make_product, cart_service)

        result = service.build(session, BUYER, checkout_payload)

        assert result.success is True
        assert order_repo.get_owned(session, BUYER, result.order_id) is not None
        assert len(cart_service.list_lines(session, BUYER)) == 2

    def test_guest_cannot_checkout(self, session, order_service, checkout_payload):
        with pytest.raises(Unauthenticated):
            order_service.build(session, None, checkout_payload)


class TestReadOrders:
    def test_list_newest_first(self, session, order_repo, order_service, placed_order):
        older = order_repo.get_owned(session, BUYER, placed_order)
        newer = order_repo.create_order(
            session,
            Order(buyer_id=BUYER, total_amount=100, status="pending"),
        )

        orders = order_service.list_orders(session, BUYER)

        assert [o.id for o in orders] == [newer.id, older.id]

    def test_list_filters_by_status(self, session, order_service, placed_order):
        assert order_service.list_orders(session, BUYER, status="confirmed") == []
        assert len(order_service.list_orders(session, BUYER, status="pending")) == 1

    def test_foreign_order_is_not_found(self, session, order_service, placed_order):
        with pytest.raises(NotFound):
            order_service.get_order(session, OTHER_BUYER, placed_order)

    def test_malformed_id_is_not_found(self, session, order_service):
        with pytest.raises(NotFound):
            order_service.get_order(session, BUYER, "not-a-uuid")


class TestTransitions:
    def test_full_lifecycle(self, session, order_service, placed_order):
        for status in ("confirmed", "shipped", "delivered"):
            order = order_service.transition(session, BUYER, placed_order, status)
            assert order.status == status

    def test_same_status_is_no_change(self, session, order_service, placed_order):
        with pytest.raises(NoChange):
            order_service.transition(session, BUYER, placed_order, "pending")

    @pytest.mark.parametrize("target", ["shipped", "delivered"])
    def test_skipping_steps_is_illegal(self, session, order_service, placed_order, target):
        with pytest.raises(IllegalTransition) as exc_info:
            order_service.transition(session, BUYER, placed_order, target)

        assert exc_info.value.from_status == "pending"
        assert exc_info.value.to_status == target

    @pytest.mark.parametrize("target", ["pending", "confirmed", "shipped", "cancelled"])
    def test_delivered_is_terminal(self, session, order_service, placed_order, target):
        for status in ("confirmed", "shipped", "delivered"):
            order_service.transition(session, BUYER, placed_order, status)

        with pytest.raises(IllegalTransition):
            order_service.transition(session, BUYER, placed_order, target)

    @pytest.mark.parametrize("target", ["pending", "confirmed", "shipped", "delivered"])
    def test_cancelled_is_terminal(self, session, order_service, placed_order, target):
        order_service.transition(session, BUYER, placed_order, "cancelled")

        with pytest.raises(IllegalTransition):
            order_service.transition(session, BUYER, placed_order, target)

    def test_shipped_order_can_be_cancelled(self, session, order_service, placed_order):
        order_service.transition(session, BUYER, placed_order, "confirmed")
        order_service.transition(session, BUYER, placed_order, "shipped")

        order = order_service.transition(session, BUYER, placed_order, "cancelled")

        assert order.status == "cancelled"

    def test_cancel_pending_releases_stock(
        self, session, product_repo, order_repo, order_service, placed_order
    ):
        items = order_repo.list_items_for_order(session, placed_order)
        before = {item.product_id: product_repo.get_by_id(session, item.product_id).stock_quantity for item in items}

        order_service.transition(session, BUYER, placed_order, "cancelled")

        for item in items:
            stock = product_repo.get_by_id(session, item.product_id).stock_quantity
            assert stock == before[item.product_id] + item.quantity

    def test_cancel_after_shipping_keeps_stock(
        self, session, product_repo, order_repo, order_service, placed_order
    ):
        order_service.transition(session, BUYER, placed_order, "confirmed")
        order_service.transition(session, BUYER, placed_order, "shipped")
        items = order_repo.list_items_for_order(session, placed_order)
        before = {item.product_id: product_repo.get_by_id(session, item.product_id).stock_quantity for item in items}

        order_service.transition(session, BUYER, placed_order, "cancelled")

        for item in items:
            assert product_repo.get_by_id(session, item.product_id).stock_quantity == before[item.product_id]

    def test_foreign_buyer_cannot_transition(self, session, order_service, placed_order):
        with pytest.raises(NotFound):
            order_service.transition(session, OTHER_BUYER, placed_order, "confirmed")


class TestCheckoutLog:
    def test_steps_recorded_in_order(self):
        log = CheckoutLog(buyer_id=BUYER)
        log.record(CheckoutStep.STARTED)
        log.record(CheckoutStep.VALIDATED, attempt=1)

        assert log.steps == [CheckoutStep.STARTED, CheckoutStep.VALIDATED]
        assert log.last_step == CheckoutStep.VALIDATED
