# app/services/order_service.py
import uuid
from dataclasses import dataclass, field
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.auth import require_buyer
from app.core.errors import (
    EmptyCart,
    IllegalTransition,
    InsufficientStock,
    LineInvalid,
    NoChange,
    NotFound,
    OrderItemsPersistFailed,
    StoreUnavailable,
)
from app.core.logging import get_logger
from app.models.order import Order, OrderItem
from app.repositories.cart_repo import CartRepository
from app.repositories.order_repo import OrderRepository
from app.schemas.cart import PricedCartLine
from app.schemas.order import (
    CheckoutResult,
    OrderCreate,
    OrderItemRead,
    OrderRead,
    OrderWithItemsRead,
)
from app.services.cart_service import CartService
from app.services.stock_reservation import ReservedLine, StockReservations
from app.utils.orders import (
    PAYMENT_CANCELLABLE,
    OrderStatus,
    can_transition,
    parse_order_id,
    status_label,
)
from app.utils.payments import format_amount

logger = get_logger(__name__)


class CheckoutStep(str, Enum):
    STARTED = "started"
    VALIDATED = "validated"
    STOCK_RESERVED = "stock_reserved"
    HEADER_WRITTEN = "header_written"
    LINES_WRITTEN = "lines_written"
    CART_CLEARED = "cart_cleared"
    COMPLETED = "completed"
    # failure tags
    REJECTED = "rejected"
    HEADER_FAILED = "header_failed"
    LINES_FAILED = "lines_failed"
    CART_CLEAR_FAILED = "cart_clear_failed"


@dataclass
class CheckoutLog:
    """
    Record of how far one checkout got.

    Every step is emitted as a log event carrying buyer_id / order_id, so
    an operator can tell "nothing was written" from "header written, lines
    missing" without reading stack traces.
    """

    buyer_id: str
    order_id: uuid.UUID | None = None
    steps: list[CheckoutStep] = field(default_factory=list)

    def record(self, step: CheckoutStep, level: str = "info", **fields) -> None:
        self.steps.append(step)
        log = getattr(logger, level)
        log(
            "checkout.step",
            checkout_step=step.value,
            buyer_id=self.buyer_id,
            order_id=str(self.order_id) if self.order_id else None,
            **fields,
        )

    @property
    def last_step(self) -> CheckoutStep | None:
        return self.steps[-1] if self.steps else None


# -------- DTO builders (shared with the payment service) --------


def to_order_read(order: Order) -> OrderRead:
    return OrderRead(
        id=order.id,
        buyer_id=order.buyer_id,
        total_amount=order.total_amount,
        status=order.status,
        status_label=status_label(order.status),
        shipping_address=order.shipping_address,
        note=order.note,
        payment_id=order.payment_id,
        payment_method=order.payment_method,
        payment_status=order.payment_status,
        paid_at=order.paid_at,
        payment_info=order.payment_info,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def to_order_with_items(order: Order, items: list[OrderItem]) -> OrderWithItemsRead:
    header = to_order_read(order)
    return OrderWithItemsRead(
        **header.model_dump(),
        items=[
            OrderItemRead(
                id=it.id,
                order_id=it.order_id,
                product_id=it.product_id,
                product_name=it.product_name,
                quantity=it.quantity,
                unit_price=it.unit_price,
                line_total=it.unit_price * it.quantity,
                created_at=it.created_at,
            )
            for it in items
        ],
    )


class OrderService:
    """
    Business logic for orders.

    Responsibilities:
      - Create order from cart (multi-step, compensating on failure)
      - Validate cart lines against live products (stock, active)
      - Reserve stock with conditional decrements
      - Read the buyer's orders
      - Enforce status transitions
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        cart_repo: CartRepository,
        cart_service: CartService,
        reservations: StockReservations,
        reserve_stock: bool = True,
    ):
        self.order_repo = order_repo
        self.cart_repo = cart_repo
        self.cart_service = cart_service
        self.reservations = reservations
        self.reserve_stock = reserve_stock

    # -------- Checkout --------

    def build(
        self,
        session: Session,
        buyer_id: str | None,
        payload: OrderCreate,
    ) -> CheckoutResult:
        """
        Convert the buyer's cart into an Order.

        Steps:
          1. Load the priced cart snapshot; EmptyCart if empty.
          2. Validate every line (purchasable, stock >= quantity).
          3. Compute total_amount; reserve stock (retry validation once
             if another checkout took the stock in between).
          4. Insert the Order header (status='pending').
          5. Insert OrderItem rows. On failure, try to delete the header
             and report OrderItemsPersistFailed with the order id.
          6. Clear the cart. Failure here does not fail the checkout.
        """
        buyer_id = require_buyer(buyer_id)
        log = CheckoutLog(buyer_id=buyer_id)
        log.record(CheckoutStep.STARTED)

        lines, reserved = self._validate_and_reserve(session, buyer_id, log)
        total_amount = sum(line.line_total for line in lines)

        # 4) Order header
        order = Order(
            buyer_id=buyer_id,
            total_amount=total_amount,
            status=OrderStatus.PENDING.value,
            shipping_address=payload.shipping_address.model_dump(),
            note=payload.note,
            stock_reserved=bool(reserved),
        )
        try:
            order = self.order_repo.create_order(session, order)
        except SQLAlchemyError as exc:
            session.rollback()
            log.record(CheckoutStep.HEADER_FAILED, level="error", error=type(exc).__name__)
            self.reservations.release(session, reserved)
            raise StoreUnavailable() from exc

        log.order_id = order.id
        log.record(CheckoutStep.HEADER_WRITTEN, total_amount=total_amount)

        # 5) Order items, frozen at current name and price
        items = [
            OrderItem(
                order_id=order.id,
                product_id=line.product_id,
                product_name=line.display_name,
                quantity=line.quantity,
                unit_price=line.unit_price,
            )
            for line in lines
        ]
        try:
            self.order_repo.create_items(session, items)
        except SQLAlchemyError as exc:
            session.rollback()
            log.record(CheckoutStep.LINES_FAILED, level="error", error=type(exc).__name__)
            header_removed = self._remove_orphan_header(session, order, log)
            self.reservations.release(session, reserved)
            raise OrderItemsPersistFailed(
                order_id=str(order.id),
                header_removed=header_removed,
            ) from exc

        log.record(CheckoutStep.LINES_WRITTEN, line_count=len(items))

        # 6) Clear cart; the order stands even if this fails
        try:
            self.cart_repo.clear_buyer_cart(session, buyer_id)
        except SQLAlchemyError as exc:
            session.rollback()
            log.record(CheckoutStep.CART_CLEAR_FAILED, level="warning", error=type(exc).__name__)
        else:
            log.record(CheckoutStep.CART_CLEARED)

        log.record(CheckoutStep.COMPLETED)
        return CheckoutResult(
            order_id=order.id,
            total_amount=total_amount,
            message=f"Order placed ({format_amount(total_amount)}).",
        )

    def _validate_and_reserve(
        self,
        session: Session,
        buyer_id: str,
        log: CheckoutLog,
    ) -> tuple[list[PricedCartLine], list[ReservedLine]]:
        """
        Validate the live cart and, when enabled, take its stock.

        If a reservation loses a race, whatever was taken is given back and
        validation runs once more against fresh stock before giving up.
        """
        failed: PricedCartLine | None = None
        for attempt in (1, 2):
            lines = self.cart_service.list_lines(session, buyer_id)
            if not lines:
                log.record(CheckoutStep.REJECTED, level="warning", reason="empty_cart")
                raise EmptyCart()

            try:
                self._validate_lines(lines)
            except LineInvalid as exc:
                log.record(CheckoutStep.REJECTED, level="warning", reason=exc.details.get("reason"))
                raise
            log.record(CheckoutStep.VALIDATED, attempt=attempt, line_count=len(lines))

            if not self.reserve_stock:
                return lines, []

            reserved, failed = self.reservations.reserve(session, lines)
            if failed is None:
                log.record(CheckoutStep.STOCK_RESERVED, attempt=attempt)
                return lines, reserved
            self.reservations.release(session, reserved)

        snapshot = self.cart_service.stock_oracle.lookup(session, failed.product_id)
        available = snapshot.stock if snapshot else 0
        log.record(
            CheckoutStep.REJECTED,
            level="warning",
            reason="stock_taken_concurrently",
            product_id=str(failed.product_id),
        )
        raise InsufficientStock(
            requested=failed.quantity,
            available=available,
            message=f'"{failed.display_name}" just sold out. Please review your cart.',
            product_id=str(failed.product_id),
        )

    @staticmethod
    def _validate_lines(lines: list[PricedCartLine]) -> None:
        """First violation aborts the whole checkout."""
        for line in lines:
            if not line.is_purchasable:
                raise LineInvalid(
                    product_id=str(line.product_id),
                    product_name=line.display_name,
                    reason="This product is no longer for sale. Remove it from your cart and try again.",
                )
            if line.quantity > line.available_quantity:
                raise LineInvalid(
                    product_id=str(line.product_id),
                    product_name=line.display_name,
                    reason=(
                        f"Not enough stock (requested {line.quantity}, "
                        f"available {line.available_quantity})."
                    ),
                )

    def _remove_orphan_header(self, session: Session, order: Order, log: CheckoutLog) -> bool:
        """Compensating delete of a header whose lines failed. Never retried."""
        try:
            self.order_repo.delete_order(session, order)
        except SQLAlchemyError:
            session.rollback()
            logger.exception(
                "checkout.compensation.failed",
                order_id=str(order.id),
                buyer_id=log.buyer_id,
            )
            return False
        logger.warning("checkout.compensation.header_removed", order_id=str(order.id))
        return True

    # -------- Reads --------

    def _get_owned_order(self, session: Session, buyer_id: str, order_id: str | uuid.UUID) -> Order:
        """Missing, malformed and foreign order ids are all NotFound."""
        order = self.order_repo.get_owned(session, buyer_id, parse_order_id(order_id))
        if order is None:
            raise NotFound("Order not found.")
        return order

    def get_order(
        self,
        session: Session,
        buyer_id: str | None,
        order_id: str | uuid.UUID,
    ) -> OrderWithItemsRead:
        """
        Get a single order for the buyer, including items.
        """
        buyer_id = require_buyer(buyer_id)
        order = self._get_owned_order(session, buyer_id, order_id)
        items = self.order_repo.list_items_for_order(session, order.id)
        return to_order_with_items(order, items)

    def list_orders(
        self,
        session: Session,
        buyer_id: str | None,
        status: str | None = None,
    ) -> list[OrderRead]:
        """
        List the buyer's orders (without items), newest first.
        """
        buyer_id = require_buyer(buyer_id)
        orders = self.order_repo.list_for_buyer(session, buyer_id, status)
        return [to_order_read(o) for o in orders]

    # -------- Status transitions --------

    def transition(
        self,
        session: Session,
        buyer_id: str | None,
        order_id: str | uuid.UUID,
        new_status: str,
    ) -> OrderRead:
        """
        Move an order along its lifecycle:

          pending   -> confirmed, cancelled
          confirmed -> shipped, cancelled
          shipped   -> delivered, cancelled
          delivered -> (terminal)
          cancelled -> (terminal)

        Same-state requests raise NoChange; anything else off the table
        raises IllegalTransition.
        """
        buyer_id = require_buyer(buyer_id)
        order = self._get_owned_order(session, buyer_id, order_id)
        current = order.status

        if current == new_status:
            raise NoChange(f'The order is already "{status_label(current)}".')

        if not can_transition(current, new_status):
            logger.warning(
                "order.transition.rejected",
                order_id=str(order.id),
                from_status=current,
                to_status=new_status,
            )
            raise IllegalTransition(
                current,
                new_status,
                message=(
                    f'An order that is "{status_label(current)}" cannot be changed '
                    f'to "{status_label(new_status)}".'
                ),
            )

        changed = self.order_repo.update_status_if(
            session, order.id, buyer_id, expected_status=current, new_status=new_status
        )
        if not changed:
            # Someone else moved the order between our read and write
            latest = self.order_repo.get_owned(session, buyer_id, order.id)
            latest_status = latest.status if latest else current
            raise IllegalTransition(latest_status, new_status)

        logger.info(
            "order.transition.applied",
            order_id=str(order.id),
            from_status=current,
            to_status=new_status,
        )

        if new_status == OrderStatus.CANCELLED.value and OrderStatus(current) in PAYMENT_CANCELLABLE:
            self.release_order_stock(session, order)

        updated = self._get_owned_order(session, buyer_id, order.id)
        return to_order_read(updated)

    def release_order_stock(self, session: Session, order: Order) -> None:
        if not order.stock_reserved:
            return
        items = self.order_repo.list_items_for_order(session, order.id)
        self.reservations.release(session, StockReservations.from_order_items(items))
        logger.info("order.stock.released", order_id=str(order.id), line_count=len(items))
