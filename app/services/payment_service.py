# app/services/payment_service.py
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.auth import require_buyer
from app.core.errors import (
    AlreadyPaid,
    AmountMismatch,
    DuplicatePaymentKey,
    GatewayRejected,
    GatewayTimeout,
    NotFound,
    NotPayable,
    PostPaymentPersistFailed,
)
from app.core.logging import get_logger
from app.gateway.port import AuthorizationResult, GatewayUnavailableError, PaymentGateway
from app.models.order import Order
from app.repositories.order_repo import OrderRepository
from app.schemas.common import ActionResult
from app.schemas.payment import (
    Fee,
    PaymentCancellation,
    PaymentRecord,
    PaymentRequestResult,
    Receipt,
)
from app.services.order_service import OrderService
from app.utils.orders import PAYMENT_CANCELLABLE, OrderStatus, parse_order_id, status_label
from app.utils.payments import PaymentStatus, normalize_payment_method

logger = get_logger(__name__)


class PaymentService:
    """
    Reconciles orders with the payment gateway.

    Responsibilities:
      - initiate: check the order can be paid and hand back id/amount
      - confirm: cross-check the amount, call the gateway, then write the
        payment record and pending -> confirmed in one guarded row update
      - cancel: local cancellation of pending/confirmed orders

    Failure kinds stay distinct: GatewayRejected and
    GatewayTimeout leave the order untouched, PostPaymentPersistFailed
    means the gateway approved but the order row was not updated (including
    an approval for a different amount than the order total).
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        order_service: OrderService,
        gateway_provider,
    ):
        self.order_repo = order_repo
        self.order_service = order_service
        # callable returning the active PaymentGateway; resolved per call so
        # tests (and a missing secret key) only matter when confirm runs
        self.gateway_provider = gateway_provider

    # -------- helpers --------

    def _load_payable_order(self, session: Session, buyer_id: str, order_id: uuid.UUID) -> Order:
        order = self.order_repo.get_owned(session, buyer_id, order_id)
        if order is None:
            raise NotFound("Order not found.")
        if order.payment_status == PaymentStatus.SUCCESS.value:
            raise AlreadyPaid()
        if order.status != OrderStatus.PENDING.value:
            raise NotPayable(
                order.status,
                message=f'Orders that are "{status_label(order.status)}" cannot be paid.',
            )
        return order

    def _order_name(self, session: Session, order: Order) -> str:
        """Short label shown by the gateway widget, e.g. "Mug and 2 more"."""
        items = self.order_repo.list_items_for_order(session, order.id)
        if not items:
            return f"Order {str(order.id)[:8]}"
        first = items[0].product_name
        if len(items) == 1:
            return first
        return f"{first} and {len(items) - 1} more"

    @staticmethod
    def build_payment_record(result: AuthorizationResult, payment_key: str, order_id: str, amount: int) -> PaymentRecord:
        """PaymentRecord from the gateway's canonical response."""
        receipt = None
        if result.receipt_key or result.receipt_url:
            receipt = Receipt(receipt_key=result.receipt_key, receipt_url=result.receipt_url)
        fee = None
        if result.fee_amount is not None:
            fee = Fee(amount=result.fee_amount, payer=result.fee_payer)
        return PaymentRecord(
            amount=result.total_amount if result.total_amount is not None else amount,
            method=normalize_payment_method(result.method).value,
            payment_key=result.payment_key or payment_key,
            gateway_order_id=result.order_id or order_id,
            receipt=receipt,
            fee=fee,
        )

    # -------- operations --------

    def initiate(
        self,
        session: Session,
        buyer_id: str | None,
        order_id: str | uuid.UUID,
    ) -> PaymentRequestResult:
        """
        Check the order can be paid and return what the client-side
        gateway widget needs. The gateway itself is not contacted here.
        """
        buyer_id = require_buyer(buyer_id)
        order = self._load_payable_order(session, buyer_id, parse_order_id(order_id))

        logger.info("payment.initiate", order_id=str(order.id), amount=order.total_amount)
        return PaymentRequestResult(
            order_id=order.id,
            amount=order.total_amount,
            order_name=self._order_name(session, order),
            message="Payment request is ready.",
        )

    def confirm(
        self,
        session: Session,
        buyer_id: str | None,
        payment_key: str,
        order_id: str | uuid.UUID,
        reported_amount: int,
    ) -> ActionResult:
        """
        Approve a payment the buyer completed in the gateway widget.

        Order of checks matters: ownership, payability, key reuse and
        amount are all verified before the gateway is called, so a forged
        amount never reaches it and a rejected check never charges.
        """
        buyer_id = require_buyer(buyer_id)
        order = self._load_payable_order(session, buyer_id, parse_order_id(order_id))
        log = logger.bind(order_id=str(order.id), payment_key=payment_key)

        existing = self.order_repo.get_by_payment_id(session, payment_key)
        if existing is not None and existing.id != order.id:
            log.warning("payment.confirm.duplicate_key", other_order_id=str(existing.id))
            raise DuplicatePaymentKey()

        if reported_amount != order.total_amount:
            log.warning(
                "payment.confirm.amount_mismatch",
                expected=order.total_amount,
                reported=reported_amount,
            )
            raise AmountMismatch(expected=order.total_amount, reported=reported_amount)

        gateway: PaymentGateway = self.gateway_provider()
        try:
            result = gateway.authorize(payment_key, str(order.id), order.total_amount)
        except GatewayUnavailableError as exc:
            log.error("payment.confirm.gateway_timeout", gateway=gateway.name)
            raise GatewayTimeout(order_id=str(order.id), payment_key=payment_key) from exc

        if not result.success:
            log.warning(
                "payment.confirm.gateway_rejected",
                code=result.failure_code,
                gateway_message=result.failure_message,
            )
            raise GatewayRejected(message=result.failure_message, code=result.failure_code)

        # Money has moved from here on; failures below need manual reconciliation
        record = self.build_payment_record(result, payment_key, str(order.id), order.total_amount)
        if record.amount != order.total_amount:
            log.error(
                "payment.confirm.gateway_amount_differs",
                expected=order.total_amount,
                gateway_amount=record.amount,
            )
            raise PostPaymentPersistFailed(
                order_id=str(order.id),
                payment_key=payment_key,
                gateway_amount=record.amount,
            )

        try:
            written = self.order_repo.record_payment(
                session,
                order.id,
                buyer_id,
                payment_id=payment_key,
                payment_method=record.method,
                payment_status=PaymentStatus.SUCCESS.value,
                paid_at=datetime.now(timezone.utc),
                payment_info=record.model_dump(mode="json"),
                from_status=OrderStatus.PENDING.value,
                to_status=OrderStatus.CONFIRMED.value,
            )
        except SQLAlchemyError as exc:
            session.rollback()
            log.exception("payment.confirm.persist_failed")
            raise PostPaymentPersistFailed(order_id=str(order.id), payment_key=payment_key) from exc

        if not written:
            log.error("payment.confirm.persist_conflict")
            raise PostPaymentPersistFailed(order_id=str(order.id), payment_key=payment_key)

        log.info("payment.confirm.succeeded", method=record.method, amount=record.amount)
        return ActionResult(message="Payment completed.")

    def cancel(
        self,
        session: Session,
        buyer_id: str | None,
        order_id: str | uuid.UUID,
        reason: str | None = None,
    ) -> ActionResult:
        """
        Cancel a pending or confirmed order locally.

        The gateway is not asked to refund: refunds of confirmed orders are
        handled manually. The cancellation is appended to payment_info so
        the record shows it happened.
        """
        buyer_id = require_buyer(buyer_id)
        order = self.order_repo.get_owned(session, buyer_id, parse_order_id(order_id))
        if order is None:
            raise NotFound("Order not found.")

        current = order.status
        if OrderStatus(current) not in PAYMENT_CANCELLABLE:
            raise NotPayable(
                current,
                message=f'Orders that are "{status_label(current)}" cannot be cancelled.',
            )

        extra: dict = {"payment_status": PaymentStatus.CANCELLED.value}
        if order.payment_info:
            record = PaymentRecord.model_validate(order.payment_info)
            record.cancellations.append(
                PaymentCancellation(
                    amount=record.amount,
                    reason=reason or "Cancelled by buyer",
                    cancelled_at=datetime.now(timezone.utc).isoformat(),
                )
            )
            extra["payment_info"] = record.model_dump(mode="json")

        changed = self.order_repo.update_status_if(
            session,
            order.id,
            buyer_id,
            expected_status=current,
            new_status=OrderStatus.CANCELLED.value,
            **extra,
        )
        if not changed:
            latest = self.order_repo.get_owned(session, buyer_id, order.id)
            raise NotPayable(latest.status if latest else current)

        logger.info(
            "payment.cancel.applied",
            order_id=str(order.id),
            from_status=current,
            refund_required=current == OrderStatus.CONFIRMED.value,
        )
        self.order_service.release_order_stock(session, order)
        return ActionResult(message="Order cancelled.")
