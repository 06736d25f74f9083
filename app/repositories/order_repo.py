# app/repositories/order_repo.py
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import update
from sqlmodel import Session, select

from app.models.order import Order, OrderItem


class OrderRepository:
    """
    Data access layer for orders and order_items.

    NOTE:
      - Every write commits on its own. Checkout is a sequence of
        single-table writes; the service owns compensation when a later
        step fails.
      - Status and payment changes are conditional UPDATEs scoped by
        (id, buyer_id, expected status) and report how many rows changed,
        so a stale caller cannot overwrite a newer state.
    """

    # ---- Orders ----

    def list_for_buyer(
        self,
        session: Session,
        buyer_id: str,
        status: str | None = None,
    ) -> list[Order]:
        stmt = select(Order).where(Order.buyer_id == buyer_id)
        if status:
            stmt = stmt.where(Order.status == status)
        stmt = stmt.order_by(Order.created_at.desc())
        return list(session.exec(stmt).all())

    def get_owned(
        self, session: Session, buyer_id: str, order_id: uuid.UUID
    ) -> Order | None:
        stmt = select(Order).where(Order.id == order_id, Order.buyer_id == buyer_id)
        return session.exec(stmt).first()

    def get_by_payment_id(self, session: Session, payment_id: str) -> Order | None:
        stmt = select(Order).where(Order.payment_id == payment_id)
        return session.exec(stmt).first()

    def create_order(self, session: Session, order: Order) -> Order:
        session.add(order)
        session.commit()
        session.refresh(order)
        return order

    def delete_order(self, session: Session, order: Order) -> None:
        """Only used to compensate a checkout whose items could not be saved."""
        session.delete(order)
        session.commit()

    def update_status_if(
        self,
        session: Session,
        order_id: uuid.UUID,
        buyer_id: str,
        expected_status: str,
        new_status: str,
        **extra_values: Any,
    ) -> bool:
        """
        Set status (and any extra columns) only if the row still has
        expected_status. Returns True when exactly one row changed.
        """
        stmt = (
            update(Order)
            .where(
                Order.id == order_id,
                Order.buyer_id == buyer_id,
                Order.status == expected_status,
            )
            .values(
                status=new_status,
                updated_at=datetime.now(timezone.utc),
                **extra_values,
            )
            .execution_options(synchronize_session=False)
        )
        result = session.exec(stmt)
        session.commit()
        return result.rowcount == 1

    def record_payment(
        self,
        session: Session,
        order_id: uuid.UUID,
        buyer_id: str,
        *,
        payment_id: str,
        payment_method: str,
        payment_status: str,
        paid_at: datetime,
        payment_info: dict[str, Any],
        from_status: str,
        to_status: str,
    ) -> bool:
        """
        Write the payment record and the status change in one row update.

        Guarded by (id, buyer_id, status == from_status), so it only
        applies once per order.
        """
        return self.update_status_if(
            session,
            order_id,
            buyer_id,
            expected_status=from_status,
            new_status=to_status,
            payment_id=payment_id,
            payment_method=payment_method,
            payment_status=payment_status,
            paid_at=paid_at,
            payment_info=payment_info,
        )

    # ---- Order items ----

    def list_items_for_order(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[OrderItem]:
        stmt = (
            select(OrderItem)
            .where(OrderItem.order_id == order_id)
            .order_by(OrderItem.created_at.asc())
        )
        return list(session.exec(stmt).all())

    def create_items(
        self,
        session: Session,
        items: list[OrderItem],
    ) -> list[OrderItem]:
        session.add_all(items)
        session.commit()
        for item in items:
            session.refresh(item)
        return items
