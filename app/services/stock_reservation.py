# app/services/stock_reservation.py
import uuid
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.logging import get_logger
from app.models.order import OrderItem
from app.repositories.product_repo import ProductRepository
from app.schemas.cart import PricedCartLine

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReservedLine:
    product_id: uuid.UUID
    quantity: int


class StockReservations:
    """
    Takes stock out of the catalog at checkout and gives it back on
    cancellation or when checkout has to be rolled back.

    Each product is decremented with one conditional UPDATE
    (stock_quantity >= qty), so a unit can only be taken once even when
    two checkouts validated against the same stock figure.
    """

    def __init__(self, product_repo: ProductRepository):
        self.product_repo = product_repo

    def reserve(
        self,
        session: Session,
        lines: Iterable[PricedCartLine],
    ) -> tuple[list[ReservedLine], PricedCartLine | None]:
        """
        Reserve every line in order.

        Returns (reserved, failed_line). On failure, `reserved` holds what
        was taken before the failing line; the caller releases it.
        """
        reserved: list[ReservedLine] = []
        for line in lines:
            taken = self.product_repo.decrement_stock_if_available(
                session, line.product_id, line.quantity
            )
            if not taken:
                logger.warning(
                    "stock.reserve.conflict",
                    product_id=str(line.product_id),
                    quantity=line.quantity,
                )
                return reserved, line
            reserved.append(ReservedLine(product_id=line.product_id, quantity=line.quantity))
        return reserved, None

    def release(self, session: Session, reserved: Iterable[ReservedLine]) -> None:
        """
        Give reserved units back. Failures are logged, not raised: a release
        runs while another outcome is already being reported.
        """
        for line in reserved:
            try:
                restored = self.product_repo.increment_stock(session, line.product_id, line.quantity)
            except SQLAlchemyError:
                session.rollback()
                logger.exception(
                    "stock.release.failed",
                    product_id=str(line.product_id),
                    quantity=line.quantity,
                )
                continue
            if not restored:
                logger.warning("stock.release.product_missing", product_id=str(line.product_id))

    @staticmethod
    def from_order_items(items: Iterable[OrderItem]) -> list[ReservedLine]:
        return [ReservedLine(product_id=it.product_id, quantity=it.quantity) for it in items]
