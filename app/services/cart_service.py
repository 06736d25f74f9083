# app/services/cart_service.py
import uuid
from typing import Iterable

from sqlmodel import Session

from app.core.auth import require_buyer
from app.core.errors import (
    InsufficientStock,
    InvalidQuantity,
    NotFound,
    ProductUnavailable,
)
from app.core.logging import get_logger
from app.models.cart import CartItem
from app.repositories.cart_repo import CartRepository
from app.schemas.cart import CartActionResult, CartSummary, CartTotal, PricedCartLine
from app.schemas.common import ActionResult
from app.services.stock_oracle import StockOracle

logger = get_logger(__name__)


class CartService:
    """
    Business logic for cart operations.

    Responsibilities:
      - validate product existence and active flag via the StockOracle
      - enforce (existing + requested) quantity <= live stock
      - render a priced snapshot from *current* catalog data
      - compute cart totals
    """

    def __init__(self, cart_repo: CartRepository, stock_oracle: StockOracle):
        self.cart_repo = cart_repo
        self.stock_oracle = stock_oracle

    # ---- internal helpers ----

    @staticmethod
    def _check_quantity(quantity: int) -> None:
        if quantity is None or quantity < 1:
            raise InvalidQuantity()

    # ---- public operations ----

    def add(
        self,
        session: Session,
        buyer_id: str | None,
        product_id: uuid.UUID,
        quantity: int,
    ) -> CartActionResult:
        """
        Add a product to the buyer's cart.

        Rules:
          - quantity >= 1
          - product must exist and be purchasable
          - existing_quantity + quantity <= stock read right now
        """
        buyer_id = require_buyer(buyer_id)
        self._check_quantity(quantity)

        product = self.stock_oracle.get_purchasable_product(session, product_id)
        if product is None:
            logger.warning("cart.add.product_unavailable", product_id=str(product_id))
            raise ProductUnavailable()

        existing = self.cart_repo.get_item(session, buyer_id, product_id)
        new_qty = quantity + (existing.quantity if existing else 0)

        if new_qty > product.stock:
            logger.warning(
                "cart.add.insufficient_stock",
                product_id=str(product_id),
                existing=existing.quantity if existing else 0,
                requested=new_qty,
                available=product.stock,
            )
            message = None
            if existing:
                message = (
                    f"Not enough stock. You already have {existing.quantity} in your cart "
                    f"(available: {product.stock})."
                )
            raise InsufficientStock(requested=new_qty, available=product.stock, message=message)

        if existing:
            existing.quantity = new_qty
            self.cart_repo.update(session, existing)
            logger.info("cart.add.merged", product_id=str(product_id), quantity=new_qty)
            return CartActionResult(
                message=f"Added to cart ({new_qty} in total).",
                quantity=new_qty,
            )

        self.cart_repo.create(
            session,
            CartItem(buyer_id=buyer_id, product_id=product_id, quantity=quantity),
        )
        logger.info("cart.add.created", product_id=str(product_id), quantity=quantity)
        return CartActionResult(message="Added to cart.", quantity=quantity)

    def list_lines(self, session: Session, buyer_id: str | None) -> list[PricedCartLine]:
        """
        All lines joined with the product as it is now, newest first.

        Lines whose product row no longer exists are skipped: the product
        is treated as already removed from the cart.
        """
        buyer_id = require_buyer(buyer_id)

        lines: list[PricedCartLine] = []
        for item in self.cart_repo.list_for_buyer(session, buyer_id):
            product = self.stock_oracle.lookup(session, item.product_id)
            if product is None:
                logger.debug("cart.list.dropped_missing_product", product_id=str(item.product_id))
                continue
            lines.append(
                PricedCartLine(
                    id=item.id,
                    buyer_id=item.buyer_id,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    display_name=product.name,
                    unit_price=product.price,
                    available_quantity=product.stock,
                    is_purchasable=product.active,
                    line_total=product.price * item.quantity,
                    created_at=item.created_at,
                )
            )
        return lines

    @staticmethod
    def compute_total(lines: Iterable[PricedCartLine]) -> CartTotal:
        subtotal = 0
        item_count = 0
        for line in lines:
            subtotal += line.line_total
            item_count += line.quantity
        return CartTotal(subtotal=subtotal, item_count=item_count)

    def total(self, session: Session, buyer_id: str | None) -> CartTotal:
        return self.compute_total(self.list_lines(session, buyer_id))

    def summary(self, session: Session, buyer_id: str | None) -> CartSummary:
        lines = self.list_lines(session, buyer_id)
        totals = self.compute_total(lines)
        return CartSummary(
            items=lines,
            subtotal=totals.subtotal,
            item_count=totals.item_count,
        )

    def set_quantity(
        self,
        session: Session,
        buyer_id: str | None,
        line_id: uuid.UUID,
        quantity: int,
    ) -> CartActionResult:
        """
        Replace the quantity of one of the buyer's lines.

        Re-validates that the product is still for sale and that stock
        covers the new quantity.
        """
        buyer_id = require_buyer(buyer_id)
        self._check_quantity(quantity)

        item = self.cart_repo.get_owned(session, buyer_id, line_id)
        if item is None:
            raise NotFound("This item is not in your cart.")

        product = self.stock_oracle.get_purchasable_product(session, item.product_id)
        if product is None:
            raise ProductUnavailable()
        if quantity > product.stock:
            raise InsufficientStock(requested=quantity, available=product.stock)

        item.quantity = quantity
        self.cart_repo.update(session, item)
        logger.info("cart.quantity.updated", line_id=str(line_id), quantity=quantity)
        return CartActionResult(message="Quantity updated.", quantity=quantity)

    def remove(self, session: Session, buyer_id: str | None, line_id: uuid.UUID) -> ActionResult:
        return self.remove_many(session, buyer_id, [line_id])

    def remove_many(
        self,
        session: Session,
        buyer_id: str | None,
        line_ids: Iterable[uuid.UUID],
    ) -> ActionResult:
        """
        Delete the given lines if they belong to the buyer.

        Lines that are absent (or belong to someone else) are ignored, so
        repeating the call is harmless.
        """
        buyer_id = require_buyer(buyer_id)
        removed = self.cart_repo.delete_owned(session, buyer_id, line_ids)
        logger.info("cart.lines.removed", removed=removed)
        return ActionResult(message="Removed from cart.")

    def clear(self, session: Session, buyer_id: str | None) -> ActionResult:
        """
        Clear all items from the cart.
        """
        buyer_id = require_buyer(buyer_id)
        self.cart_repo.clear_buyer_cart(session, buyer_id)
        return ActionResult(message="Cart cleared.")
