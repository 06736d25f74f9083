# app/repositories/cart_repo.py
import uuid
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import delete
from sqlmodel import Session, select

from app.models.cart import CartItem


class CartRepository:

    # Get items for a buyer, most recently added first
    def list_for_buyer(self, session: Session, buyer_id: str) -> list[CartItem]:
        stmt = (
            select(CartItem)
            .where(CartItem.buyer_id == buyer_id)
            .order_by(CartItem.created_at.desc())
        )
        return list(session.exec(stmt).all())

    def get_item(
        self, session: Session, buyer_id: str, product_id: uuid.UUID
    ) -> CartItem | None:
        stmt = select(CartItem).where(
            CartItem.buyer_id == buyer_id, CartItem.product_id == product_id
        )
        return session.exec(stmt).first()

    def get_owned(
        self, session: Session, buyer_id: str, item_id: uuid.UUID
    ) -> CartItem | None:
        stmt = select(CartItem).where(
            CartItem.id == item_id, CartItem.buyer_id == buyer_id
        )
        return session.exec(stmt).first()

    # CRUD
    def create(self, session: Session, item: CartItem) -> CartItem:
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    def update(self, session: Session, item: CartItem) -> CartItem:
        item.updated_at = datetime.now(timezone.utc)
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    def delete_owned(
        self, session: Session, buyer_id: str, item_ids: Iterable[uuid.UUID]
    ) -> int:
        """Delete the given lines if they belong to the buyer. Returns rows removed."""
        ids = list(item_ids)
        if not ids:
            return 0
        stmt = delete(CartItem).where(
            CartItem.buyer_id == buyer_id, CartItem.id.in_(ids)
        )
        result = session.exec(stmt)
        session.commit()
        return result.rowcount

    def clear_buyer_cart(self, session: Session, buyer_id: str) -> int:
        stmt = delete(CartItem).where(CartItem.buyer_id == buyer_id)
        result = session.exec(stmt)
        session.commit()
        return result.rowcount
