# app/repositories/product_repo.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import update
from sqlmodel import Session

from app.models.product import Product


class ProductRepository:
    """
    Data access layer for the catalog rows checkout depends on.

    - Pure DB operations (CRUD + conditional stock updates).
    - No FastAPI, no business logic.
    """

    def get_by_id(self, session: Session, product_id: uuid.UUID) -> Product | None:
        return session.get(Product, product_id)

    def create(self, session: Session, product: Product) -> Product:
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    def update(self, session: Session, product: Product) -> Product:
        product.updated_at = datetime.now(timezone.utc)
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    # ----- Stock -----

    def decrement_stock_if_available(
        self,
        session: Session,
        product_id: uuid.UUID,
        quantity: int,
    ) -> bool:
        """
        Atomically take `quantity` units if at least that many remain.

        Single conditional UPDATE, so two concurrent checkouts cannot both
        take the last unit. Returns False when nothing was updated.
        """
        stmt = (
            update(Product)
            .where(
                Product.id == product_id,
                Product.is_active == True,  # noqa: E712
                Product.stock_quantity >= quantity,
            )
            .values(
                stock_quantity=Product.stock_quantity - quantity,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        result = session.exec(stmt)
        session.commit()
        return result.rowcount == 1

    def increment_stock(
        self,
        session: Session,
        product_id: uuid.UUID,
        quantity: int,
    ) -> bool:
        """Give back previously taken units. False if the product row is gone."""
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(
                stock_quantity=Product.stock_quantity + quantity,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        result = session.exec(stmt)
        session.commit()
        return result.rowcount == 1
