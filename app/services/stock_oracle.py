# app/services/stock_oracle.py
import uuid
from dataclasses import dataclass

from sqlmodel import Session

from app.models.product import Product
from app.repositories.product_repo import ProductRepository


@dataclass(frozen=True)
class ProductSnapshot:
    """Catalog facts about one product, read at a single point in time."""

    product_id: uuid.UUID
    name: str
    price: int
    stock: int
    active: bool

    @classmethod
    def from_product(cls, product: Product) -> "ProductSnapshot":
        return cls(
            product_id=product.id,
            name=product.name,
            price=product.price,
            stock=product.stock_quantity,
            active=product.is_active,
        )


class StockOracle:
    """
    Answers "is this product buyable, and how many units remain".

    Always reads the row again; callers must not keep snapshots across
    requests.
    """

    def __init__(self, product_repo: ProductRepository):
        self.product_repo = product_repo

    def lookup(self, session: Session, product_id: uuid.UUID) -> ProductSnapshot | None:
        """Snapshot of the product, active or not. None if the row is gone."""
        product = self.product_repo.get_by_id(session, product_id)
        if product is None:
            return None
        # session.get may hand back an identity-mapped instance; reload it
        session.refresh(product)
        return ProductSnapshot.from_product(product)

    def get_purchasable_product(
        self, session: Session, product_id: uuid.UUID
    ) -> ProductSnapshot | None:
        """Snapshot only if the product exists and is for sale."""
        snapshot = self.lookup(session, product_id)
        if snapshot is None or not snapshot.active:
            return None
        return snapshot
