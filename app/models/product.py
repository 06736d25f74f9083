# app/models/product.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Product(SQLModel, table=True):
    """
    Catalog entry, as far as checkout needs it.

    The catalog itself (browsing, categories, search) lives elsewhere.
    Checkout only reads price / stock / name / is_active through the
    StockOracle, and adjusts stock_quantity through conditional updates
    when stock reservation is enabled.
    """

    __tablename__ = "products"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(
        max_length=255,
        index=True,
        description="Display name",
    )

    description: str | None = Field(
        default=None,
        description="Optional long description",
    )

    price: int = Field(
        ge=0,
        description="Unit price in the smallest currency unit (e.g. KRW)",
    )

    stock_quantity: int = Field(
        default=0,
        ge=0,
        description="How many units currently in stock",
    )

    is_active: bool = Field(
        default=True,
        index=True,
        description="Whether this product can be purchased",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
