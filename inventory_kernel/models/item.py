"""
Module: inventory_kernel.models.item
Responsibility: ORM persistence for tracked stock-keeping units.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - stock >= 0 and threshold >= 0 (CHECK constraints; validation upstream).
    - sku is unique (UNIQUE constraint) and immutable after creation
      (ORM listener in db/immutability.py).
    - version increments on every ledger mutation.

Mutation path:
    Items are written only by ItemLedger, which is called only by the
    MutationOrchestrator.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase, UUIDString


class Item(TrackedBase):
    """
    A tracked stock-keeping unit.

    Guarantees:
        - One row per SKU.
        - stock and threshold are never negative.

    Non-goals:
        - category_id / brand_id are opaque references; catalog metadata
          lives outside this kernel.
    """

    __tablename__ = "items"

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_items_stock_non_negative"),
        CheckConstraint("threshold >= 0", name="ck_items_threshold_non_negative"),
        CheckConstraint("price >= 0", name="ck_items_price_non_negative"),
        Index("idx_items_name", "name"),
        Index("idx_items_category", "category_id"),
        Index("idx_items_brand", "brand_id"),
    )

    sku: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
    )

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    barcode: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    stock: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # Reorder point: stock at or below this value is "low"
    threshold: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    category_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    brand_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    expiry_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )

    def __repr__(self) -> str:
        return f"<Item {self.sku} stock={self.stock} threshold={self.threshold}>"

    @property
    def is_low(self) -> bool:
        """Stock is at or below the reorder threshold."""
        return self.stock <= self.threshold
