"""
Module: inventory_kernel.models.movement
Responsibility: ORM persistence for the append-only stock movement trail.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - new_stock = old_stock + quantity (CHECK constraint, and checked by
      MovementRecorder before INSERT).
    - Append-only: no UPDATE or DELETE (ORM listeners in db/immutability.py).
    - item_id is NOT a foreign key.  Deleting an item must never touch its
      trail; item_sku and item_name are captured at write time so the trail
      stays readable after deletion.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - IntegrityError if the arithmetic CHECK is violated by raw SQL.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UTCDateTime, UUIDString


class MovementAction(str, Enum):
    """Kind of stock-affecting event a movement describes."""

    CREATE = "Create"
    RESTOCK = "Restock"
    SALE = "Sale"
    ADJUSTMENT = "Adjustment"
    DELETE = "Delete"
    TRANSFER = "Transfer"


class MovementRecord(Base):
    """
    One stock-affecting event.

    Contract:
        Exactly one record per mutating operation, written by
        MovementRecorder only.  Records are never merged or batched.
    """

    __tablename__ = "movement_records"

    __table_args__ = (
        CheckConstraint(
            "new_stock = old_stock + quantity",
            name="ck_movement_signed_quantity",
        ),
        CheckConstraint("old_stock >= 0", name="ck_movement_old_stock_non_negative"),
        CheckConstraint("new_stock >= 0", name="ck_movement_new_stock_non_negative"),
        Index("idx_movement_item", "item_id"),
        Index("idx_movement_actor", "actor_id"),
        Index("idx_movement_action", "action"),
        Index("idx_movement_created", "created_at"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # Denormalized at write time
    item_sku: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    item_name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    actor_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    actor_name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    action: Mapped[MovementAction] = mapped_column(
        String(20),
        nullable=False,
    )

    # Signed: + for restock, - for sale/delete
    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    old_stock: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    new_stock: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<MovementRecord {self.action} {self.item_sku} "
            f"{self.old_stock}->{self.new_stock}>"
        )
