"""
Module: inventory_kernel.models.alert
Responsibility: ORM persistence for low-stock alerts and their lifecycle flags.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - At most one unresolved alert per item: partial unique index
      uq_alerts_one_unresolved_per_item on (item_id) WHERE resolved = false.
      This is the storage-level backstop behind the per-item lock.
    - resolved and po_generated are one-way flags (false -> true only);
      item_id, type, message and created_at never change
      (ORM listeners in db/immutability.py).
    - Rows are removed only by the item-deletion cascade.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, false
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UTCDateTime, UUIDString


class AlertType(str, Enum):
    """Alert category."""

    LOW_STOCK = "low_stock"
    REORDER = "reorder"
    OTHER = "other"


class Alert(Base):
    """
    A detected low-stock condition for one item.

    Lifecycle:
        NONE -> OPEN -> RESOLVED, with po_generated orthogonal to resolution.
        There is no automatic resolution when stock rises again.
    """

    __tablename__ = "alerts"

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("items.id", ondelete="CASCADE"),
        nullable=False,
    )

    type: Mapped[AlertType] = mapped_column(
        String(20),
        nullable=False,
        default=AlertType.LOW_STOCK,
    )

    message: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )

    resolved: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    po_generated: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    resolved_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    po_generated_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    def __repr__(self) -> str:
        state = "resolved" if self.resolved else "open"
        return f"<Alert {self.type} {state} item={self.item_id}>"


Index("idx_alerts_item", Alert.item_id)
Index("idx_alerts_resolved_created", Alert.resolved, Alert.created_at)
Index(
    "uq_alerts_one_unresolved_per_item",
    Alert.item_id,
    unique=True,
    postgresql_where=Alert.resolved == false(),
    sqlite_where=Alert.resolved == false(),
)
