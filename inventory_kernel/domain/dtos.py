"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable values that flow through the mutation pipeline:
    ItemSpec / ItemPatch (validated input), and ItemSnapshot,
    MovementSnapshot, AlertSnapshot (what services and selectors hand back).

Architecture position:
    Kernel > Domain -- zero I/O.  from_model() class methods are boundary
    converters invoked from the service and selector layers only.

Invariants enforced:
    - Snapshots are frozen; callers can never mutate ledger state through a
      returned value.
    - ItemPatch.changes is a read-only mapping.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping
from uuid import UUID

from inventory_kernel.models.alert import AlertType
from inventory_kernel.models.movement import MovementAction

if TYPE_CHECKING:
    from inventory_kernel.models.alert import Alert as AlertModel
    from inventory_kernel.models.item import Item as ItemModel
    from inventory_kernel.models.movement import MovementRecord as MovementModel


@dataclass(frozen=True)
class ItemSpec:
    """Validated input for creating an item."""

    sku: str
    name: str
    stock: int
    threshold: int
    price: Decimal
    barcode: str | None = None
    category_id: UUID | None = None
    brand_id: UUID | None = None
    expiry_date: date | None = None


@dataclass(frozen=True)
class ItemPatch:
    """
    Validated partial update.

    Only the keys present in ``changes`` are applied; an explicit None
    clears an optional field.
    """

    changes: Mapping[str, Any]

    def __post_init__(self) -> None:
        object.__setattr__(self, "changes", MappingProxyType(dict(self.changes)))

    @property
    def stock(self) -> int | None:
        return self.changes.get("stock")

    def touches(self, field_name: str) -> bool:
        return field_name in self.changes


@dataclass(frozen=True)
class ItemSnapshot:
    """Point-in-time copy of an item row."""

    id: UUID
    sku: str
    name: str
    stock: int
    threshold: int
    price: Decimal
    barcode: str | None
    category_id: UUID | None
    brand_id: UUID | None
    expiry_date: date | None
    version: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, item: ItemModel) -> ItemSnapshot:
        return cls(
            id=item.id,
            sku=item.sku,
            name=item.name,
            stock=item.stock,
            threshold=item.threshold,
            price=item.price,
            barcode=item.barcode,
            category_id=item.category_id,
            brand_id=item.brand_id,
            expiry_date=item.expiry_date,
            version=item.version,
            created_at=item.created_at,
            updated_at=item.updated_at,
        )

    @property
    def is_low(self) -> bool:
        return self.stock <= self.threshold


@dataclass(frozen=True)
class MovementSnapshot:
    """Read-side copy of a movement record."""

    id: UUID
    item_id: UUID
    item_sku: str
    item_name: str
    actor_id: UUID
    actor_name: str
    action: MovementAction
    quantity: int
    old_stock: int
    new_stock: int
    created_at: datetime

    @classmethod
    def from_model(cls, record: MovementModel) -> MovementSnapshot:
        return cls(
            id=record.id,
            item_id=record.item_id,
            item_sku=record.item_sku,
            item_name=record.item_name,
            actor_id=record.actor_id,
            actor_name=record.actor_name,
            action=MovementAction(record.action),
            quantity=record.quantity,
            old_stock=record.old_stock,
            new_stock=record.new_stock,
            created_at=record.created_at,
        )


@dataclass(frozen=True)
class AlertSnapshot:
    """Read-side copy of an alert."""

    id: UUID
    item_id: UUID
    type: AlertType
    message: str
    resolved: bool
    po_generated: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, alert: AlertModel) -> AlertSnapshot:
        return cls(
            id=alert.id,
            item_id=alert.item_id,
            type=AlertType(alert.type),
            message=alert.message,
            resolved=alert.resolved,
            po_generated=alert.po_generated,
            created_at=alert.created_at,
            updated_at=alert.updated_at,
        )

    def to_payload(self, item: ItemSnapshot) -> dict[str, Any]:
        """
        Event payload: the alert, denormalized with the item fields a
        dashboard needs so it never has to issue a follow-up read.
        """
        return {
            "id": str(self.id),
            "type": self.type.value,
            "message": self.message,
            "resolved": self.resolved,
            "po_generated": self.po_generated,
            "created_at": self.created_at.isoformat(),
            "item": {
                "id": str(item.id),
                "name": item.name,
                "sku": item.sku,
                "stock": item.stock,
                "threshold": item.threshold,
            },
        }
