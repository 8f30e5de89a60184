"""ORM models. Importing this package registers every table on Base.metadata."""

from inventory_kernel.models.alert import Alert, AlertType
from inventory_kernel.models.item import Item
from inventory_kernel.models.movement import MovementAction, MovementRecord

__all__ = [
    "Alert",
    "AlertType",
    "Item",
    "MovementAction",
    "MovementRecord",
]
