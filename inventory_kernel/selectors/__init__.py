"""
Read-only query selectors.

Selectors take a caller-owned Session and return frozen DTOs from
inventory_kernel.domain.dtos.
"""

from inventory_kernel.selectors.alert_selector import AlertSelector
from inventory_kernel.selectors.base import BaseSelector
from inventory_kernel.selectors.item_selector import ItemSelector
from inventory_kernel.selectors.movement_selector import MovementSelector

__all__ = [
    "AlertSelector",
    "BaseSelector",
    "ItemSelector",
    "MovementSelector",
]
