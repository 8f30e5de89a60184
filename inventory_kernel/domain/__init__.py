"""
Pure domain layer.

This module contains value objects and rules with NO dependencies on:
- Database sessions
- Time (beyond the injectable Clock)
- I/O

All domain objects are immutable and deterministic.
"""

from inventory_kernel.domain.alert_rules import is_downward_crossing, low_stock_message
from inventory_kernel.domain.capabilities import (
    DEFAULT_ROLE_CAPABILITIES,
    Actor,
    Capability,
    CapabilityPolicy,
)
from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.dtos import (
    AlertSnapshot,
    ItemPatch,
    ItemSnapshot,
    ItemSpec,
    MovementSnapshot,
)
from inventory_kernel.domain.movement_rules import MovementPlan, classify_movement
from inventory_kernel.domain.validation import validate_item_patch, validate_item_spec

__all__ = [
    # Actors and authorization
    "Actor",
    "Capability",
    "CapabilityPolicy",
    "DEFAULT_ROLE_CAPABILITIES",
    # Time
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # DTOs
    "AlertSnapshot",
    "ItemPatch",
    "ItemSnapshot",
    "ItemSpec",
    "MovementSnapshot",
    # Rules
    "MovementPlan",
    "classify_movement",
    "is_downward_crossing",
    "low_stock_message",
    "validate_item_patch",
    "validate_item_spec",
]
