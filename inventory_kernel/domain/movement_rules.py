"""
Movement classification -- pure rules for turning a stock change into a
movement plan.

Rules (no explicit hint):
    new_stock > old_stock  -> Restock
    new_stock < old_stock  -> Sale
    new_stock == old_stock -> no movement

Explicit hints:
    Create      always recorded (old_stock is taken as given, usually 0)
    Delete      always recorded, new_stock forced to 0, quantity = -old_stock
    Adjustment  recorded when the stock actually changes
    Transfer    recorded when the stock actually changes
"""

from dataclasses import dataclass

from inventory_kernel.exceptions import AuditInvariantError
from inventory_kernel.models.movement import MovementAction

_ALWAYS_RECORDED = frozenset({MovementAction.CREATE, MovementAction.DELETE})
_IMPLICIT_ONLY = frozenset({MovementAction.RESTOCK, MovementAction.SALE})


@dataclass(frozen=True)
class MovementPlan:
    """What the recorder will write."""

    action: MovementAction
    quantity: int
    old_stock: int
    new_stock: int

    def __post_init__(self) -> None:
        if self.new_stock != self.old_stock + self.quantity:
            raise AuditInvariantError(self.old_stock, self.new_stock, self.quantity)


def classify_movement(
    old_stock: int,
    new_stock: int,
    action_hint: MovementAction | None = None,
) -> MovementPlan | None:
    """
    Decide whether a stock change produces a movement, and which kind.

    Returns None for a stock-neutral change that has no Create/Delete hint.

    Raises:
        ValueError: if Restock or Sale is passed as a hint; those are
            always derived from the direction of the change.
    """
    if action_hint in _IMPLICIT_ONLY:
        raise ValueError(f"{action_hint.value} is derived, not hinted")

    if action_hint == MovementAction.DELETE:
        new_stock = 0

    if action_hint not in _ALWAYS_RECORDED and new_stock == old_stock:
        return None

    if action_hint is not None:
        action = action_hint
    elif new_stock > old_stock:
        action = MovementAction.RESTOCK
    else:
        action = MovementAction.SALE

    return MovementPlan(
        action=action,
        quantity=new_stock - old_stock,
        old_stock=old_stock,
        new_stock=new_stock,
    )
