"""
MovementRecorder -- appends one movement per stock-affecting operation.

Responsibility:
    Classifies an old/new stock pair (see domain/movement_rules.py) and
    inserts the resulting MovementRecord in the caller's transaction.

Architecture position:
    Kernel > Services.  Called by MutationOrchestrator inside the same
    transaction as the ledger change, so the stock and its audit entry
    commit or roll back together.

Invariants enforced:
    - new_stock = old_stock + quantity (MovementPlan, then a DB CHECK).
    - Item sku/name and actor name are copied onto the record.

Failure modes:
    - AuditInvariantError if the arithmetic does not hold.
    - PersistenceFailureError wrapping any database error.  Nothing is
      swallowed: a stock change without its movement must not commit.
"""

from sqlalchemy.exc import SQLAlchemyError

from inventory_kernel.domain.capabilities import Actor
from inventory_kernel.domain.dtos import ItemSnapshot, MovementSnapshot
from inventory_kernel.domain.movement_rules import classify_movement
from inventory_kernel.exceptions import PersistenceFailureError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.movement import MovementAction, MovementRecord
from inventory_kernel.services.base import BaseService

logger = get_logger("services.movement_recorder")


class MovementRecorder(BaseService):
    """Append-only writer for the movement trail."""

    def record(
        self,
        item: ItemSnapshot,
        actor: Actor,
        old_stock: int,
        new_stock: int,
        action_hint: MovementAction | None = None,
    ) -> MovementSnapshot | None:
        """
        Record the change, or return None when there is nothing to record.

        A stock-neutral change is skipped unless the hint is Create or
        Delete.  A Delete always records new_stock = 0.
        """
        plan = classify_movement(old_stock, new_stock, action_hint)
        if plan is None:
            logger.debug(
                "movement_skipped_stock_neutral",
                extra={"item_id": str(item.id), "stock": old_stock},
            )
            return None

        record = MovementRecord(
            item_id=item.id,
            item_sku=item.sku,
            item_name=item.name,
            actor_id=actor.id,
            actor_name=actor.name,
            action=plan.action.value,
            quantity=plan.quantity,
            old_stock=plan.old_stock,
            new_stock=plan.new_stock,
            created_at=self.clock.now(),
        )

        try:
            self.session.add(record)
            self.session.flush()
        except SQLAlchemyError as exc:
            logger.error(
                "movement_record_failed",
                extra={"item_id": str(item.id), "action": plan.action.value},
            )
            raise PersistenceFailureError("record_movement", str(exc)) from exc

        logger.info(
            "movement_recorded",
            extra={
                "item_id": str(item.id),
                "action": plan.action.value,
                "quantity": plan.quantity,
                "old_stock": plan.old_stock,
                "new_stock": plan.new_stock,
            },
        )
        return MovementSnapshot.from_model(record)
