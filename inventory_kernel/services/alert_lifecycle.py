"""
AlertLifecycleManager -- opens, resolves and flags low-stock alerts.

Responsibility:
    Decides, from an item's before/after state, whether a new alert is
    opened; owns the resolve and purchase-order transitions; and removes an
    item's alerts when the item is deleted.

Architecture position:
    Kernel > Services.  Called by MutationOrchestrator.  ``evaluate`` runs
    in its own transaction after the ledger change has committed, while the
    per-item lock is still held.

Per-item states:

    NONE ──crossing──> OPEN ──resolve──> RESOLVED ──crossing──> OPEN ...
                        │
                        └── po_generated (orthogonal flag, set once)

Invariants enforced:
    - At most one unresolved alert per item.  The check runs under the
      item lock; the partial unique index catches anything that slips past
      it (another process), and that IntegrityError is treated as "already
      open".
    - Alerts are never auto-resolved when stock rises.

Failure modes:
    - AlertNotFoundError for an unknown alert id.
    - PurchaseOrderAlreadyGeneratedError on a second PO request.
    - PersistenceFailureError wrapping any other database error.
"""

from uuid import UUID

from sqlalchemy import delete, false, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from inventory_kernel.domain.alert_rules import is_downward_crossing, low_stock_message
from inventory_kernel.domain.capabilities import Actor
from inventory_kernel.domain.dtos import AlertSnapshot, ItemSnapshot
from inventory_kernel.exceptions import (
    AlertNotFoundError,
    PersistenceFailureError,
    PurchaseOrderAlreadyGeneratedError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.alert import Alert, AlertType
from inventory_kernel.services.base import BaseService

logger = get_logger("services.alert_lifecycle")


class AlertLifecycleManager(BaseService):
    """Alert state transitions.  Flush-only; the orchestrator commits."""

    def evaluate(self, old: ItemSnapshot, new: ItemSnapshot) -> AlertSnapshot | None:
        """
        Open a low-stock alert if this change is a downward crossing and
        the item has no unresolved alert.

        Returns:
            The new alert, or None when nothing was opened.
        """
        if not is_downward_crossing(old.stock, new.stock, new.threshold):
            return None

        try:
            open_alert = self._unresolved_for(new.id)
            if open_alert is not None:
                logger.debug(
                    "alert_already_open",
                    extra={"item_id": str(new.id), "alert_id": str(open_alert.id)},
                )
                return None

            now = self.clock.now()
            alert = Alert(
                item_id=new.id,
                type=AlertType.LOW_STOCK.value,
                message=low_stock_message(new.name, new.stock, new.threshold),
                resolved=False,
                po_generated=False,
                created_at=now,
                updated_at=now,
            )
            try:
                with self.session.begin_nested():
                    self.session.add(alert)
            except IntegrityError:
                logger.info(
                    "alert_open_race_lost",
                    extra={"item_id": str(new.id)},
                )
                return None
        except SQLAlchemyError as exc:
            raise PersistenceFailureError("evaluate_alert", str(exc)) from exc

        logger.info(
            "alert_opened",
            extra={
                "item_id": str(new.id),
                "alert_id": str(alert.id),
                "stock": new.stock,
                "threshold": new.threshold,
            },
        )
        return AlertSnapshot.from_model(alert)

    def generate_purchase_order(self, alert_id: UUID, actor: Actor) -> AlertSnapshot:
        """
        Set the PO flag.  The alert stays open.

        Raises:
            AlertNotFoundError: Unknown alert.
            PurchaseOrderAlreadyGeneratedError: Flag already set; it stays set.
        """
        alert = self._load_for_update(alert_id)
        if alert.po_generated:
            raise PurchaseOrderAlreadyGeneratedError(str(alert_id))

        alert.po_generated = True
        alert.po_generated_by_id = actor.id
        alert.updated_at = self.clock.now()
        self._flush("generate_purchase_order")

        logger.info(
            "purchase_order_generated",
            extra={"alert_id": str(alert_id), "item_id": str(alert.item_id)},
        )
        return AlertSnapshot.from_model(alert)

    def resolve(self, alert_id: UUID, actor: Actor) -> AlertSnapshot:
        """
        Mark the alert resolved.  Resolving twice returns the alert unchanged.

        Raises:
            AlertNotFoundError: Unknown alert.
        """
        alert = self._load_for_update(alert_id)
        if alert.resolved:
            logger.debug("alert_already_resolved", extra={"alert_id": str(alert_id)})
            return AlertSnapshot.from_model(alert)

        alert.resolved = True
        alert.resolved_by_id = actor.id
        alert.updated_at = self.clock.now()
        self._flush("resolve_alert")

        logger.info(
            "alert_resolved",
            extra={"alert_id": str(alert_id), "item_id": str(alert.item_id)},
        )
        return AlertSnapshot.from_model(alert)

    def purge_for_item(self, item_id: UUID) -> int:
        """
        Delete every alert of the item, resolved or not.

        Issued as a bulk DELETE, the only removal path alerts have.

        Returns:
            Number of alerts removed.
        """
        try:
            result = self.session.execute(
                delete(Alert)
                .where(Alert.item_id == item_id)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as exc:
            raise PersistenceFailureError("purge_alerts", str(exc)) from exc

        count = result.rowcount or 0
        logger.info(
            "alerts_purged",
            extra={"item_id": str(item_id), "count": count},
        )
        return count

    def _unresolved_for(self, item_id: UUID) -> Alert | None:
        return self.session.execute(
            select(Alert).where(
                Alert.item_id == item_id,
                Alert.resolved == false(),
            )
        ).scalar_one_or_none()

    def _load_for_update(self, alert_id: UUID) -> Alert:
        try:
            alert = self.session.execute(
                select(Alert)
                .where(Alert.id == alert_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceFailureError("load_alert", str(exc)) from exc
        if alert is None:
            raise AlertNotFoundError(str(alert_id))
        return alert

    def _flush(self, operation: str) -> None:
        try:
            self.session.flush()
        except SQLAlchemyError as exc:
            raise PersistenceFailureError(operation, str(exc)) from exc
