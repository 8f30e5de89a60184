"""
MutationOrchestrator -- the single entry point for stock-affecting operations.

Responsibility:
    Sequences capability check, per-item lock, ledger mutation, movement,
    alert evaluation and event hand-off for every write the kernel accepts.
    External handlers (HTTP, CLI, workers) call this and nothing else on the
    write side.

Flow for a stock update:

    require(actor, MUTATE_STOCK)
    with item lock:
        T1: ItemLedger.apply_mutation + MovementRecorder.record -> COMMIT
        T2: AlertLifecycleManager.evaluate                       -> COMMIT
    EventPublisher.publish(alert payload)        # after the lock is released

Invariants enforced:
    - The movement is durable before any result is returned.
    - Persistence happens before notification.
    - A failure in T2 raises PersistenceFailureError(ledger_committed=True);
      the committed stock change is not undone.

Failure modes:
    - CapabilityDeniedError before any step runs.
    - ValidationFailedError for malformed input.
    - Not-found, duplicate and conflict errors from the services, after a
      rollback of the current transaction.
"""

import time
from dataclasses import replace
from typing import Any, Callable, Mapping, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inventory_kernel.domain.capabilities import Actor, Capability, CapabilityPolicy
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import AlertSnapshot, ItemPatch, ItemSnapshot, ItemSpec
from inventory_kernel.domain.validation import validate_item_patch, validate_item_spec
from inventory_kernel.exceptions import PersistenceFailureError
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.item import Item
from inventory_kernel.models.movement import MovementAction
from inventory_kernel.services.alert_lifecycle import AlertLifecycleManager
from inventory_kernel.services.event_publisher import LOW_STOCK_ALERT_TOPIC, EventPublisher
from inventory_kernel.services.item_ledger import ItemLedger
from inventory_kernel.services.item_locks import ItemLockRegistry
from inventory_kernel.services.movement_recorder import MovementRecorder

logger = get_logger("services.mutation_orchestrator")

T = TypeVar("T")


def _patch_applier(patch: ItemPatch) -> Callable[[Item], None]:
    def apply(item: Item) -> None:
        for field_name, value in patch.changes.items():
            setattr(item, field_name, value)
    return apply


class MutationOrchestrator:
    """
    Write-side facade over ledger, recorder, alert manager and publisher.

    Each operation opens its own Session from ``session_factory``, so one
    orchestrator can be shared by many worker threads.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        publisher: EventPublisher | None = None,
        clock: Clock | None = None,
        policy: CapabilityPolicy | None = None,
        locks: ItemLockRegistry | None = None,
        alert_topic: str = LOW_STOCK_ALERT_TOPIC,
    ):
        """
        Args:
            session_factory: Produces a fresh Session per operation.
            publisher: Receives low-stock alert payloads.  When None, alerts
                are persisted but not broadcast.
            clock: Source of every timestamp.  Defaults to SystemClock.
            policy: Role -> capability mapping.  Defaults to admin/staff.
            locks: Per-item lock registry; share one per process.
            alert_topic: Topic new alerts are published on.
        """
        self._session_factory = session_factory
        self._publisher = publisher
        self._clock = clock or SystemClock()
        self._policy = policy or CapabilityPolicy()
        self._locks = locks if locks is not None else ItemLockRegistry()
        self._alert_topic = alert_topic

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def create_item(self, spec: ItemSpec | Mapping[str, Any], actor: Actor) -> ItemSnapshot:
        """
        Create an item and its Create movement (0 -> stock).

        Never opens an alert: the evaluation runs with a pre-state of 0
        stock, which cannot be a downward crossing.
        """
        return self._run(
            "create_item",
            actor,
            lambda: self._create_item(spec, actor),
        )

    def update_item(
        self,
        item_id: UUID,
        patch: ItemPatch | Mapping[str, Any],
        actor: Actor,
    ) -> ItemSnapshot:
        """
        Apply a partial update.  A stock change records a movement and may
        open (and publish) a low-stock alert.
        """
        return self._run(
            "update_item",
            actor,
            lambda: self._update_item(item_id, patch, actor),
            item_id=item_id,
        )

    def delete_item(self, item_id: UUID, actor: Actor) -> None:
        """Purge the item's alerts, delete it, and record a Delete movement."""
        self._run(
            "delete_item",
            actor,
            lambda: self._delete_item(item_id, actor),
            item_id=item_id,
        )

    def resolve_alert(self, alert_id: UUID, actor: Actor) -> AlertSnapshot:
        return self._run(
            "resolve_alert",
            actor,
            lambda: self._alert_transition(
                Capability.RESOLVE_ALERT,
                actor,
                lambda alerts: alerts.resolve(alert_id, actor),
            ),
            alert_id=alert_id,
        )

    def generate_purchase_order(self, alert_id: UUID, actor: Actor) -> AlertSnapshot:
        return self._run(
            "generate_purchase_order",
            actor,
            lambda: self._alert_transition(
                Capability.GENERATE_PO,
                actor,
                lambda alerts: alerts.generate_purchase_order(alert_id, actor),
            ),
            alert_id=alert_id,
        )

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        actor: Actor,
        body: Callable[[], T],
        item_id: UUID | None = None,
        alert_id: UUID | None = None,
    ) -> T:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(actor.id),
            operation=operation,
            item_id=str(item_id) if item_id else None,
            alert_id=str(alert_id) if alert_id else None,
        ):
            logger.info(f"{operation}_started", extra={"role": actor.role})
            t0 = time.monotonic()
            try:
                result = body()
            except Exception:
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                logger.error(
                    f"{operation}_failed",
                    extra={"duration_ms": duration_ms},
                    exc_info=True,
                )
                raise
            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info(f"{operation}_completed", extra={"duration_ms": duration_ms})
            return result

    def _create_item(self, spec: ItemSpec | Mapping[str, Any], actor: Actor) -> ItemSnapshot:
        self._policy.require(actor, Capability.CREATE_ITEM)
        spec = validate_item_spec(spec)

        with self._session_factory() as session:
            ledger = ItemLedger(session, self._clock)
            recorder = MovementRecorder(session, self._clock)
            alerts = AlertLifecycleManager(session, self._clock)

            try:
                item = ledger.create(spec, actor)
            except Exception:
                session.rollback()
                raise

            with self._locks.hold(item.id):
                try:
                    recorder.record(item, actor, 0, item.stock, MovementAction.CREATE)
                    self._commit(session, "create_item")
                except Exception:
                    session.rollback()
                    raise

                alert = self._evaluate_alerts(session, alerts, replace(item, stock=0), item)

        self._publish(alert, item)
        return item

    def _update_item(
        self,
        item_id: UUID,
        patch: ItemPatch | Mapping[str, Any],
        actor: Actor,
    ) -> ItemSnapshot:
        self._policy.require(actor, Capability.MUTATE_STOCK)
        patch = validate_item_patch(patch)

        alert = None
        with self._locks.hold(item_id):
            with self._session_factory() as session:
                ledger = ItemLedger(session, self._clock)
                recorder = MovementRecorder(session, self._clock)
                alerts = AlertLifecycleManager(session, self._clock)

                try:
                    old, new = ledger.apply_mutation(item_id, _patch_applier(patch), actor)
                    if new.stock != old.stock:
                        recorder.record(new, actor, old.stock, new.stock)
                    self._commit(session, "update_item")
                except Exception:
                    session.rollback()
                    raise

                if new.stock != old.stock:
                    alert = self._evaluate_alerts(session, alerts, old, new)

        self._publish(alert, new)
        return new

    def _delete_item(self, item_id: UUID, actor: Actor) -> None:
        self._policy.require(actor, Capability.DELETE_ITEM)

        with self._locks.hold(item_id):
            with self._session_factory() as session:
                ledger = ItemLedger(session, self._clock)
                recorder = MovementRecorder(session, self._clock)
                alerts = AlertLifecycleManager(session, self._clock)

                try:
                    purged = alerts.purge_for_item(item_id)
                    last = ledger.delete(item_id)
                    recorder.record(last, actor, last.stock, 0, MovementAction.DELETE)
                    self._commit(session, "delete_item")
                except Exception:
                    session.rollback()
                    raise

        logger.info(
            "item_delete_cascade",
            extra={"item_id": str(item_id), "alerts_purged": purged, "last_stock": last.stock},
        )

    def _alert_transition(
        self,
        capability: Capability,
        actor: Actor,
        step: Callable[[AlertLifecycleManager], AlertSnapshot],
    ) -> AlertSnapshot:
        self._policy.require(actor, capability)

        with self._session_factory() as session:
            alerts = AlertLifecycleManager(session, self._clock)
            try:
                result = step(alerts)
                self._commit(session, capability.value)
            except Exception:
                session.rollback()
                raise
        return result

    def _evaluate_alerts(
        self,
        session: Session,
        alerts: AlertLifecycleManager,
        old: ItemSnapshot,
        new: ItemSnapshot,
    ) -> AlertSnapshot | None:
        """Second transaction.  The ledger change is already committed."""
        try:
            alert = alerts.evaluate(old, new)
            session.commit()
        except (SQLAlchemyError, PersistenceFailureError) as exc:
            session.rollback()
            reason = exc.reason if isinstance(exc, PersistenceFailureError) else str(exc)
            raise PersistenceFailureError(
                "evaluate_alert", reason, ledger_committed=True
            ) from exc
        return alert

    def _commit(self, session: Session, operation: str) -> None:
        try:
            session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceFailureError(operation, str(exc)) from exc

    def _publish(self, alert: AlertSnapshot | None, item: ItemSnapshot) -> None:
        if alert is None or self._publisher is None:
            return
        self._publisher.publish(self._alert_topic, alert.to_payload(item))
