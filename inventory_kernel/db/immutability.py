"""
ORM-Level Append-Only Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The movement trail is a compliance record: once written it must never change,
and the alert lifecycle only moves forward.  Services already respect these
rules; the listeners here catch anything that goes around them (a stray
session.delete(), a careless attribute assignment in a script).

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |                                                        ^
         v                                                        |
    [before_delete event] --> _check_*_delete() -----------------+
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | Rule
----------------|------------------------------------------------------------
MovementRecord  | ALWAYS immutable, never deleted
Alert           | resolved / po_generated only go false -> true;
                | item_id, type, message, created_at never change;
                | ORM-level delete forbidden (item cascade uses bulk DELETE)
Item            | sku never changes after creation

Bulk statements (session.execute(delete(...))) do not fire mapper events.
AlertLifecycleManager.purge_for_item relies on this for the item-deletion
cascade, which is the single sanctioned removal path for alerts.

===============================================================================
USAGE
===============================================================================

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

    unregister_immutability_listeners()  # TESTS ONLY
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_ALERT_FROZEN_FIELDS = ("item_id", "type", "message", "created_at")
_ALERT_ONE_WAY_FLAGS = ("resolved", "po_generated")


def _blocked(entity_type: str, entity_id: str, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "operation": operation,
            "field": field,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
    )


def _check_movement_immutability(mapper, connection, target):
    """Movement records are immutable from creation."""
    from inventory_kernel.models.movement import MovementRecord

    if not isinstance(target, MovementRecord):
        return

    raise _blocked(
        "MovementRecord",
        str(target.id),
        "UPDATE",
        "Movement records are append-only and cannot be modified",
    )


def _check_movement_delete(mapper, connection, target):
    """Movement records are never deleted, not even with their item."""
    from inventory_kernel.models.movement import MovementRecord

    if not isinstance(target, MovementRecord):
        return

    raise _blocked(
        "MovementRecord",
        str(target.id),
        "DELETE",
        "Movement records are append-only and cannot be deleted",
    )


def _check_alert_immutability(mapper, connection, target):
    """
    Alerts only move forward.

    resolved and po_generated may flip false -> true; flipping back is an
    un-resolve, which the lifecycle does not have.
    """
    from inventory_kernel.models.alert import Alert

    if not isinstance(target, Alert):
        return

    for flag in _ALERT_ONE_WAY_FLAGS:
        hist = get_history(target, flag)
        if hist.deleted and hist.deleted[0] and hist.added and not hist.added[0]:
            raise _blocked(
                "Alert",
                str(target.id),
                "UPDATE",
                f"Cannot reset '{flag}' once it is set",
                field=flag,
            )

    insp = inspect(target)
    for key in _ALERT_FROZEN_FIELDS:
        if insp.attrs[key].history.has_changes():
            raise _blocked(
                "Alert",
                str(target.id),
                "UPDATE",
                f"Cannot modify field '{key}' on an alert",
                field=key,
            )


def _check_alert_delete(mapper, connection, target):
    """Alerts are removed only by the item-deletion cascade."""
    from inventory_kernel.models.alert import Alert

    if not isinstance(target, Alert):
        return

    raise _blocked(
        "Alert",
        str(target.id),
        "DELETE",
        "Alerts are only removed together with their item",
    )


def _check_item_sku_immutability(mapper, connection, target):
    """SKU is the item's external identity."""
    from inventory_kernel.models.item import Item

    if not isinstance(target, Item):
        return

    if get_history(target, "sku").has_changes():
        raise _blocked(
            "Item",
            str(target.id),
            "UPDATE",
            "Cannot modify sku after creation",
            field="sku",
        )


def register_immutability_listeners():
    """
    Register all append-only enforcement event listeners.

    Call after models are imported and before any database operations.
    Registering twice is harmless.
    """
    from inventory_kernel.models import Alert, Item, MovementRecord

    for target, name, fn in _listeners(MovementRecord, Alert, Item):
        if not event.contains(target, name, fn):
            event.listen(target, name, fn)


def _listeners(movement_cls, alert_cls, item_cls):
    return (
        (movement_cls, "before_update", _check_movement_immutability),
        (movement_cls, "before_delete", _check_movement_delete),
        (alert_cls, "before_update", _check_alert_immutability),
        (alert_cls, "before_delete", _check_alert_delete),
        (item_cls, "before_update", _check_item_sku_immutability),
    )


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove append-only enforcement event listeners.

    WARNING: Only use this in tests that intentionally violate the rules.
    """
    from inventory_kernel.models import Alert, Item, MovementRecord

    for target, name, fn in _listeners(MovementRecord, Alert, Item):
        _safe_remove_listener(target, name, fn)
