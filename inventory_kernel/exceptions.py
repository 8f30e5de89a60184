"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the mutation pipeline (HTTP handlers, workers, CLIs) must map
failures onto responses without parsing message strings.  Every error here:

  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as instance attributes

Example:
    try:
        orchestrator.generate_purchase_order(alert_id, actor)
    except PurchaseOrderAlreadyGeneratedError as e:
        return {"error": e.code, "alert_id": e.alert_id}   # 409
    except NotFoundError as e:
        return {"error": e.code}                           # 404

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- NotFoundError
    |   +-- ItemNotFoundError
    |   +-- AlertNotFoundError
    |
    +-- DuplicateIdentityError
    |
    +-- ConflictError
    |   +-- PurchaseOrderAlreadyGeneratedError
    |   +-- CapabilityDeniedError
    |
    +-- ValidationFailedError
    |
    +-- PersistenceFailureError
    |
    +-- AuditInvariantError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                    | When Raised
------------------------|------------------------------------------------------
ITEM_NOT_FOUND          | Unknown item id (update, delete, get)
ALERT_NOT_FOUND         | Unknown alert id (resolve, generate PO)
DUPLICATE_IDENTITY      | SKU collision on create
PO_ALREADY_GENERATED    | Purchase order flag already set on the alert
CAPABILITY_DENIED       | Actor's role lacks the capability for the operation
VALIDATION_FAILED       | Malformed item spec or patch (per-field detail)
PERSISTENCE_FAILURE     | Storage unavailable during ledger/audit/alert write
AUDIT_INVARIANT         | Movement violates new_stock = old_stock + quantity
IMMUTABILITY_VIOLATION  | UPDATE/DELETE of a movement, or alert un-resolve

===============================================================================
HANDLING PATTERNS
===============================================================================

1. PUBLISH FAILURES NEVER APPEAR HERE.  The event publisher logs and drops.

2. DUPLICATE-ALERT RACES ARE SUCCESS.  When the partial unique index rejects
   a second unresolved alert, the lifecycle manager returns None; no
   exception escapes.

3. PERSISTENCE FAILURES ARE NOT COMPENSATED.  ``ledger_committed`` tells the
   caller whether the stock change already landed:

    except PersistenceFailureError as e:
        if e.ledger_committed:
            page_oncall(e)   # stock + movement are durable, alert step failed
"""


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Lookup failures


class NotFoundError(InventoryKernelError):
    """Base exception for unknown identifiers."""

    code: str = "NOT_FOUND"


class ItemNotFoundError(NotFoundError):
    """Item with given ID was not found."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item not found: {item_id}")


class AlertNotFoundError(NotFoundError):
    """Alert with given ID was not found."""

    code: str = "ALERT_NOT_FOUND"

    def __init__(self, alert_id: str):
        self.alert_id = alert_id
        super().__init__(f"Alert not found: {alert_id}")


class DuplicateIdentityError(InventoryKernelError):
    """An item with the same SKU already exists."""

    code: str = "DUPLICATE_IDENTITY"

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"Duplicate value for sku: {sku}")


# Conflicts


class ConflictError(InventoryKernelError):
    """Base exception for state or permission conflicts."""

    code: str = "CONFLICT"


class PurchaseOrderAlreadyGeneratedError(ConflictError):
    """Purchase order was already generated for this alert."""

    code: str = "PO_ALREADY_GENERATED"

    def __init__(self, alert_id: str):
        self.alert_id = alert_id
        super().__init__(
            f"Purchase order already generated for alert {alert_id}"
        )


class CapabilityDeniedError(ConflictError):
    """Actor is not permitted to perform the requested operation."""

    code: str = "CAPABILITY_DENIED"

    def __init__(self, actor_id: str, role: str, capability: str):
        self.actor_id = actor_id
        self.role = role
        self.capability = capability
        super().__init__(
            f"Actor {actor_id} with role '{role}' lacks capability '{capability}'"
        )


class ValidationFailedError(InventoryKernelError):
    """
    Item spec or patch failed validation.

    field_errors is a list of {"field": ..., "message": ...} dicts, one per
    offending field.
    """

    code: str = "VALIDATION_FAILED"

    def __init__(self, field_errors: list[dict]):
        self.field_errors = field_errors
        fields = ", ".join(e["field"] for e in field_errors)
        super().__init__(
            f"Validation failed: {len(field_errors)} error(s) ({fields})"
        )


class PersistenceFailureError(InventoryKernelError):
    """
    Storage failed during a ledger, audit or alert write.

    ledger_committed is True when the stock change and its movement were
    already durable before the failure; the change is left as-is.
    """

    code: str = "PERSISTENCE_FAILURE"

    def __init__(self, operation: str, reason: str, ledger_committed: bool = False):
        self.operation = operation
        self.reason = reason
        self.ledger_committed = ledger_committed
        super().__init__(f"Persistence failure during {operation}: {reason}")


class AuditInvariantError(InventoryKernelError):
    """A movement record would violate new_stock = old_stock + quantity."""

    code: str = "AUDIT_INVARIANT"

    def __init__(self, old_stock: int, new_stock: int, quantity: int):
        self.old_stock = old_stock
        self.new_stock = new_stock
        self.quantity = quantity
        super().__init__(
            f"Movement invariant violated: {old_stock} + {quantity} != {new_stock}"
        )


class ImmutabilityViolationError(InventoryKernelError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
