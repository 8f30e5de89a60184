"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write-side service in the kernel.  Concrete services receive a
    SQLAlchemy ``Session`` and a ``Clock`` and use ``session.flush()``,
    never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    ItemLedger, MovementRecorder and AlertLifecycleManager extend this
    class.  MutationOrchestrator is the only component that commits.

Failure modes:
    - If a subclass calls ``session.commit()`` itself, the ledger and its
      movement can land in separate transactions and the audit trail can
      miss a stock change.
"""

from abc import ABC

from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for write-side services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``; the orchestrator owns transaction
          boundaries.

    Non-goals:
        - Does NOT provide read-only listing; that belongs in
          ``inventory_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
