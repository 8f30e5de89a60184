"""
ItemLedger -- the single write path for item rows.

Responsibility:
    Creates items, applies mutations under a row lock, and deletes items.
    Every mutation increments ``version`` and stamps ``updated_at`` /
    ``updated_by_id`` from the injected clock and actor.

Architecture position:
    Kernel > Services.  Called only by MutationOrchestrator, which holds the
    per-item lock around every call and owns the commit.

Invariants enforced:
    - One row per SKU: checked up front and backed by the UNIQUE constraint,
      whose IntegrityError is caught inside a savepoint.
    - Read-modify-write happens on a row loaded with SELECT ... FOR UPDATE,
      never on a stale copy.
    - The ledger never writes movements or alerts.

Failure modes:
    - ItemNotFoundError for an unknown id.
    - DuplicateIdentityError for a SKU collision.
    - PersistenceFailureError when the database rejects a write.
    - ImmutabilityViolationError if a mutator touches ``sku``.
"""

from typing import Callable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from inventory_kernel.domain.capabilities import Actor
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import ItemSnapshot, ItemSpec
from inventory_kernel.exceptions import (
    DuplicateIdentityError,
    ItemNotFoundError,
    PersistenceFailureError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.item import Item
from inventory_kernel.services.base import BaseService

logger = get_logger("services.item_ledger")

Mutator = Callable[[Item], None]


class ItemLedger(BaseService):
    """
    Item persistence with compare-and-set style mutation.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT check capabilities; the orchestrator does that once.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def create(self, spec: ItemSpec, actor: Actor) -> ItemSnapshot:
        """
        Insert a new item.

        Postconditions:
            - The row is flushed with version 1.

        Raises:
            DuplicateIdentityError: SKU already taken (including a
                concurrent insert that wins the race).
            PersistenceFailureError: any other constraint or database failure.
        """
        if self._sku_taken(spec.sku):
            raise DuplicateIdentityError(spec.sku)

        now = self.clock.now()
        item = Item(
            sku=spec.sku,
            name=spec.name,
            barcode=spec.barcode,
            stock=spec.stock,
            threshold=spec.threshold,
            price=spec.price,
            category_id=spec.category_id,
            brand_id=spec.brand_id,
            expiry_date=spec.expiry_date,
            version=1,
            created_at=now,
            updated_at=now,
            created_by_id=actor.id,
            updated_by_id=actor.id,
        )

        try:
            with self.session.begin_nested():
                self.session.add(item)
        except IntegrityError as exc:
            # CHECK failures land here too; only a visible SKU is a duplicate.
            if not self._sku_taken(spec.sku):
                raise PersistenceFailureError("create_item", str(exc.orig)) from exc
            logger.info(
                "item_create_sku_race",
                extra={"sku": spec.sku},
            )
            raise DuplicateIdentityError(spec.sku) from exc
        except SQLAlchemyError as exc:
            raise PersistenceFailureError("create_item", str(exc)) from exc

        logger.info(
            "item_created",
            extra={"item_id": str(item.id), "sku": item.sku, "stock": item.stock},
        )
        return ItemSnapshot.from_model(item)

    def apply_mutation(
        self,
        item_id: UUID,
        mutator: Mutator,
        actor: Actor,
    ) -> tuple[ItemSnapshot, ItemSnapshot]:
        """
        Lock the row, apply ``mutator`` to it, and flush.

        Args:
            item_id: Item to mutate.
            mutator: Callable that edits the ORM row in place.
            actor: Recorded as ``updated_by_id``.

        Returns:
            (snapshot before, snapshot after).

        Raises:
            ItemNotFoundError: Unknown id.
            PersistenceFailureError: The flush was rejected.
        """
        item = self._load_for_update(item_id)
        before = ItemSnapshot.from_model(item)

        mutator(item)
        item.version = before.version + 1
        item.updated_at = self.clock.now()
        item.updated_by_id = actor.id

        try:
            self.session.flush()
        except SQLAlchemyError as exc:
            raise PersistenceFailureError("apply_mutation", str(exc)) from exc

        after = ItemSnapshot.from_model(item)
        logger.debug(
            "item_mutated",
            extra={
                "item_id": str(item_id),
                "old_stock": before.stock,
                "new_stock": after.stock,
                "version": after.version,
            },
        )
        return before, after

    def delete(self, item_id: UUID) -> ItemSnapshot:
        """
        Remove the item row and return its last state.

        The caller purges alerts first; movement records are untouched.
        """
        item = self._load_for_update(item_id)
        snapshot = ItemSnapshot.from_model(item)

        try:
            self.session.delete(item)
            self.session.flush()
        except SQLAlchemyError as exc:
            raise PersistenceFailureError("delete_item", str(exc)) from exc

        logger.info(
            "item_deleted",
            extra={"item_id": str(item_id), "sku": snapshot.sku, "last_stock": snapshot.stock},
        )
        return snapshot

    def get(self, item_id: UUID) -> ItemSnapshot:
        """Current state of the item, read under the row lock."""
        return ItemSnapshot.from_model(self._load_for_update(item_id))

    def _load_for_update(self, item_id: UUID) -> Item:
        item = self.session.execute(
            select(Item)
            .where(Item.id == item_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if item is None:
            raise ItemNotFoundError(str(item_id))
        return item

    def _sku_taken(self, sku: str) -> bool:
        return self.session.execute(
            select(Item.id).where(Item.sku == sku)
        ).scalar_one_or_none() is not None
