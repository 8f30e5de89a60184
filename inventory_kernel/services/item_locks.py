"""
ItemLockRegistry -- per-item mutual exclusion inside one process.

A stock mutation holds its item's lock from the ledger read through the
alert check, so two downward crossings on the same item can never both see
"no unresolved alert".  Locks are reentrant so an orchestrator step may call
another step on the same item.

Entries are reference-counted: a lock exists only while some thread holds
or waits for it, so lookups on unknown or deleted items leave nothing
behind.

Cross-process exclusion is not provided here; PostgreSQL row locks and the
partial unique index on unresolved alerts cover that.
"""

import threading
from contextlib import contextmanager
from typing import Iterator
from uuid import UUID


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.users = 0


class ItemLockRegistry:
    """RLock per item id, created on first use and dropped after the last."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[UUID, _Entry] = {}

    @contextmanager
    def hold(self, item_id: UUID) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(item_id)
            if entry is None:
                entry = self._entries[item_id] = _Entry()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[item_id]

    def is_locked(self, item_id: UUID) -> bool:
        """True while any thread holds or waits for the item's lock."""
        with self._guard:
            return item_id in self._entries

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
