"""
Concurrent mutation tests.

Many threads drive the same item at once.  Verifies:
- Stock changes are serialized: the movement trail forms one unbroken chain
- At most one unresolved alert per item, and exactly one publication
- Two orchestrators with separate lock registries still cannot open a
  second alert (the partial unique index is the backstop)
- Mutations on different items proceed independently
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest
from sqlalchemy import func, select

from inventory_kernel.models.alert import Alert
from inventory_kernel.models.movement import MovementAction
from inventory_kernel.selectors.item_selector import ItemSelector
from inventory_kernel.selectors.movement_selector import MovementSelector
from inventory_kernel.services.item_locks import ItemLockRegistry
from inventory_kernel.services.mutation_orchestrator import MutationOrchestrator

pytestmark = pytest.mark.slow_locks

THREADS = 8


def _unresolved_alerts(read, item_id) -> int:
    return read(
        lambda s: s.execute(
            select(func.count()).select_from(Alert).where(
                Alert.item_id == item_id, Alert.resolved.is_(False)
            )
        ).scalar_one()
    )


def _run_together(fns):
    """Release every callable at the same moment; re-raise the first failure."""
    barrier = Barrier(len(fns))

    def _go(fn):
        barrier.wait(timeout=30)
        return fn()

    with ThreadPoolExecutor(max_workers=len(fns)) as pool:
        futures = [pool.submit(_go, fn) for fn in fns]
        return [f.result(timeout=60) for f in futures]


def _assert_unbroken_chain(movements, start_stock):
    """Following old_stock -> new_stock from start_stock visits every movement once."""
    by_old = {m.old_stock: m for m in movements}
    assert len(by_old) == len(movements), "two movements started from the same stock"

    stock, visited = start_stock, 0
    while stock in by_old:
        m = by_old.pop(stock)
        assert m.new_stock == m.old_stock + m.quantity
        stock = m.new_stock
        visited += 1
    assert visited == len(movements)
    return stock


class TestSameItemRace:
    def test_downward_updates_open_one_alert(
        self, make_item, orchestrator, staff_actor, publisher, published, read
    ):
        item = make_item(stock=100, threshold=10)
        targets = list(range(2, 2 + THREADS))

        _run_together([
            (lambda t=t: orchestrator.update_item(item.id, {"stock": t}, staff_actor))
            for t in targets
        ])

        movements = [
            m
            for m in read(lambda s: MovementSelector(s).list_movements(item_id=item.id))
            if m.action != MovementAction.CREATE
        ]
        final = read(lambda s: ItemSelector(s).get_item(item.id))

        assert len(movements) == THREADS
        assert _assert_unbroken_chain(movements, 100) == final.stock
        assert final.stock in targets
        assert final.version == 1 + THREADS
        assert _unresolved_alerts(read, item.id) == 1

        publisher.flush()
        assert len(published) == 1
        assert published[0]["item"]["id"] == str(item.id)

    def test_oscillating_updates_keep_one_open_alert(
        self, make_item, orchestrator, staff_actor, read
    ):
        item = make_item(stock=50, threshold=10)
        targets = [5, 60, 4, 70, 3, 80, 2, 90]

        _run_together([
            (lambda t=t: orchestrator.update_item(item.id, {"stock": t}, staff_actor))
            for t in targets
        ])

        movements = read(lambda s: MovementSelector(s).list_movements(item_id=item.id))
        updates = [m for m in movements if m.action != MovementAction.CREATE]
        final = read(lambda s: ItemSelector(s).get_item(item.id))

        assert _assert_unbroken_chain(updates, 50) == final.stock
        assert _unresolved_alerts(read, item.id) == 1


class TestSeparateOrchestrators:
    def test_unique_index_backstop(
        self, make_item, session_factory, deterministic_clock, staff_actor, read
    ):
        item = make_item(stock=100, threshold=10)
        orchestrators = [
            MutationOrchestrator(
                session_factory=session_factory,
                clock=deterministic_clock,
                locks=ItemLockRegistry(),
            )
            for _ in range(THREADS)
        ]

        _run_together([
            (lambda o=o, t=t: o.update_item(item.id, {"stock": t}, staff_actor))
            for t, o in enumerate(orchestrators, start=1)
        ])

        assert _unresolved_alerts(read, item.id) == 1


class TestIndependentItems:
    def test_parallel_items(self, make_item, orchestrator, staff_actor, read):
        items = [make_item(stock=20, threshold=5) for _ in range(THREADS)]

        results = _run_together([
            (lambda i=i: orchestrator.update_item(i.id, {"stock": 1}, staff_actor))
            for i in items
        ])

        assert [r.stock for r in results] == [1] * THREADS
        for i in items:
            assert _unresolved_alerts(read, i.id) == 1
