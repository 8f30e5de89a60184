"""ItemLedger: create, locked mutation, delete."""

from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_kernel.domain.dtos import ItemSpec
from inventory_kernel.exceptions import (
    DuplicateIdentityError,
    ImmutabilityViolationError,
    ItemNotFoundError,
    PersistenceFailureError,
)
from inventory_kernel.models.item import Item
from inventory_kernel.services.item_ledger import ItemLedger


@pytest.fixture
def ledger(session, deterministic_clock):
    return ItemLedger(session, deterministic_clock)


def _spec(**overrides) -> ItemSpec:
    values = dict(sku="WM-001", name="Widget", stock=10, threshold=5, price=Decimal("9.99"))
    values.update(overrides)
    return ItemSpec(**values)


class TestCreate:
    def test_create_returns_snapshot(self, ledger, admin_actor, deterministic_clock):
        item = ledger.create(_spec(), admin_actor)

        assert item.sku == "WM-001"
        assert item.stock == 10
        assert item.threshold == 5
        assert item.price == Decimal("9.99")
        assert item.version == 1
        assert item.created_at == deterministic_clock.now()

    def test_create_stamps_actor(self, ledger, session, admin_actor):
        item = ledger.create(_spec(), admin_actor)

        row = session.get(Item, item.id)
        assert row.created_by_id == admin_actor.id
        assert row.updated_by_id == admin_actor.id

    def test_duplicate_sku_rejected(self, ledger, admin_actor):
        ledger.create(_spec(), admin_actor)

        with pytest.raises(DuplicateIdentityError) as exc_info:
            ledger.create(_spec(name="Other"), admin_actor)

        assert exc_info.value.sku == "WM-001"
        assert exc_info.value.code == "DUPLICATE_IDENTITY"

    def test_unique_constraint_backs_the_precheck(self, ledger, session, admin_actor, monkeypatch):
        """A SKU that appears between the check and the insert still maps to a duplicate."""
        ledger.create(_spec(), admin_actor)

        original_execute = session.execute
        calls = {"n": 0}

        class _NoRow:
            def scalar_one_or_none(self):
                return None

        def execute_missing_first(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 1:
                return _NoRow()
            return original_execute(*args, **kwargs)

        monkeypatch.setattr(session, "execute", execute_missing_first)

        with pytest.raises(DuplicateIdentityError):
            ledger.create(_spec(name="Racer"), admin_actor)

        monkeypatch.undo()
        assert session.query(Item).filter_by(sku="WM-001").one().name == "Widget"

    def test_check_violation_is_not_a_duplicate(self, ledger, session, admin_actor):
        with pytest.raises(PersistenceFailureError) as exc_info:
            ledger.create(_spec(stock=-1), admin_actor)

        assert exc_info.value.operation == "create_item"
        assert "ck_items_stock_non_negative" in exc_info.value.reason
        assert session.query(Item).count() == 0


class TestApplyMutation:
    def test_mutation_returns_before_and_after(self, ledger, staff_actor, admin_actor, deterministic_clock):
        item = ledger.create(_spec(), admin_actor)
        deterministic_clock.advance(60)

        def sell_three(row):
            row.stock -= 3

        old, new = ledger.apply_mutation(item.id, sell_three, staff_actor)

        assert (old.stock, new.stock) == (10, 7)
        assert (old.version, new.version) == (1, 2)
        assert new.updated_at == deterministic_clock.now()
        assert new.created_at == old.created_at

    def test_every_mutation_bumps_version(self, ledger, admin_actor):
        item = ledger.create(_spec(), admin_actor)

        for expected in (2, 3, 4):
            _, new = ledger.apply_mutation(item.id, lambda row: None, admin_actor)
            assert new.version == expected

    def test_unknown_item(self, ledger, admin_actor):
        with pytest.raises(ItemNotFoundError):
            ledger.apply_mutation(uuid4(), lambda row: None, admin_actor)

    def test_sku_change_is_blocked(self, ledger, admin_actor):
        item = ledger.create(_spec(), admin_actor)

        def rename_sku(row):
            row.sku = "WM-999"

        with pytest.raises(ImmutabilityViolationError):
            ledger.apply_mutation(item.id, rename_sku, admin_actor)

    def test_negative_stock_rejected_by_database(self, ledger, admin_actor):
        item = ledger.create(_spec(), admin_actor)

        def oversell(row):
            row.stock = -1

        with pytest.raises(PersistenceFailureError) as exc_info:
            ledger.apply_mutation(item.id, oversell, admin_actor)

        assert exc_info.value.operation == "apply_mutation"
        assert exc_info.value.ledger_committed is False


class TestDelete:
    def test_delete_returns_last_state(self, ledger, admin_actor):
        item = ledger.create(_spec(stock=8), admin_actor)

        last = ledger.delete(item.id)

        assert last.id == item.id
        assert last.stock == 8
        with pytest.raises(ItemNotFoundError):
            ledger.get(item.id)

    def test_delete_unknown(self, ledger):
        with pytest.raises(ItemNotFoundError):
            ledger.delete(uuid4())
