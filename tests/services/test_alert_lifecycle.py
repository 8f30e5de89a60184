"""AlertLifecycleManager: opening, resolving, PO flag, purge."""

from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from inventory_kernel.domain.dtos import ItemSpec
from inventory_kernel.exceptions import (
    AlertNotFoundError,
    ConflictError,
    PurchaseOrderAlreadyGeneratedError,
)
from inventory_kernel.models.alert import Alert, AlertType
from inventory_kernel.services.alert_lifecycle import AlertLifecycleManager
from inventory_kernel.services.item_ledger import ItemLedger


@pytest.fixture
def alerts(session, deterministic_clock):
    return AlertLifecycleManager(session, deterministic_clock)


@pytest.fixture
def item(session, deterministic_clock, admin_actor):
    return ItemLedger(session, deterministic_clock).create(
        ItemSpec(sku="WM-001", name="Widget", stock=10, threshold=5, price=Decimal("1.00")),
        admin_actor,
    )


def _unresolved_count(session, item_id) -> int:
    return session.execute(
        select(func.count()).select_from(Alert).where(
            Alert.item_id == item_id, Alert.resolved.is_(False)
        )
    ).scalar_one()


class TestEvaluate:
    def test_crossing_opens_alert(self, alerts, session, item):
        alert = alerts.evaluate(item, replace(item, stock=4))

        assert alert is not None
        assert alert.type == AlertType.LOW_STOCK
        assert alert.message == "Low stock for Widget. Current stock: 4, Threshold: 5"
        assert alert.resolved is False
        assert alert.po_generated is False
        assert _unresolved_count(session, item.id) == 1

    def test_no_crossing_no_alert(self, alerts, session, item):
        assert alerts.evaluate(item, replace(item, stock=6)) is None
        assert _unresolved_count(session, item.id) == 0

    def test_rise_while_low_no_alert(self, alerts, item):
        low = replace(item, stock=2)
        assert alerts.evaluate(low, replace(item, stock=3)) is None

    def test_further_fall_while_open_is_not_a_new_alert(self, alerts, session, item):
        four = replace(item, stock=4)
        alerts.evaluate(item, four)

        assert alerts.evaluate(four, replace(item, stock=3)) is None
        assert _unresolved_count(session, item.id) == 1

    def test_new_alert_after_resolution(self, alerts, session, item, admin_actor):
        first = alerts.evaluate(item, replace(item, stock=4))
        alerts.resolve(first.id, admin_actor)

        second = alerts.evaluate(replace(item, stock=8), replace(item, stock=2))

        assert second is not None
        assert second.id != first.id
        assert _unresolved_count(session, item.id) == 1

    def test_unique_index_race_counts_as_already_open(self, alerts, session, item, monkeypatch):
        alerts.evaluate(item, replace(item, stock=4))
        # Pretend the in-lock check ran before another writer committed.
        monkeypatch.setattr(alerts, "_unresolved_for", lambda item_id: None)

        assert alerts.evaluate(replace(item, stock=4), replace(item, stock=1)) is None
        assert _unresolved_count(session, item.id) == 1


class TestPurchaseOrder:
    def test_sets_flag_without_resolving(self, alerts, item, admin_actor):
        alert = alerts.evaluate(item, replace(item, stock=4))

        flagged = alerts.generate_purchase_order(alert.id, admin_actor)

        assert flagged.po_generated is True
        assert flagged.resolved is False

    def test_second_request_conflicts_and_flag_stays(self, alerts, session, item, admin_actor):
        alert = alerts.evaluate(item, replace(item, stock=4))
        alerts.generate_purchase_order(alert.id, admin_actor)

        with pytest.raises(PurchaseOrderAlreadyGeneratedError) as exc_info:
            alerts.generate_purchase_order(alert.id, admin_actor)

        assert isinstance(exc_info.value, ConflictError)
        assert exc_info.value.alert_id == str(alert.id)
        assert session.get(Alert, alert.id).po_generated is True

    def test_records_who_generated(self, alerts, session, item, admin_actor):
        alert = alerts.evaluate(item, replace(item, stock=4))
        alerts.generate_purchase_order(alert.id, admin_actor)

        assert session.get(Alert, alert.id).po_generated_by_id == admin_actor.id

    def test_unknown_alert(self, alerts, admin_actor):
        with pytest.raises(AlertNotFoundError):
            alerts.generate_purchase_order(uuid4(), admin_actor)


class TestResolve:
    def test_resolve(self, alerts, session, item, admin_actor, deterministic_clock):
        alert = alerts.evaluate(item, replace(item, stock=4))
        deterministic_clock.advance(30)

        resolved = alerts.resolve(alert.id, admin_actor)

        assert resolved.resolved is True
        assert resolved.updated_at == deterministic_clock.now()
        assert session.get(Alert, alert.id).resolved_by_id == admin_actor.id

    def test_resolve_twice_returns_unchanged(self, alerts, item, admin_actor, deterministic_clock):
        alert = alerts.evaluate(item, replace(item, stock=4))
        first = alerts.resolve(alert.id, admin_actor)
        deterministic_clock.advance(30)

        second = alerts.resolve(alert.id, admin_actor)

        assert second == first

    def test_unknown_alert(self, alerts, admin_actor):
        with pytest.raises(AlertNotFoundError):
            alerts.resolve(uuid4(), admin_actor)


class TestPurge:
    def test_purge_removes_resolved_and_unresolved(self, alerts, session, item, admin_actor):
        first = alerts.evaluate(item, replace(item, stock=4))
        alerts.resolve(first.id, admin_actor)
        alerts.evaluate(replace(item, stock=8), replace(item, stock=2))

        assert alerts.purge_for_item(item.id) == 2
        assert session.execute(select(func.count()).select_from(Alert)).scalar_one() == 0

    def test_purge_without_alerts(self, alerts, item):
        assert alerts.purge_for_item(item.id) == 0
