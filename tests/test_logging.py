"""Tests for the structured logging system (inventory_kernel/logging_config.py)."""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from inventory_kernel.exceptions import ItemNotFoundError
from inventory_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)
from inventory_kernel.models.movement import MovementAction


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite config."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        (record,) = _parse_all_logs(stream)
        assert record["message"] == "hello"
        assert record["level"] == "INFO"
        assert record["logger"] == "inventory_kernel.test"
        assert "ts" in record

    def test_extra_fields_are_serialised(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        item_id = uuid4()
        get_logger("test").info(
            "movement_recorded",
            extra={
                "item_id": item_id,
                "price": Decimal("9.99"),
                "action": MovementAction.SALE,
                "when": datetime(2024, 1, 1, tzinfo=timezone.utc),
                "day": date(2024, 1, 2),
            },
        )

        (record,) = _parse_all_logs(stream)
        assert record["item_id"] == str(item_id)
        assert record["price"] == "9.99"
        assert record["action"] == "Sale"
        assert record["when"].startswith("2024-01-01T00:00:00")
        assert record["day"] == "2024-01-02"

    def test_exception_fields_include_code_and_attributes(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ItemNotFoundError("abc")
        except ItemNotFoundError:
            get_logger("test").error("lookup_failed", exc_info=True)

        (record,) = _parse_all_logs(stream)
        assert record["exc_type"] == "ItemNotFoundError"
        assert record["exc_code"] == "ITEM_NOT_FOUND"
        assert record["exc_item_id"] == "abc"
        assert "traceback" in record


class TestLogContext:
    """Context fields are attached to every record emitted inside bind()."""

    def test_bind_adds_and_restores_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")

        with LogContext.bind(correlation_id="c-1", actor_id="a-1", operation="update_item"):
            logger.info("inside")
        logger.info("outside")

        inside, outside = _parse_all_logs(stream)
        assert inside["correlation_id"] == "c-1"
        assert inside["actor_id"] == "a-1"
        assert inside["operation"] == "update_item"
        assert "correlation_id" not in outside

    def test_nested_bind_restores_outer_value(self):
        with LogContext.bind(item_id="outer"):
            with LogContext.bind(item_id="inner"):
                assert LogContext.get_all()["item_id"] == "inner"
            assert LogContext.get_all()["item_id"] == "outer"
        assert "item_id" not in LogContext.get_all()

    def test_none_values_are_not_bound(self):
        with LogContext.bind(alert_id=None, actor_id="a"):
            assert LogContext.get_all() == {"actor_id": "a"}

    def test_unknown_field_is_rejected(self):
        with pytest.raises(TypeError, match="sku"):
            with LogContext.bind(sku="WM-001"):
                pass


class TestConfigureLogging:
    def test_configure_is_idempotent(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=handler)
        assert len(logging.getLogger("inventory_kernel").handlers) == 1

    def test_level_filters_records(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.WARNING, handler=handler)
        logger = get_logger("test")
        logger.info("dropped")
        logger.warning("kept")

        records = _parse_all_logs(stream)
        assert [r["message"] for r in records] == ["kept"]
