"""
Validation -- turn loosely-typed item input into ItemSpec / ItemPatch.

Every offending field is collected before raising, so a caller gets the
full list in one ValidationFailedError instead of fixing fields one at a
time.

Field rules:
    sku          required on create, non-empty, <= 64 chars, never patchable
    name         required on create, non-empty, <= 200 chars
    stock        int >= 0 (bool rejected)
    threshold    int >= 0 (bool rejected)
    price        Decimal-convertible, >= 0
    barcode      optional str, <= 64 chars
    category_id  optional UUID (or UUID string)
    brand_id     optional UUID (or UUID string)
    expiry_date  optional date (or ISO-8601 date string)
"""

from dataclasses import asdict
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping
from uuid import UUID

from inventory_kernel.domain.dtos import ItemPatch, ItemSpec
from inventory_kernel.exceptions import ValidationFailedError

SKU_MAX_LENGTH = 64
NAME_MAX_LENGTH = 200
BARCODE_MAX_LENGTH = 64

REQUIRED_ON_CREATE = ("sku", "name", "stock", "threshold", "price")
OPTIONAL_FIELDS = ("barcode", "category_id", "brand_id", "expiry_date")
PATCHABLE_FIELDS = frozenset(
    {"name", "stock", "threshold", "price", *OPTIONAL_FIELDS}
)


class _FieldError(Exception):
    pass


def _text(max_length: int) -> Callable[[Any], str]:
    def convert(value: Any) -> str:
        if not isinstance(value, str):
            raise _FieldError("must be a string")
        value = value.strip()
        if not value:
            raise _FieldError("must not be empty")
        if len(value) > max_length:
            raise _FieldError(f"must be at most {max_length} characters")
        return value
    return convert


def _non_negative_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise _FieldError("must be an integer")
    if value < 0:
        raise _FieldError("must be >= 0")
    return value


def _price(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise _FieldError("must be a number")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise _FieldError("must be a number")
    if not amount.is_finite():
        raise _FieldError("must be finite")
    if amount < 0:
        raise _FieldError("must be >= 0")
    return amount


def _uuid(value: Any) -> UUID:
    if isinstance(value, UUID):
        return value
    if isinstance(value, str):
        try:
            return UUID(value)
        except ValueError:
            pass
    raise _FieldError("must be a UUID")


def _date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            pass
    raise _FieldError("must be an ISO-8601 date")


def _optional(convert: Callable[[Any], Any]) -> Callable[[Any], Any]:
    def wrapped(value: Any) -> Any:
        return None if value is None else convert(value)
    return wrapped


_CONVERTERS: dict[str, Callable[[Any], Any]] = {
    "sku": _text(SKU_MAX_LENGTH),
    "name": _text(NAME_MAX_LENGTH),
    "stock": _non_negative_int,
    "threshold": _non_negative_int,
    "price": _price,
    "barcode": _optional(_text(BARCODE_MAX_LENGTH)),
    "category_id": _optional(_uuid),
    "brand_id": _optional(_uuid),
    "expiry_date": _optional(_date),
}


def _convert_fields(
    data: Mapping[str, Any],
    allowed: frozenset[str],
    errors: list[dict],
) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for field_name, value in data.items():
        if field_name not in allowed:
            message = (
                "is immutable" if field_name == "sku" else "is not a recognised field"
            )
            errors.append({"field": field_name, "message": message})
            continue
        try:
            cleaned[field_name] = _CONVERTERS[field_name](value)
        except _FieldError as exc:
            errors.append({"field": field_name, "message": str(exc)})
    return cleaned


def validate_item_spec(data: ItemSpec | Mapping[str, Any]) -> ItemSpec:
    """
    Validate creation input.  An ItemSpec built by hand is checked again.

    Raises:
        ValidationFailedError: listing every missing or malformed field.
    """
    if isinstance(data, ItemSpec):
        data = asdict(data)

    errors: list[dict] = []
    for field_name in REQUIRED_ON_CREATE:
        if data.get(field_name) is None:
            errors.append({"field": field_name, "message": "is required"})

    present = {k: v for k, v in data.items() if not (k in REQUIRED_ON_CREATE and v is None)}
    cleaned = _convert_fields(
        present, frozenset(REQUIRED_ON_CREATE + OPTIONAL_FIELDS), errors
    )
    if errors:
        raise ValidationFailedError(errors)
    return ItemSpec(**cleaned)


def validate_item_patch(data: ItemPatch | Mapping[str, Any]) -> ItemPatch:
    """
    Validate a partial update.  An empty mapping is a valid no-op patch, and
    an ItemPatch built by hand is checked again.

    Required fields may not be cleared to None; optional ones may.

    Raises:
        ValidationFailedError: listing every malformed or forbidden field.
    """
    if isinstance(data, ItemPatch):
        data = data.changes

    errors: list[dict] = []
    present: dict[str, Any] = {}
    for field_name, value in data.items():
        if value is None and field_name in REQUIRED_ON_CREATE and field_name != "sku":
            errors.append({"field": field_name, "message": "may not be cleared"})
        else:
            present[field_name] = value

    cleaned = _convert_fields(present, PATCHABLE_FIELDS, errors)
    if errors:
        raise ValidationFailedError(errors)
    return ItemPatch(cleaned)
