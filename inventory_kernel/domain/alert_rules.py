"""Threshold-crossing predicate and alert wording."""


def is_downward_crossing(old_stock: int, new_stock: int, threshold: int) -> bool:
    """
    True when a single mutation leaves stock at or below threshold while
    moving it down.

    An item that merely sits below threshold across later updates does not
    cross again.  Whether an alert is actually opened also depends on there
    being no unresolved alert, which is checked under the item lock.
    """
    return new_stock <= threshold and old_stock > new_stock


def low_stock_message(name: str, stock: int, threshold: int) -> str:
    return f"Low stock for {name}. Current stock: {stock}, Threshold: {threshold}"
