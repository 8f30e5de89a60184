"""
Module: inventory_kernel.selectors.movement_selector
Responsibility: Filtered, newest-first reads of the movement trail.
Architecture position: Kernel > Selectors.

Date bounds:
    A ``datetime`` bound is used as given (naive values are taken as UTC).
    A ``date`` start means the start of that day; a ``date`` end includes
    the whole of that day.
"""

from datetime import date, datetime, time, timedelta, timezone
from uuid import UUID

from sqlalchemy import select

from inventory_kernel.domain.dtos import MovementSnapshot
from inventory_kernel.exceptions import ValidationFailedError
from inventory_kernel.models.movement import MovementAction, MovementRecord
from inventory_kernel.selectors.base import BaseSelector
from inventory_kernel.selectors.item_selector import like_pattern


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _lower_bound(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return _as_utc(value)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def _action_value(action: MovementAction | str) -> str:
    try:
        return MovementAction(action).value
    except ValueError:
        allowed = ", ".join(a.value for a in MovementAction)
        raise ValidationFailedError([
            {"field": "action", "message": f"must be one of {allowed}"}
        ]) from None


def _upper_bound(value: date | datetime) -> tuple[datetime, bool]:
    """(bound, inclusive).  A date end becomes an exclusive start-of-next-day."""
    if isinstance(value, datetime):
        return _as_utc(value), True
    next_day = value + timedelta(days=1)
    return datetime.combine(next_day, time.min, tzinfo=timezone.utc), False


class MovementSelector(BaseSelector):
    """Audit trail queries."""

    def list_movements(
        self,
        item_name: str | None = None,
        actor: str | None = None,
        actor_id: UUID | None = None,
        item_id: UUID | None = None,
        action: MovementAction | str | None = None,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
        limit: int | None = None,
    ) -> list[MovementSnapshot]:
        """
        List movements, newest first.  Every filter is optional.

        Args:
            item_name: Case-insensitive substring of the item name recorded
                on the movement.
            actor: Case-insensitive substring of the actor name.
            actor_id: Exact actor.
            item_id: Exact item, including items that have since been deleted.
            action: MovementAction or its string value.
            start: Lower bound on created_at.
            end: Upper bound on created_at.
            limit: Maximum number of rows.

        Raises:
            ValidationFailedError: Unknown action.
        """
        query = select(MovementRecord)

        if item_name:
            query = query.where(
                MovementRecord.item_name.ilike(like_pattern(item_name), escape="\\")
            )
        if actor:
            query = query.where(
                MovementRecord.actor_name.ilike(like_pattern(actor), escape="\\")
            )
        if actor_id is not None:
            query = query.where(MovementRecord.actor_id == actor_id)
        if item_id is not None:
            query = query.where(MovementRecord.item_id == item_id)
        if action is not None:
            query = query.where(MovementRecord.action == _action_value(action))
        if start is not None:
            query = query.where(MovementRecord.created_at >= _lower_bound(start))
        if end is not None:
            bound, inclusive = _upper_bound(end)
            if inclusive:
                query = query.where(MovementRecord.created_at <= bound)
            else:
                query = query.where(MovementRecord.created_at < bound)

        query = query.order_by(MovementRecord.created_at.desc())
        if limit is not None:
            query = query.limit(limit)

        return [
            MovementSnapshot.from_model(r) for r in self.session.execute(query).scalars()
        ]
