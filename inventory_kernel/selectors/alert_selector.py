"""Read-side alert queries."""

from uuid import UUID

from sqlalchemy import false, select, true

from inventory_kernel.domain.dtos import AlertSnapshot
from inventory_kernel.exceptions import AlertNotFoundError, ValidationFailedError
from inventory_kernel.models.alert import Alert
from inventory_kernel.selectors.base import BaseSelector

ALERT_STATUSES = ("unresolved", "resolved", "all")


class AlertSelector(BaseSelector):
    """Alert list and lookup."""

    def list_alerts(
        self,
        status: str = "unresolved",
        item_id: UUID | None = None,
    ) -> list[AlertSnapshot]:
        """
        List alerts, newest first.

        Args:
            status: "unresolved" (default), "resolved" or "all".
            item_id: Only alerts of this item.

        Raises:
            ValidationFailedError: Unknown status.
        """
        if status not in ALERT_STATUSES:
            raise ValidationFailedError([
                {
                    "field": "status",
                    "message": f"must be one of {', '.join(ALERT_STATUSES)}",
                }
            ])

        query = select(Alert)
        if status == "unresolved":
            query = query.where(Alert.resolved == false())
        elif status == "resolved":
            query = query.where(Alert.resolved == true())
        if item_id is not None:
            query = query.where(Alert.item_id == item_id)

        query = query.order_by(Alert.created_at.desc())
        return [AlertSnapshot.from_model(a) for a in self.session.execute(query).scalars()]

    def get_alert(self, alert_id: UUID) -> AlertSnapshot:
        """
        Raises:
            AlertNotFoundError: Unknown id.
        """
        alert = self.session.get(Alert, alert_id, populate_existing=True)
        if alert is None:
            raise AlertNotFoundError(str(alert_id))
        return AlertSnapshot.from_model(alert)
