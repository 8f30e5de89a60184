"""Read-side item queries."""

from uuid import UUID

from sqlalchemy import or_, select

from inventory_kernel.domain.dtos import ItemSnapshot
from inventory_kernel.exceptions import ItemNotFoundError
from inventory_kernel.models.item import Item
from inventory_kernel.selectors.base import BaseSelector


def like_pattern(text: str) -> str:
    """Substring LIKE pattern with %, _ and the escape character escaped."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class ItemSelector(BaseSelector):
    """Item lookups and catalog listing."""

    def get_item(self, item_id: UUID) -> ItemSnapshot:
        """
        Raises:
            ItemNotFoundError: Unknown id.
        """
        item = self.session.get(Item, item_id, populate_existing=True)
        if item is None:
            raise ItemNotFoundError(str(item_id))
        return ItemSnapshot.from_model(item)

    def get_by_sku(self, sku: str) -> ItemSnapshot | None:
        item = self.session.execute(
            select(Item).where(Item.sku == sku)
        ).scalar_one_or_none()
        return ItemSnapshot.from_model(item) if item is not None else None

    def list_items(
        self,
        search: str | None = None,
        category_id: UUID | None = None,
        brand_id: UUID | None = None,
    ) -> list[ItemSnapshot]:
        """
        List items ordered by name.

        Args:
            search: Case-insensitive substring of the name or the SKU.
            category_id: Only items in this category.
            brand_id: Only items of this brand.
        """
        query = select(Item)

        if search:
            pattern = like_pattern(search)
            query = query.where(
                or_(
                    Item.name.ilike(pattern, escape="\\"),
                    Item.sku.ilike(pattern, escape="\\"),
                )
            )
        if category_id is not None:
            query = query.where(Item.category_id == category_id)
        if brand_id is not None:
            query = query.where(Item.brand_id == brand_id)

        query = query.order_by(Item.name, Item.sku)
        return [ItemSnapshot.from_model(i) for i in self.session.execute(query).scalars()]
