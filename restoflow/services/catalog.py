"""
Catalog reader

Read-only view of restaurants, tables and menu items. The catalog is owned by
the administration service; nothing here writes to it.
"""

from typing import Optional
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.orm import selectinload

from restoflow.models import (
    Restaurant, RestaurantTable, FoodItem, FoodVariant, FoodAddon
)


class CatalogReader:
    """Looks up catalog rows by id. Missing rows come back as None."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_restaurant(self, restaurant_id: int) -> Optional[Restaurant]:
        return await self.session.get(Restaurant, restaurant_id)

    async def get_table(self, table_id: int) -> Optional[RestaurantTable]:
        return await self.session.get(RestaurantTable, table_id)

    async def get_item(self, food_item_id: int) -> Optional[FoodItem]:
        """Item with its variants (ordered by id) and addons loaded"""
        result = await self.session.exec(
            select(FoodItem)
            .where(FoodItem.id == food_item_id)
            .options(selectinload(FoodItem.variants), selectinload(FoodItem.addons))
        )
        return result.first()

    async def get_variant(self, variant_id: int) -> Optional[FoodVariant]:
        return await self.session.get(FoodVariant, variant_id)

    async def get_addon(self, addon_id: int) -> Optional[FoodAddon]:
        return await self.session.get(FoodAddon, addon_id)
