"""
Catalog models: food items, their variants and addons

Read-only from the ordering core. Prices here are live catalog prices; orders
capture their own snapshot at placement time.
"""

from sqlmodel import Field, SQLModel, Relationship
from decimal import Decimal
from typing import Optional, List
from enum import Enum


class ItemStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class FoodItem(SQLModel, table=True):
    """Orderable menu item"""

    __tablename__ = "food_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    restaurant_id: int = Field(foreign_key="restaurants.id", index=True)
    name: str = Field(max_length=255)
    status: ItemStatus = Field(default=ItemStatus.ACTIVE, index=True)

    variants: List["FoodVariant"] = Relationship(
        sa_relationship_kwargs={"order_by": "FoodVariant.id"}
    )
    addons: List["FoodAddon"] = Relationship(
        sa_relationship_kwargs={"order_by": "FoodAddon.id"}
    )


class FoodVariant(SQLModel, table=True):
    """Priced variant of an item (size, portion...). The first one is the default price."""

    __tablename__ = "food_variants"

    id: Optional[int] = Field(default=None, primary_key=True)
    food_item_id: int = Field(foreign_key="food_items.id", index=True)
    name: str = Field(max_length=255)
    price: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    is_available: bool = Field(default=True)


class FoodAddon(SQLModel, table=True):
    """Optional extra priced on top of the line"""

    __tablename__ = "food_addons"

    id: Optional[int] = Field(default=None, primary_key=True)
    food_item_id: int = Field(foreign_key="food_items.id", index=True)
    name: str = Field(max_length=255)
    price: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    is_available: bool = Field(default=True)
