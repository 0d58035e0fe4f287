"""
Order line item and addon models
Individual items in an order with price snapshots
"""

from sqlmodel import Field, SQLModel, Relationship
from decimal import Decimal
from datetime import datetime
from typing import Optional, TYPE_CHECKING, List

from restoflow.core.identifiers import local_now

if TYPE_CHECKING:
    from restoflow.models.order import Order


class OrderItem(SQLModel, table=True):
    """Line item. unit_price and total_price are never recomputed from the catalog."""

    __tablename__ = "order_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    food_item_id: int = Field(foreign_key="food_items.id", index=True)
    variant_id: Optional[int] = Field(
        default=None,
        foreign_key="food_variants.id",
        nullable=True
    )

    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    total_price: Decimal = Field(
        default=Decimal("0.00"),
        max_digits=12,
        decimal_places=2,
        description="unit_price * quantity + sum of addon prices"
    )

    created_at: datetime = Field(default_factory=local_now)

    order: Optional["Order"] = Relationship(back_populates="items")
    addons: List["OrderAddon"] = Relationship(
        back_populates="order_item",
        sa_relationship_kwargs={"order_by": "OrderAddon.id"}
    )


class OrderAddon(SQLModel, table=True):
    """Addon attached to a line item, with its price snapshot"""

    __tablename__ = "order_addons"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_item_id: int = Field(foreign_key="order_items.id", index=True)
    addon_id: int = Field(foreign_key="food_addons.id")
    price: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    created_at: datetime = Field(default_factory=local_now)

    order_item: Optional[OrderItem] = Relationship(back_populates="addons")
