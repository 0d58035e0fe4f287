"""
Restaurant and table models

Owned by the restaurant administration service; this backend only reads them.
"""

from sqlmodel import Field, SQLModel
from datetime import datetime
from typing import Optional
from enum import Enum


class RestaurantStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class Restaurant(SQLModel, table=True):
    """Restaurant (tenant) accepting orders"""

    __tablename__ = "restaurants"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=255)
    status: RestaurantStatus = Field(
        default=RestaurantStatus.ACTIVE,
        index=True,
        description="Only Active restaurants accept orders"
    )
    currency: Optional[str] = Field(default=None, max_length=3)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class RestaurantTable(SQLModel, table=True):
    """Dine-in table"""

    __tablename__ = "restaurant_tables"

    id: Optional[int] = Field(default=None, primary_key=True)
    restaurant_id: int = Field(foreign_key="restaurants.id", index=True)
    table_number: str = Field(max_length=50)
    seats: Optional[int] = None
