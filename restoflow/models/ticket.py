"""
Kitchen ticket models
Kitchen-facing work item derived from an order, tracked independently of the
order's customer-facing status
"""

from sqlmodel import Field, SQLModel, Relationship
from datetime import datetime
from typing import Optional, TYPE_CHECKING, List
from enum import Enum

from restoflow.core.identifiers import local_now

if TYPE_CHECKING:
    from restoflow.models.order import Order


class TicketStatus(str, Enum):
    """Status of a kitchen ticket or one of its lines"""
    PENDING = "Pending"         # Waiting for the kitchen
    PREPARING = "Preparing"     # Kitchen is working on it
    READY = "Ready"             # Waiting to be served
    SERVED = "Served"
    CANCELLED = "Cancelled"


class KitchenTicket(SQLModel, table=True):
    """Kitchen ticket for KDS display"""

    __tablename__ = "kitchen_tickets"

    id: Optional[int] = Field(default=None, primary_key=True)
    restaurant_id: int = Field(foreign_key="restaurants.id", index=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    ticket_no: str = Field(max_length=32, index=True)
    status: TicketStatus = Field(default=TicketStatus.PENDING, index=True)
    created_at: datetime = Field(default_factory=local_now)
    updated_at: Optional[datetime] = None

    order: Optional["Order"] = Relationship(back_populates="kitchen_tickets")
    items: List["KitchenTicketItem"] = Relationship(
        back_populates="ticket",
        sa_relationship_kwargs={"order_by": "KitchenTicketItem.id"}
    )


class KitchenTicketItem(SQLModel, table=True):
    """One ticket line per order item"""

    __tablename__ = "kitchen_ticket_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    ticket_id: int = Field(foreign_key="kitchen_tickets.id", index=True)
    order_item_id: int = Field(foreign_key="order_items.id", index=True)
    quantity: int
    status: TicketStatus = Field(default=TicketStatus.PENDING)
    created_at: datetime = Field(default_factory=local_now)

    ticket: Optional[KitchenTicket] = Relationship(back_populates="items")
