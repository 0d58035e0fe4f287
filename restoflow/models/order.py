"""
Order model
Customer order with immutable pricing snapshot and an explicit status machine
"""

from sqlmodel import Field, SQLModel, Relationship
from datetime import datetime
from typing import Optional, TYPE_CHECKING, List
from decimal import Decimal
from enum import Enum

from restoflow.core.identifiers import local_now

if TYPE_CHECKING:
    from restoflow.models.order_line_item import OrderItem
    from restoflow.models.ticket import KitchenTicket


class DeliveryType(str, Enum):
    DINE_IN = "dine_in"
    PICKUP = "pickup"
    DELIVERY = "delivery"


class OrderStatus(str, Enum):
    """Customer-facing status of an order"""
    PENDING = "Pending"                     # Placed, not yet accepted
    CONFIRMED = "Confirmed"                 # Accepted by the restaurant
    PREPARING = "Preparing"                 # Kitchen is working on it
    READY_FOR_PICKUP = "ReadyForPickup"
    READY_FOR_DELIVERY = "ReadyForDelivery"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


class OrderPaymentStatus(str, Enum):
    UNPAID = "Unpaid"
    PARTIALLY_PAID = "PartiallyPaid"
    PAID = "Paid"
    FAILED = "Failed"


TERMINAL_STATUSES = frozenset({
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
    OrderStatus.REFUNDED,
})

# Forward progress only; Cancelled and Refunded are reachable from every
# non-terminal state and are added below.
ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED},
    OrderStatus.CONFIRMED: {OrderStatus.PREPARING},
    OrderStatus.PREPARING: {OrderStatus.READY_FOR_PICKUP, OrderStatus.READY_FOR_DELIVERY},
    OrderStatus.READY_FOR_PICKUP: {OrderStatus.COMPLETED},
    OrderStatus.READY_FOR_DELIVERY: {OrderStatus.COMPLETED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
    OrderStatus.REFUNDED: set(),
}
for _status, _targets in ORDER_TRANSITIONS.items():
    if _status not in TERMINAL_STATUSES:
        _targets.update({OrderStatus.CANCELLED, OrderStatus.REFUNDED})


class Order(SQLModel, table=True):
    """Placed order. Never physically deleted; cancellation is a status."""

    __tablename__ = "orders"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_no: str = Field(
        max_length=32,
        unique=True,
        index=True,
        description="Human-facing order number"
    )

    restaurant_id: int = Field(foreign_key="restaurants.id", index=True)
    table_id: Optional[int] = Field(
        default=None,
        foreign_key="restaurant_tables.id",
        nullable=True
    )
    customer_id: Optional[int] = Field(default=None, index=True, nullable=True)

    delivery_type: DeliveryType = Field(default=DeliveryType.DINE_IN)
    status: OrderStatus = Field(default=OrderStatus.PENDING, index=True)
    payment_status: OrderPaymentStatus = Field(
        default=OrderPaymentStatus.UNPAID,
        index=True
    )

    # Financial amounts (snapshot taken at placement)
    total_amount: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    tax_amount: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    discount_amount: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    tips_amount: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    net_amount: Decimal = Field(
        default=Decimal("0.00"),
        max_digits=12,
        decimal_places=2,
        description="Line totals net of discount plus tax and tips"
    )
    currency: str = Field(default="INR", max_length=3)

    customer_note: Optional[str] = Field(default=None, max_length=2000)

    created_at: datetime = Field(default_factory=local_now, index=True)
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    # Relationships
    items: List["OrderItem"] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"order_by": "OrderItem.id"}
    )
    kitchen_tickets: List["KitchenTicket"] = Relationship(back_populates="order")

    # State machine methods
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def can_transition_to(self, new_status: OrderStatus) -> tuple[bool, str]:
        """Check the transition table for current -> new_status"""
        if self.is_terminal():
            return False, f"Order is already {self.status.value}"
        if new_status in ORDER_TRANSITIONS.get(self.status, set()):
            return True, "Can transition"
        return False, f"Cannot transition from {self.status.value} to {new_status.value}"

    def apply_status(self, new_status: OrderStatus, at: datetime) -> None:
        """Write a status already checked by can_transition_to"""
        self.status = new_status
        self.updated_at = at
        if new_status == OrderStatus.COMPLETED:
            self.completed_at = at
        elif new_status == OrderStatus.CANCELLED:
            self.cancelled_at = at

    def calculate_net(self) -> None:
        """net = total - discount + tax + tips"""
        self.net_amount = (
            self.total_amount -
            self.discount_amount +
            self.tax_amount +
            self.tips_amount
        )
