"""
Pydantic schemas for orders as returned to clients
"""

from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from restoflow.models import DeliveryType, OrderStatus, OrderPaymentStatus, TicketStatus


class OrderAddonRead(BaseModel):
    id: int
    addon_id: int
    price: Decimal

    class Config:
        from_attributes = True


class OrderItemRead(BaseModel):
    id: int
    food_item_id: int
    variant_id: Optional[int]
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    addons: List[OrderAddonRead] = []

    class Config:
        from_attributes = True


class KitchenTicketItemRead(BaseModel):
    id: int
    order_item_id: int
    quantity: int
    status: TicketStatus

    class Config:
        from_attributes = True


class KitchenTicketRead(BaseModel):
    id: int
    ticket_no: str
    status: TicketStatus
    items: List[KitchenTicketItemRead] = []

    class Config:
        from_attributes = True


class OrderSummaryRead(BaseModel):
    """Order without its lines, used for listings"""
    id: int
    order_no: str
    restaurant_id: int
    table_id: Optional[int]
    customer_id: Optional[int]
    delivery_type: DeliveryType
    status: OrderStatus
    payment_status: OrderPaymentStatus
    total_amount: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    tips_amount: Decimal
    net_amount: Decimal
    currency: str
    customer_note: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime]
    completed_at: Optional[datetime]
    cancelled_at: Optional[datetime]

    class Config:
        from_attributes = True


class OrderRead(OrderSummaryRead):
    """Full order as returned after placement"""
    items: List[OrderItemRead] = []
    kitchen_tickets: List[KitchenTicketRead] = []
    complete: bool = True


class OrderStatusHistoryRead(BaseModel):
    id: int
    order_id: int
    from_status: str
    to_status: str
    changed_by: Optional[int]
    note: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True
