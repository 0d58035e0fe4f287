"""
API request schemas
Request validation for the order and payment endpoints
"""

from sqlmodel import SQLModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from restoflow.models import DeliveryType, OrderStatus, OrderPaymentStatus
from restoflow.services.settlement import CallbackStatus


# Order Schemas
class CartLineCreate(SQLModel):
    food_item_id: int
    variant_id: Optional[int] = None
    quantity: int = Field(gt=0)
    addons: List[int] = []


class OrderCreate(SQLModel):
    restaurant_id: int
    table_id: Optional[int] = None
    customer_id: Optional[int] = Field(
        default=None,
        description="Only honoured for staff placing an order on a customer's behalf"
    )
    delivery_type: DeliveryType = DeliveryType.DINE_IN
    items: List[CartLineCreate] = []
    note: Optional[str] = Field(default=None, max_length=2000)


class OrderListRequest(SQLModel):
    restaurant_id: Optional[int] = None
    order_no: Optional[str] = Field(default=None, max_length=32)
    status: Optional[OrderStatus] = None
    payment_status: Optional[OrderPaymentStatus] = None
    delivery_type: Optional[DeliveryType] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=20, ge=1, le=100)


class OrderStatusUpdate(SQLModel):
    status: OrderStatus
    note: Optional[str] = Field(default=None, max_length=500)


class OrderCancel(SQLModel):
    reason: str = Field(min_length=1, max_length=500)


# Payment Schemas
class GroupPaymentCreate(SQLModel):
    restaurant_id: int
    customer_id: Optional[int] = Field(
        default=None,
        description="Required when staff initiate the payment for a customer"
    )
    provider: str = Field(default="Gateway", max_length=50)
    method: str = Field(default="Online", max_length=50)
    idempotency_key: Optional[str] = Field(default=None, max_length=100)


class PaymentCallback(SQLModel):
    provider_ref: str = Field(max_length=64)
    status: CallbackStatus
    split_bill_id: Optional[int] = None
    payload: Optional[dict] = None


class SplitShareCreate(SQLModel):
    label: Optional[str] = Field(default=None, max_length=100)
    amount: Decimal = Field(max_digits=12, decimal_places=2)


class SplitBillsCreate(SQLModel):
    order_id: int
    splits: List[SplitShareCreate]
    allow_partial: bool = False


class SplitBillPay(SQLModel):
    provider: str = Field(default="Gateway", max_length=50)
    method: str = Field(default="Online", max_length=50)


class SplitBillCallback(SQLModel):
    provider_ref: str = Field(max_length=64)
    split_bill_id: Optional[int] = None
    payload: Optional[dict] = None


class CheckoutCreate(SQLModel):
    provider_ref: str = Field(max_length=64)
