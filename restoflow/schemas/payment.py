"""
Pydantic schemas for payments and split bills
"""

from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from decimal import Decimal

from restoflow.models import PaymentStatus


class PaymentRead(BaseModel):
    id: int
    order_id: int
    amount: Decimal
    currency: str
    provider: str
    provider_ref: str
    method: str
    status: PaymentStatus
    created_at: datetime
    captured_at: Optional[datetime]
    failed_at: Optional[datetime]

    class Config:
        from_attributes = True


class SplitBillRead(BaseModel):
    id: int
    order_id: int
    split_label: Optional[str]
    amount: Decimal
    paid: bool
    payment_id: Optional[int]
    is_partial: bool
    created_at: datetime
    paid_at: Optional[datetime]

    class Config:
        from_attributes = True
