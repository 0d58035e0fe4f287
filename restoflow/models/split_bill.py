"""
Split bill model
One party's share of an order when several people pay separately
"""

from sqlmodel import Field, SQLModel
from decimal import Decimal
from datetime import datetime
from typing import Optional

from restoflow.core.identifiers import local_now


class SplitBill(SQLModel, table=True):
    __tablename__ = "split_bills"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    split_label: Optional[str] = Field(default=None, max_length=100)
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    paid: bool = Field(default=False, index=True)
    payment_id: Optional[int] = Field(
        default=None,
        foreign_key="payments.id",
        nullable=True,
        description="Payment that settled this share"
    )
    is_partial: bool = Field(
        default=False,
        description="Created as part of a split that intentionally does not cover net_amount"
    )
    created_at: datetime = Field(default_factory=local_now)
    paid_at: Optional[datetime] = None
