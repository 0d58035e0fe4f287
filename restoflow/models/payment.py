"""
Payment model
One row per order per settlement attempt. Rows of one attempt share provider_ref.
"""

from sqlmodel import Field, SQLModel
from decimal import Decimal
from datetime import datetime
from typing import Optional
from enum import Enum

from restoflow.core.identifiers import local_now


class PaymentStatus(str, Enum):
    """Status of a payment"""
    UNPAID = "Unpaid"       # Created, waiting for the gateway
    PAID = "Paid"           # Captured
    FAILED = "Failed"       # Declined, expired, cancelled


class Payment(SQLModel, table=True):
    """Payment against a single order"""

    __tablename__ = "payments"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)

    amount: Decimal = Field(max_digits=12, decimal_places=2)
    currency: str = Field(default="INR", max_length=3)
    provider: str = Field(default="Cash", max_length=50)
    provider_ref: str = Field(
        max_length=64,
        index=True,
        description="Gateway correlation id shared by every payment of one attempt"
    )
    method: str = Field(default="Cash", max_length=50)

    status: PaymentStatus = Field(default=PaymentStatus.UNPAID, index=True)

    created_at: datetime = Field(default_factory=local_now)
    updated_at: Optional[datetime] = None
    captured_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None

    def is_final_status(self) -> bool:
        return self.status in (PaymentStatus.PAID, PaymentStatus.FAILED)

    def mark_paid(self, at: datetime) -> None:
        self.status = PaymentStatus.PAID
        self.captured_at = at
        self.updated_at = at

    def mark_failed(self, at: datetime) -> None:
        self.status = PaymentStatus.FAILED
        self.failed_at = at
        self.updated_at = at
