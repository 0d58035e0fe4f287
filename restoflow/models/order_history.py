"""
Append-only audit trail for orders

Rows are written once and never updated.
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, JSON
from datetime import datetime
from typing import Optional

from restoflow.core.identifiers import local_now


class OrderStatusHistory(SQLModel, table=True):
    """One row per status transition"""

    __tablename__ = "order_status_history"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    from_status: str = Field(max_length=32)
    to_status: str = Field(max_length=32)
    changed_by: Optional[int] = Field(
        default=None,
        nullable=True,
        description="Actor id; null for system-initiated transitions"
    )
    note: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=local_now, index=True)


class OrderEvent(SQLModel, table=True):
    """Externally significant event (status change, payment captured/failed...)"""

    __tablename__ = "order_events"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    event_type: str = Field(max_length=64, index=True)
    payload: Optional[dict] = Field(default=None, sa_column=Column(JSON, nullable=True))
    created_at: datetime = Field(default_factory=local_now, index=True)
