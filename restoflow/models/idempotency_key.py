"""
Idempotency marker for settlement initiation
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, JSON
from datetime import datetime
from typing import Optional

from restoflow.core.identifiers import local_now


class IdempotencyKey(SQLModel, table=True):
    __tablename__ = "idempotency_keys"

    id: Optional[int] = Field(default=None, primary_key=True)
    key: str = Field(max_length=255, unique=True, index=True)
    owner: str = Field(max_length=100)
    request_path: str = Field(max_length=255)
    response: Optional[dict] = Field(default=None, sa_column=Column(JSON, nullable=True))
    created_at: datetime = Field(default_factory=local_now)
    expires_at: Optional[datetime] = None
