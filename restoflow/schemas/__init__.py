"""
Schemas for API responses
"""

from restoflow.schemas.order import (
    OrderAddonRead,
    OrderItemRead,
    KitchenTicketItemRead,
    KitchenTicketRead,
    OrderSummaryRead,
    OrderRead,
    OrderStatusHistoryRead,
)
from restoflow.schemas.payment import PaymentRead, SplitBillRead

__all__ = [
    "OrderAddonRead",
    "OrderItemRead",
    "KitchenTicketItemRead",
    "KitchenTicketRead",
    "OrderSummaryRead",
    "OrderRead",
    "OrderStatusHistoryRead",
    "PaymentRead",
    "SplitBillRead",
]
