"""
Order placement and listing

place_order runs the pricing engine and hands the snapshot to the writer.
list_orders is the read path clients use to resynchronise after missing
realtime events.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlmodel import select, func, col
from sqlalchemy.ext.asyncio import async_sessionmaker
import structlog

from restoflow.core.auth import Identity
from restoflow.core.config import Settings, get_settings
from restoflow.core.results import ServiceResult, success
from restoflow.models import Order, OrderStatus, OrderPaymentStatus, DeliveryType
from restoflow.schemas import OrderSummaryRead
from restoflow.services.catalog import CatalogReader
from restoflow.services.order_writer import OrderWriter
from restoflow.services.pricing import Cart, PricingEngine

logger = structlog.get_logger(__name__)


@dataclass
class OrderListFilters:
    restaurant_id: Optional[int] = None
    order_no: Optional[str] = None
    status: Optional[OrderStatus] = None
    payment_status: Optional[OrderPaymentStatus] = None
    delivery_type: Optional[DeliveryType] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None


class OrderService:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        notifier,
        settings: Optional[Settings] = None
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.writer = OrderWriter(session_factory, notifier, self.settings)

    async def place_order(self, cart: Cart) -> ServiceResult:
        """Price the cart, then persist it. Nothing is written on a pricing failure."""
        async with self.session_factory() as session:
            engine = PricingEngine(CatalogReader(session), self.settings.DEFAULT_CURRENCY)
            priced = await engine.price_cart(cart)

        if not priced.ok:
            logger.info(
                f"Order rejected: {priced.message}",
                restaurant_id=cart.restaurant_id,
                error=priced.error.value,
            )
            return priced

        return await self.writer.create_order(priced.data)

    async def list_orders(
        self,
        identity: Identity,
        filters: OrderListFilters,
        offset: int = 0,
        limit: int = 20
    ) -> ServiceResult:
        """
        Page through orders visible to the caller.

        totalCount counts everything the caller may see, filteredCount what
        matches the filters.
        """
        scope = []
        if identity.is_customer:
            scope.append(Order.customer_id == identity.id)
        elif not identity.is_platform_admin:
            scope.append(Order.restaurant_id == identity.restaurant_id)

        conditions = list(scope)
        if filters.restaurant_id is not None:
            conditions.append(Order.restaurant_id == filters.restaurant_id)
        if filters.order_no:
            conditions.append(col(Order.order_no).contains(filters.order_no))
        if filters.status is not None:
            conditions.append(Order.status == filters.status)
        if filters.payment_status is not None:
            conditions.append(Order.payment_status == filters.payment_status)
        if filters.delivery_type is not None:
            conditions.append(Order.delivery_type == filters.delivery_type)
        if filters.date_from is not None:
            conditions.append(Order.created_at >= filters.date_from)
        if filters.date_to is not None:
            conditions.append(Order.created_at <= filters.date_to)
        if filters.min_amount is not None:
            conditions.append(Order.net_amount >= filters.min_amount)
        if filters.max_amount is not None:
            conditions.append(Order.net_amount <= filters.max_amount)

        async with self.session_factory() as session:
            total = (await session.exec(
                select(func.count()).select_from(Order).where(*scope)
            )).one()
            filtered = (await session.exec(
                select(func.count()).select_from(Order).where(*conditions)
            )).one()
            result = await session.exec(
                select(Order)
                .where(*conditions)
                .order_by(col(Order.created_at).desc(), col(Order.id).desc())
                .offset(offset)
                .limit(limit)
            )
            records = [
                OrderSummaryRead.model_validate(order).model_dump(mode="json")
                for order in result.all()
            ]

        return success("Orders fetched", {
            "records": records,
            "totalCount": total,
            "filteredCount": filtered,
        })
