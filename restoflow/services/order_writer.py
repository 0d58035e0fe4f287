"""
Order persistence writer

Persists a PricingSnapshot as one atomic unit: the order, its items with
addons, and the kitchen ticket with one line per item. The client-facing
payload is built by a separate read after commit so the write transaction
stays short.
"""

from typing import Optional
from sqlmodel import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload
import asyncio
import structlog

from restoflow.core.config import Settings, get_settings
from restoflow.core.identifiers import generate_reference
from restoflow.core.money import ZERO
from restoflow.core.results import ErrorCode, ServiceResult, failure, success
from restoflow.core.websocket_manager import NEW_ORDER, customer_room, restaurant_room
from restoflow.models import (
    Order, OrderStatus, OrderPaymentStatus, OrderItem, OrderAddon,
    KitchenTicket, KitchenTicketItem, OrderEvent
)
from restoflow.schemas import OrderRead
from restoflow.services.pricing import PricingSnapshot

logger = structlog.get_logger(__name__)


class OrderWriter:
    """Creates orders from priced snapshots"""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        notifier,
        settings: Optional[Settings] = None
    ):
        self.session_factory = session_factory
        self.notifier = notifier
        self.settings = settings or get_settings()

    async def create_order(self, snapshot: PricingSnapshot) -> ServiceResult:
        """
        Insert the order and everything hanging off it.

        A clash on the order number rolls the whole unit back and retries with
        a fresh number. Any other database failure, or running past the
        transaction timeout, is reported as OrderCreationFailed.
        """
        attempts = self.settings.ORDER_NUMBER_MAX_ATTEMPTS
        order_id = None
        order_no = None

        for attempt in range(1, attempts + 1):
            order_no = generate_reference(self.settings.ORDER_NUMBER_PREFIX)
            try:
                order_id = await asyncio.wait_for(
                    self._insert(snapshot, order_no),
                    timeout=self.settings.TRANSACTION_TIMEOUT_SECONDS,
                )
                break
            except IntegrityError as e:
                logger.warning(
                    f"Order insert conflict on attempt {attempt}/{attempts}",
                    order_no=order_no,
                    error=str(e.orig),
                )
            except asyncio.TimeoutError:
                logger.error("Order creation timed out", order_no=order_no)
                return failure(
                    ErrorCode.ORDER_CREATION_FAILED,
                    "Order creation timed out, please retry",
                    {"cause": "timeout"},
                )
            except SQLAlchemyError as e:
                logger.error(f"Order creation failed: {e}", order_no=order_no)
                return failure(
                    ErrorCode.ORDER_CREATION_FAILED,
                    "Order creation failed, please retry",
                    {"cause": e.__class__.__name__},
                )

        if order_id is None:
            return failure(
                ErrorCode.ORDER_CREATION_FAILED,
                "Could not allocate an order number, please retry",
                {"cause": "IntegrityError"},
            )

        logger.info(
            f"Order {order_no} created",
            order_id=order_id,
            restaurant_id=snapshot.restaurant.id,
            net_amount=str(snapshot.total_amount),
        )

        payload = await self._read_back(order_id)
        if payload is None:
            # Committed rows stay; the client gets what we know for certain
            payload = {
                "id": order_id,
                "order_no": order_no,
                "restaurant_id": snapshot.restaurant.id,
                "customer_id": snapshot.customer_id,
                "status": OrderStatus.PENDING.value,
                "payment_status": OrderPaymentStatus.UNPAID.value,
                "net_amount": str(snapshot.total_amount),
                "currency": snapshot.currency,
                "complete": False,
            }

        rooms = [restaurant_room(snapshot.restaurant.id)]
        if snapshot.customer_id is not None:
            rooms.append(customer_room(snapshot.customer_id))
        await self.notifier.send_notification(
            NEW_ORDER,
            {
                "order_id": order_id,
                "order_no": order_no,
                "restaurant_id": snapshot.restaurant.id,
                "net_amount": str(snapshot.total_amount),
            },
            rooms,
        )

        return success("Order placed successfully", payload)

    async def _insert(self, snapshot: PricingSnapshot, order_no: str) -> int:
        async with self.session_factory() as session:
            async with session.begin():
                order = Order(
                    order_no=order_no,
                    restaurant_id=snapshot.restaurant.id,
                    table_id=snapshot.table.id if snapshot.table else None,
                    customer_id=snapshot.customer_id,
                    delivery_type=snapshot.delivery_type,
                    status=OrderStatus.PENDING,
                    payment_status=OrderPaymentStatus.UNPAID,
                    total_amount=snapshot.total_amount,
                    tax_amount=ZERO,
                    discount_amount=ZERO,
                    tips_amount=ZERO,
                    currency=snapshot.currency,
                    customer_note=snapshot.note,
                )
                order.calculate_net()
                session.add(order)
                await session.flush()

                ticket = KitchenTicket(
                    restaurant_id=order.restaurant_id,
                    order_id=order.id,
                    ticket_no=generate_reference(self.settings.KITCHEN_TICKET_PREFIX),
                )
                session.add(ticket)
                await session.flush()

                for line in snapshot.lines:
                    item = OrderItem(
                        order_id=order.id,
                        food_item_id=line.food_item_id,
                        variant_id=line.variant_id,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        total_price=line.total_price,
                    )
                    session.add(item)
                    await session.flush()

                    for addon in line.addons:
                        session.add(OrderAddon(
                            order_item_id=item.id,
                            addon_id=addon.addon_id,
                            price=addon.price,
                        ))
                    session.add(KitchenTicketItem(
                        ticket_id=ticket.id,
                        order_item_id=item.id,
                        quantity=line.quantity,
                    ))

                session.add(OrderEvent(
                    order_id=order.id,
                    event_type="OrderPlaced",
                    payload={
                        "order_no": order_no,
                        "net_amount": str(order.net_amount),
                        "ticket_no": ticket.ticket_no,
                    },
                ))
                order_id = order.id

        return order_id

    async def _read_back(self, order_id: int) -> Optional[dict]:
        """Full order payload, or None if it could not be read"""
        for attempt in range(1, self.settings.ORDER_READBACK_ATTEMPTS + 1):
            try:
                order = await load_order(self.session_factory, order_id)
            except SQLAlchemyError as e:
                logger.warning(f"Read-back of order {order_id} failed on attempt {attempt}: {e}")
                continue
            if order is not None:
                return order
            logger.warning(f"Order {order_id} not visible on read-back attempt {attempt}")

        logger.error(f"Read-back of order {order_id} gave up, returning partial payload")
        return None


async def load_order(session_factory: async_sessionmaker, order_id: int) -> Optional[dict]:
    """Order with items, addons and kitchen tickets, serialized for clients"""
    async with session_factory() as session:
        result = await session.exec(
            select(Order)
            .where(Order.id == order_id)
            .options(
                selectinload(Order.items).selectinload(OrderItem.addons),
                selectinload(Order.kitchen_tickets).selectinload(KitchenTicket.items),
            )
        )
        order = result.first()
        if order is None:
            return None
        return OrderRead.model_validate(order).model_dump(mode="json")
