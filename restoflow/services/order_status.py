"""
Order status state machine

Every transition is a locked read-modify-write on the order row followed by
an append to the status history and event log. Notifications go out only
after the transaction commits.
"""

from typing import Optional
from sqlmodel import select, col
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
import asyncio
import structlog

from restoflow.core.config import Settings, get_settings
from restoflow.core.identifiers import local_now
from restoflow.core.results import ErrorCode, ServiceResult, failure, success
from restoflow.core.websocket_manager import (
    ORDER_CANCELLED, ORDER_STATUS_UPDATED, customer_room, restaurant_room
)
from restoflow.models import (
    Order, OrderStatus, OrderStatusHistory, OrderEvent, KitchenTicket, TicketStatus
)
from restoflow.schemas import OrderStatusHistoryRead

logger = structlog.get_logger(__name__)


class OrderStatusService:
    """Applies status transitions from staff, customers and the system"""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        notifier,
        settings: Optional[Settings] = None
    ):
        self.session_factory = session_factory
        self.notifier = notifier
        self.settings = settings or get_settings()

    async def transition(
        self,
        order_id: int,
        target: OrderStatus,
        actor_id: Optional[int] = None,
        note: Optional[str] = None,
        restaurant_id: Optional[int] = None
    ) -> ServiceResult:
        """
        Move an order to target.

        actor_id is None for system-initiated transitions. When restaurant_id
        is given the order must belong to that restaurant.
        """
        return await self._run(
            Order.id == order_id, target, actor_id, note, restaurant_id=restaurant_id
        )

    async def transition_by_order_no(
        self,
        order_no: str,
        target: OrderStatus,
        actor_id: Optional[int] = None,
        note: Optional[str] = None,
        restaurant_id: Optional[int] = None
    ) -> ServiceResult:
        return await self._run(
            Order.order_no == order_no, target, actor_id, note, restaurant_id=restaurant_id
        )

    async def cancel_by_customer(self, order_id: int, customer_id: int, reason: str) -> ServiceResult:
        """Customer-initiated cancellation; only the restaurant is told"""
        return await self._cancel_by_customer(Order.id == order_id, customer_id, reason)

    async def cancel_by_customer_order_no(self, order_no: str, customer_id: int, reason: str) -> ServiceResult:
        return await self._cancel_by_customer(Order.order_no == order_no, customer_id, reason)

    async def history(
        self,
        order_id: int,
        customer_id: Optional[int] = None,
        restaurant_id: Optional[int] = None
    ) -> ServiceResult:
        """Status history of an order, oldest first"""
        async with self.session_factory() as session:
            order = await session.get(Order, order_id)
            if order is None:
                return failure(ErrorCode.ORDER_NOT_FOUND, "Order not found")
            denied = check_order_owner(order, customer_id, restaurant_id)
            if denied:
                return denied

            result = await session.exec(
                select(OrderStatusHistory)
                .where(OrderStatusHistory.order_id == order_id)
                .order_by(col(OrderStatusHistory.created_at), col(OrderStatusHistory.id))
            )
            rows = [
                OrderStatusHistoryRead.model_validate(row).model_dump(mode="json")
                for row in result.all()
            ]

        return success("Order history fetched", {
            "order_id": order.id,
            "order_no": order.order_no,
            "status": order.status.value,
            "history": rows,
        })

    async def _cancel_by_customer(self, criteria, customer_id: int, reason: str) -> ServiceResult:
        if not reason or not reason.strip():
            return failure(ErrorCode.INVALID_TRANSITION, "A cancellation reason is required")
        return await self._run(
            criteria,
            OrderStatus.CANCELLED,
            customer_id,
            reason.strip(),
            customer_id=customer_id,
            customer_cancel=True,
        )

    async def _run(
        self,
        criteria,
        target: OrderStatus,
        actor_id: Optional[int],
        note: Optional[str],
        customer_id: Optional[int] = None,
        restaurant_id: Optional[int] = None,
        customer_cancel: bool = False
    ) -> ServiceResult:
        try:
            result = await asyncio.wait_for(
                self._write(criteria, target, actor_id, note, customer_id, restaurant_id, customer_cancel),
                timeout=self.settings.TRANSACTION_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            logger.error(f"Status update to {target.value} timed out")
            return failure(ErrorCode.STATUS_UPDATE_FAILED, "Status update timed out, please retry")
        except SQLAlchemyError as e:
            logger.error(f"Status update to {target.value} failed: {e}")
            return failure(ErrorCode.STATUS_UPDATE_FAILED, "Status update failed, please retry")

        if not result.ok:
            return result

        change = result.data
        if customer_cancel:
            await self.notifier.send_notification(
                ORDER_CANCELLED,
                {
                    "order_id": change["order_id"],
                    "order_no": change["order_no"],
                    "reason": note,
                    "message": f"Order {change['order_no']} was cancelled by the customer",
                },
                [restaurant_room(change["restaurant_id"])],
            )
        else:
            rooms = [restaurant_room(change["restaurant_id"])]
            if change["customer_id"] is not None:
                rooms.append(customer_room(change["customer_id"]))
            await self.notifier.send_notification(
                ORDER_STATUS_UPDATED,
                {
                    "order_id": change["order_id"],
                    "order_no": change["order_no"],
                    "from_status": change["from_status"],
                    "to_status": change["to_status"],
                    "message": change["message"],
                },
                rooms,
            )

        return result

    async def _write(
        self,
        criteria,
        target: OrderStatus,
        actor_id: Optional[int],
        note: Optional[str],
        customer_id: Optional[int],
        restaurant_id: Optional[int],
        customer_cancel: bool
    ) -> ServiceResult:
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.exec(select(Order).where(criteria).with_for_update())
                order = result.first()
                if order is None:
                    return failure(ErrorCode.ORDER_NOT_FOUND, "Order not found")
                denied = check_order_owner(order, customer_id, restaurant_id)
                if denied:
                    return denied

                allowed, reason = order.can_transition_to(target)
                if not allowed:
                    logger.info(
                        f"Rejected transition for order {order.order_no}: {reason}",
                        actor_id=actor_id,
                    )
                    return failure(ErrorCode.INVALID_TRANSITION, reason)

                from_status = order.status
                now = local_now()
                order.apply_status(target, now)
                session.add(order)

                session.add(OrderStatusHistory(
                    order_id=order.id,
                    from_status=from_status.value,
                    to_status=target.value,
                    changed_by=actor_id,
                    note=note,
                    created_at=now,
                ))
                session.add(OrderEvent(
                    order_id=order.id,
                    event_type="OrderCancelled" if target == OrderStatus.CANCELLED else "OrderStatusChanged",
                    payload={
                        "from": from_status.value,
                        "to": target.value,
                        "actor_id": actor_id,
                        "by_customer": customer_cancel,
                        "note": note,
                    },
                    created_at=now,
                ))

                if target == OrderStatus.CANCELLED:
                    tickets = await session.exec(
                        select(KitchenTicket).where(
                            KitchenTicket.order_id == order.id,
                            col(KitchenTicket.status).in_([TicketStatus.PENDING, TicketStatus.PREPARING]),
                        )
                    )
                    for ticket in tickets.all():
                        ticket.status = TicketStatus.CANCELLED
                        ticket.updated_at = now
                        session.add(ticket)

                change = {
                    "order_id": order.id,
                    "order_no": order.order_no,
                    "restaurant_id": order.restaurant_id,
                    "customer_id": order.customer_id,
                    "from_status": from_status.value,
                    "to_status": target.value,
                    "message": f"Order {order.order_no} is now {target.value}",
                }

        logger.info(
            f"Order {change['order_no']} moved {change['from_status']} -> {change['to_status']}",
            actor_id=actor_id,
        )
        return success(change["message"], change)


def check_order_owner(order: Order, customer_id: Optional[int], restaurant_id: Optional[int]) -> Optional[ServiceResult]:
    if customer_id is not None and order.customer_id != customer_id:
        return failure(ErrorCode.FORBIDDEN, "Order does not belong to this customer")
    if restaurant_id is not None and order.restaurant_id != restaurant_id:
        return failure(ErrorCode.FORBIDDEN, "Order does not belong to this restaurant")
    return None
