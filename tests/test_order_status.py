"""
Tests for order status transitions, customer cancellation and history
"""

import pytest
from sqlmodel import select

from restoflow.core.results import ErrorCode
from restoflow.models import (
    Order, OrderStatus, OrderStatusHistory, OrderEvent, KitchenTicket, TicketStatus
)
from restoflow.services.order_status import OrderStatusService


@pytest.fixture
def service(session_factory, notifier):
    return OrderStatusService(session_factory, notifier)


async def load(session_factory, model, **filters):
    async with session_factory() as session:
        statement = select(model)
        for name, value in filters.items():
            statement = statement.where(getattr(model, name) == value)
        return (await session.exec(statement)).all()


async def test_pending_to_cancelled_then_rejected(service, session_factory, notifier, order_factory):
    """Cancelling a pending order records history, notifies both rooms and closes the order"""
    order = await order_factory(customer_id=7)

    result = await service.transition(order.id, OrderStatus.CANCELLED, actor_id=3, note="Out of stock")

    assert result.ok
    history = await load(session_factory, OrderStatusHistory, order_id=order.id)
    assert [(h.from_status, h.to_status) for h in history] == [("Pending", "Cancelled")]
    assert history[0].changed_by == 3
    assert history[0].note == "Out of stock"

    [(payload, rooms)] = notifier.events("orderStatusUpdated")
    assert set(rooms) == {"restaurant_1", "customer_7"}
    assert payload["order_no"] == order.order_no
    assert payload["from_status"] == "Pending"
    assert payload["to_status"] == "Cancelled"

    [stored] = await load(session_factory, Order, id=order.id)
    assert stored.status == OrderStatus.CANCELLED
    assert stored.cancelled_at is not None

    again = await service.transition(order.id, OrderStatus.CONFIRMED, actor_id=3)
    assert again.error == ErrorCode.INVALID_TRANSITION
    assert len(await load(session_factory, OrderStatusHistory, order_id=order.id)) == 1
    assert len(notifier.events("orderStatusUpdated")) == 1


async def test_full_lifecycle(service, session_factory, order_factory):
    order = await order_factory()

    for target in (
        OrderStatus.CONFIRMED,
        OrderStatus.PREPARING,
        OrderStatus.READY_FOR_DELIVERY,
        OrderStatus.COMPLETED,
    ):
        result = await service.transition(order.id, target, actor_id=3)
        assert result.ok, result.message

    [stored] = await load(session_factory, Order, id=order.id)
    assert stored.status == OrderStatus.COMPLETED
    assert stored.completed_at is not None

    events = await load(session_factory, OrderEvent, order_id=order.id)
    assert len(events) == 4
    assert all(e.event_type == "OrderStatusChanged" for e in events)


async def test_skipping_states_rejected(service, session_factory, notifier, order_factory):
    order = await order_factory()

    result = await service.transition(order.id, OrderStatus.COMPLETED, actor_id=3)

    assert result.error == ErrorCode.INVALID_TRANSITION
    assert await load(session_factory, OrderStatusHistory) == []
    assert notifier.sent == []


async def test_system_transition_has_no_actor(service, session_factory, order_factory):
    order = await order_factory()

    result = await service.transition(order.id, OrderStatus.CONFIRMED)

    assert result.ok
    [history] = await load(session_factory, OrderStatusHistory, order_id=order.id)
    assert history.changed_by is None


async def test_unknown_order(service, order_factory):
    result = await service.transition(9999, OrderStatus.CONFIRMED)

    assert result.error == ErrorCode.ORDER_NOT_FOUND


async def test_other_restaurant_staff_rejected(service, order_factory):
    order = await order_factory(restaurant_id=1)

    result = await service.transition(order.id, OrderStatus.CONFIRMED, actor_id=3, restaurant_id=2)

    assert result.error == ErrorCode.FORBIDDEN


async def test_transition_by_order_no(service, order_factory):
    order = await order_factory()

    result = await service.transition_by_order_no(order.order_no, OrderStatus.CONFIRMED, actor_id=3, restaurant_id=1)

    assert result.ok
    assert result.data["to_status"] == "Confirmed"


async def test_cancellation_cancels_open_kitchen_tickets(service, session_factory, order_factory):
    order = await order_factory()
    async with session_factory() as session:
        session.add(KitchenTicket(restaurant_id=1, order_id=order.id, ticket_no="KT1"))
        await session.commit()

    await service.transition(order.id, OrderStatus.CANCELLED, actor_id=3)

    [ticket] = await load(session_factory, KitchenTicket, order_id=order.id)
    assert ticket.status == TicketStatus.CANCELLED


class TestCustomerCancellation:
    """Customer-initiated cancellation"""

    async def test_notifies_restaurant_only(self, service, session_factory, notifier, order_factory):
        order = await order_factory(customer_id=7)

        result = await service.cancel_by_customer(order.id, 7, "Changed my mind")

        assert result.ok
        assert notifier.events("orderStatusUpdated") == []
        [(payload, rooms)] = notifier.events("orderCancelled")
        assert rooms == ["restaurant_1"]
        assert payload["reason"] == "Changed my mind"

        [history] = await load(session_factory, OrderStatusHistory, order_id=order.id)
        assert history.to_status == "Cancelled"
        assert history.changed_by == 7
        [event] = await load(session_factory, OrderEvent, order_id=order.id)
        assert event.event_type == "OrderCancelled"
        assert event.payload["by_customer"] is True

    async def test_reason_required(self, service, order_factory):
        order = await order_factory(customer_id=7)

        result = await service.cancel_by_customer(order.id, 7, "   ")

        assert not result.ok

    async def test_only_own_orders(self, service, session_factory, order_factory):
        order = await order_factory(customer_id=7)

        result = await service.cancel_by_customer(order.id, 8, "Not mine")

        assert result.error == ErrorCode.FORBIDDEN
        [stored] = await load(session_factory, Order, id=order.id)
        assert stored.status == OrderStatus.PENDING

    async def test_by_order_no(self, service, order_factory):
        order = await order_factory(customer_id=7)

        result = await service.cancel_by_customer_order_no(order.order_no, 7, "Too slow")

        assert result.ok

    async def test_completed_order_cannot_be_cancelled(self, service, order_factory):
        order = await order_factory(customer_id=7, status=OrderStatus.COMPLETED)

        result = await service.cancel_by_customer(order.id, 7, "Late")

        assert result.error == ErrorCode.INVALID_TRANSITION


async def test_history_in_order(service, order_factory):
    order = await order_factory(customer_id=7)
    await service.transition(order.id, OrderStatus.CONFIRMED, actor_id=3)
    await service.transition(order.id, OrderStatus.PREPARING, actor_id=3)

    result = await service.history(order.id, customer_id=7)

    assert result.ok
    assert [(h["from_status"], h["to_status"]) for h in result.data["history"]] == [
        ("Pending", "Confirmed"),
        ("Confirmed", "Preparing"),
    ]
    assert result.data["status"] == "Preparing"

    denied = await service.history(order.id, customer_id=8)
    assert denied.error == ErrorCode.FORBIDDEN
