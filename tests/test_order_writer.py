"""
Tests for order placement and persistence
"""

import pytest
from decimal import Decimal
from unittest.mock import patch
from sqlmodel import select
from sqlalchemy.exc import IntegrityError, OperationalError

from restoflow.core.config import get_settings
from restoflow.core.results import ErrorCode
from restoflow.models import (
    Order, OrderItem, OrderAddon, KitchenTicket, KitchenTicketItem, OrderEvent,
    OrderStatus, OrderPaymentStatus
)
from restoflow.services import order_writer
from restoflow.services.orders import OrderService
from restoflow.services.pricing import Cart, CartLine


async def fetch_all(session_factory, model):
    async with session_factory() as session:
        return (await session.exec(select(model))).all()


@pytest.fixture
def service(session_factory, notifier, catalog):
    return OrderService(session_factory, notifier)


async def test_place_order_single_line(service, session_factory, notifier):
    """Two of an item whose first variant costs 150"""
    result = await service.place_order(Cart(
        restaurant_id=1,
        customer_id=7,
        items=[CartLine(food_item_id=10, quantity=2)],
    ))

    assert result.ok
    payload = result.data
    assert payload["complete"] is True
    assert Decimal(payload["net_amount"]) == Decimal("300.00")
    assert payload["status"] == "Pending"
    assert payload["payment_status"] == "Unpaid"
    assert payload["order_no"].startswith("ORD")

    orders = await fetch_all(session_factory, Order)
    assert len(orders) == 1
    assert orders[0].net_amount == Decimal("300.00")
    assert orders[0].total_amount == Decimal("300.00")

    items = await fetch_all(session_factory, OrderItem)
    assert len(items) == 1
    assert items[0].quantity == 2
    assert items[0].unit_price == Decimal("150.00")
    assert items[0].total_price == Decimal("300.00")


async def test_place_order_creates_ticket_and_addons(service, session_factory):
    result = await service.place_order(Cart(
        restaurant_id=1,
        table_id=5,
        items=[
            CartLine(food_item_id=10, quantity=1, variant_id=101, addons=(200,)),
            CartLine(food_item_id=13, quantity=2),
        ],
        note="No onions",
    ))

    assert result.ok
    payload = result.data
    assert len(payload["items"]) == 2
    assert payload["items"][0]["addons"][0]["addon_id"] == 200
    assert payload["customer_note"] == "No onions"
    assert payload["table_id"] == 5

    tickets = await fetch_all(session_factory, KitchenTicket)
    assert len(tickets) == 1
    assert tickets[0].ticket_no.startswith("KT")
    assert len(await fetch_all(session_factory, KitchenTicketItem)) == 2
    assert len(await fetch_all(session_factory, OrderAddon)) == 1
    assert payload["kitchen_tickets"][0]["ticket_no"] == tickets[0].ticket_no

    events = await fetch_all(session_factory, OrderEvent)
    assert [e.event_type for e in events] == ["OrderPlaced"]


async def test_net_amount_is_sum_of_line_totals(service, session_factory):
    await service.place_order(Cart(
        restaurant_id=1,
        items=[
            CartLine(food_item_id=10, quantity=3, addons=(200,)),
            CartLine(food_item_id=13, quantity=1),
            CartLine(food_item_id=12, quantity=5),
        ],
    ))

    order = (await fetch_all(session_factory, Order))[0]
    items = await fetch_all(session_factory, OrderItem)
    addons = await fetch_all(session_factory, OrderAddon)

    assert order.net_amount == sum(item.total_price for item in items)
    for item in items:
        addon_total = sum((a.price for a in addons if a.order_item_id == item.id), Decimal("0"))
        assert item.total_price == item.unit_price * item.quantity + addon_total


async def test_new_order_notifies_restaurant_and_customer(service, notifier):
    result = await service.place_order(Cart(
        restaurant_id=1,
        customer_id=7,
        items=[CartLine(food_item_id=10, quantity=1)],
    ))

    [(payload, rooms)] = notifier.events("newOrder")
    assert rooms == ["restaurant_1", "customer_7"]
    assert payload["order_no"] == result.data["order_no"]
    assert payload["restaurant_id"] == 1
    assert Decimal(payload["net_amount"]) == Decimal("150.00")


async def test_new_order_without_customer_notifies_restaurant_only(service, notifier):
    await service.place_order(Cart(restaurant_id=1, items=[CartLine(food_item_id=10, quantity=1)]))

    [(_, rooms)] = notifier.events("newOrder")
    assert rooms == ["restaurant_1"]


async def test_unavailable_item_writes_nothing(service, session_factory, notifier):
    result = await service.place_order(Cart(
        restaurant_id=1,
        items=[CartLine(food_item_id=11, quantity=1)],
    ))

    assert not result.ok
    assert result.status.value == "FAILED"
    assert "11" in result.message
    assert await fetch_all(session_factory, Order) == []
    assert notifier.sent == []


async def test_order_number_collision_is_retried(service, session_factory, order_factory):
    existing = await order_factory()
    numbers = iter([existing.order_no, "ORDFRESH0001"])

    with patch.object(order_writer, "generate_reference", side_effect=lambda prefix: (
        next(numbers) if prefix == "ORD" else "KT0001"
    )):
        result = await service.place_order(Cart(restaurant_id=1, items=[CartLine(food_item_id=10, quantity=1)]))

    assert result.ok
    assert result.data["order_no"] == "ORDFRESH0001"
    orders = await fetch_all(session_factory, Order)
    assert len(orders) == 2
    # The failed attempt left nothing behind
    assert len(await fetch_all(session_factory, KitchenTicket)) == 1


async def test_order_number_attempts_exhausted(service, session_factory, order_factory):
    existing = await order_factory()

    with patch.object(order_writer, "generate_reference", side_effect=lambda prefix: (
        existing.order_no if prefix == "ORD" else "KT0001"
    )):
        result = await service.place_order(Cart(restaurant_id=1, items=[CartLine(food_item_id=10, quantity=1)]))

    assert result.error == ErrorCode.ORDER_CREATION_FAILED
    assert len(await fetch_all(session_factory, Order)) == 1


async def test_database_failure_reports_order_creation_failed(service, session_factory, notifier):
    async def broken_insert(self, snapshot, order_no):
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    with patch.object(order_writer.OrderWriter, "_insert", broken_insert):
        result = await service.place_order(Cart(restaurant_id=1, items=[CartLine(food_item_id=10, quantity=1)]))

    assert result.error == ErrorCode.ORDER_CREATION_FAILED
    assert "database is locked" not in result.message
    assert notifier.sent == []


async def test_timeout_reports_order_creation_failed(service, notifier):
    async def slow_insert(self, snapshot, order_no):
        import asyncio
        await asyncio.sleep(1)

    settings = get_settings().model_copy(update={"TRANSACTION_TIMEOUT_SECONDS": 0.01})
    service.writer.settings = settings

    with patch.object(order_writer.OrderWriter, "_insert", slow_insert):
        result = await service.place_order(Cart(restaurant_id=1, items=[CartLine(food_item_id=10, quantity=1)]))

    assert result.error == ErrorCode.ORDER_CREATION_FAILED
    assert result.data == {"cause": "timeout"}


async def test_read_back_failure_keeps_committed_order(service, session_factory, notifier):
    async def failing_load(session_factory, order_id):
        raise OperationalError("SELECT", {}, Exception("connection reset"))

    with patch.object(order_writer, "load_order", failing_load):
        result = await service.place_order(Cart(
            restaurant_id=1,
            customer_id=7,
            items=[CartLine(food_item_id=10, quantity=2)],
        ))

    assert result.ok
    assert result.data["complete"] is False
    assert Decimal(result.data["net_amount"]) == Decimal("300.00")
    assert len(await fetch_all(session_factory, Order)) == 1
    assert len(notifier.events("newOrder")) == 1


def test_kitchen_ticket_columns():
    """Tickets carry only what the order flow writes"""
    assert set(KitchenTicket.__table__.columns.keys()) == {
        "id", "restaurant_id", "order_id", "ticket_no", "status", "created_at", "updated_at",
    }
