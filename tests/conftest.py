"""
Test configuration for pytest
"""

import pytest
import os
from decimal import Decimal
from typing import Optional

# Test environment variables
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["ENVIRONMENT"] = "test"
os.environ.pop("PAYMENT_CALLBACK_SECRET", None)
os.environ.pop("MERCADOPAGO_ACCESS_TOKEN", None)

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from restoflow.core.auth import IdentityType, create_access_token
from restoflow.core.identifiers import local_now
from restoflow.models import (
    Restaurant, RestaurantStatus, RestaurantTable, FoodItem, FoodVariant, FoodAddon,
    ItemStatus, Order, OrderStatus, OrderPaymentStatus
)


class RecordingNotifier:
    """Stands in for the realtime channel and remembers what was sent"""

    def __init__(self):
        self.sent = []

    async def send_notification(self, event, payload, rooms):
        self.sent.append((event, payload, list(rooms)))
        return len(self.sent)

    def events(self, name):
        return [(payload, rooms) for event, payload, rooms in self.sent if event == name]


@pytest.fixture
async def engine():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
async def catalog(session_factory):
    """
    Restaurant 1 (active) with table 5 and items:
      10: variants 150 / 220 / 400 (unavailable), addons 30 / 20 (unavailable)
      11: inactive
      12: no variants
      13: single 250 variant
    Restaurant 2 is inactive.
    """
    async with session_factory() as session:
        session.add_all([
            Restaurant(id=1, name="Spice Route", status=RestaurantStatus.ACTIVE, currency="INR"),
            Restaurant(id=2, name="Closed Kitchen", status=RestaurantStatus.INACTIVE),
        ])
        await session.flush()
        session.add(RestaurantTable(id=5, restaurant_id=1, table_number="T5", seats=4))
        session.add_all([
            FoodItem(id=10, restaurant_id=1, name="Paneer Tikka", status=ItemStatus.ACTIVE),
            FoodItem(id=11, restaurant_id=1, name="Seasonal Soup", status=ItemStatus.INACTIVE),
            FoodItem(id=12, restaurant_id=1, name="Water", status=ItemStatus.ACTIVE),
            FoodItem(id=13, restaurant_id=1, name="Biryani", status=ItemStatus.ACTIVE),
        ])
        await session.flush()
        session.add_all([
            FoodVariant(id=100, food_item_id=10, name="Regular", price=Decimal("150.00")),
            FoodVariant(id=101, food_item_id=10, name="Large", price=Decimal("220.00")),
            FoodVariant(id=102, food_item_id=10, name="Family", price=Decimal("400.00"), is_available=False),
            FoodVariant(id=103, food_item_id=11, name="Bowl", price=Decimal("99.00")),
            FoodVariant(id=104, food_item_id=13, name="Plate", price=Decimal("250.00")),
            FoodAddon(id=200, food_item_id=10, name="Cheese", price=Decimal("30.00")),
            FoodAddon(id=201, food_item_id=10, name="Olives", price=Decimal("20.00"), is_available=False),
        ])
        await session.commit()


@pytest.fixture
def order_factory(session_factory, catalog):
    """Insert an order row directly, bypassing pricing"""
    counter = {"n": 0}

    async def make_order(
        net_amount: Decimal = Decimal("1000.00"),
        status: OrderStatus = OrderStatus.PENDING,
        payment_status: OrderPaymentStatus = OrderPaymentStatus.UNPAID,
        customer_id: Optional[int] = 7,
        restaurant_id: int = 1,
        created_at=None
    ) -> Order:
        counter["n"] += 1
        order = Order(
            order_no=f"ORDTEST{counter['n']:04d}",
            restaurant_id=restaurant_id,
            customer_id=customer_id,
            status=status,
            payment_status=payment_status,
            total_amount=net_amount,
            net_amount=net_amount,
            created_at=created_at or local_now(),
        )
        async with session_factory() as session:
            session.add(order)
            await session.commit()
        return order

    return make_order


def make_token(identity_type: IdentityType, subject_id: int, role: str, restaurant_id: Optional[int] = None) -> str:
    return create_access_token(subject_id, identity_type, role, restaurant_id)


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers():
    return auth_header(make_token(IdentityType.CUSTOMER, 7, "Registered", 1))


@pytest.fixture
def staff_headers():
    return auth_header(make_token(IdentityType.USER, 3, "RestaurantStaff", 1))


@pytest.fixture
async def client(session_factory, notifier):
    """HTTP client wired to the test database and a recording notifier"""
    from restoflow.main import app
    from restoflow.core.database import get_session_factory
    from restoflow.core.dependencies import get_notifier

    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_notifier] = lambda: notifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def headers_for():
    """Build auth headers for an arbitrary identity"""
    def build(identity_type: IdentityType, subject_id: int, role: str, restaurant_id: Optional[int] = None) -> dict:
        return auth_header(make_token(identity_type, subject_id, role, restaurant_id))
    return build
