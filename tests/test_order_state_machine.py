"""
Unit tests for the order status transition table
"""

import pytest
from datetime import datetime
from decimal import Decimal

from restoflow.models import Order, OrderStatus, ORDER_TRANSITIONS, TERMINAL_STATUSES


def make_order(status: OrderStatus) -> Order:
    return Order(order_no="ORD1", restaurant_id=1, status=status)


class TestOrderStateMachine:
    """Test order status transitions"""

    @pytest.mark.parametrize("source,target", [
        (OrderStatus.PENDING, OrderStatus.CONFIRMED),
        (OrderStatus.CONFIRMED, OrderStatus.PREPARING),
        (OrderStatus.PREPARING, OrderStatus.READY_FOR_PICKUP),
        (OrderStatus.PREPARING, OrderStatus.READY_FOR_DELIVERY),
        (OrderStatus.READY_FOR_PICKUP, OrderStatus.COMPLETED),
        (OrderStatus.READY_FOR_DELIVERY, OrderStatus.COMPLETED),
    ])
    def test_forward_transitions_allowed(self, source, target):
        allowed, _ = make_order(source).can_transition_to(target)
        assert allowed is True

    def test_cancel_and_refund_from_every_open_state(self):
        for status in OrderStatus:
            if status in TERMINAL_STATUSES:
                continue
            order = make_order(status)
            assert order.can_transition_to(OrderStatus.CANCELLED)[0]
            assert order.can_transition_to(OrderStatus.REFUNDED)[0]

    def test_cannot_skip_states(self):
        allowed, reason = make_order(OrderStatus.PENDING).can_transition_to(OrderStatus.COMPLETED)

        assert allowed is False
        assert "Pending" in reason and "Completed" in reason

    def test_same_state_rejected(self):
        allowed, _ = make_order(OrderStatus.CONFIRMED).can_transition_to(OrderStatus.CONFIRMED)
        assert allowed is False

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_terminal_states_are_sinks(self, terminal):
        order = make_order(terminal)

        assert order.is_terminal()
        assert ORDER_TRANSITIONS[terminal] == set()
        for target in OrderStatus:
            assert order.can_transition_to(target)[0] is False

    def test_apply_status_stamps_times(self):
        at = datetime(2024, 1, 1, 12, 0, 0)
        order = make_order(OrderStatus.READY_FOR_PICKUP)

        order.apply_status(OrderStatus.COMPLETED, at)
        assert order.completed_at == at
        assert order.updated_at == at

        other = make_order(OrderStatus.PENDING)
        other.apply_status(OrderStatus.CANCELLED, at)
        assert other.cancelled_at == at
        assert other.completed_at is None


def test_calculate_net():
    order = Order(
        order_no="ORD1",
        restaurant_id=1,
        total_amount=Decimal("500.00"),
        discount_amount=Decimal("50.00"),
        tax_amount=Decimal("22.50"),
        tips_amount=Decimal("10.00"),
    )

    order.calculate_net()

    assert order.net_amount == Decimal("482.50")
