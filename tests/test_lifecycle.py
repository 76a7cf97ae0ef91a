from datetime import datetime, timezone
from decimal import Decimal

import pytest

from bistro.errors import OrderStateError
from bistro.fallback.sample_data import sample_orders
from bistro.models.order import OrderStatus
from bistro.services.lifecycle import (
    TRANSITIONS,
    apply_transition,
    can_transition,
    plan_cancellation,
    plan_status_change,
)
from bistro.services.pricing import PricingPolicy

NOW = datetime(2024, 12, 8, 14, 0, tzinfo=timezone.utc)


def order_in(status: OrderStatus):
    orders = sample_orders(PricingPolicy(Decimal("0.18")))
    return next(order for order in orders if order.status == status)


def test_terminal_states_have_no_exits():
    assert TRANSITIONS[OrderStatus.DELIVERED] == frozenset()
    assert TRANSITIONS[OrderStatus.CANCELLED] == frozenset()


@pytest.mark.parametrize(
    "current,target,allowed",
    [
        (OrderStatus.PLACED, OrderStatus.CONFIRMED, True),
        (OrderStatus.PLACED, OrderStatus.DELIVERED, True),
        (OrderStatus.CONFIRMED, OrderStatus.READY, True),
        (OrderStatus.READY, OrderStatus.CANCELLED, True),
        (OrderStatus.READY, OrderStatus.CONFIRMED, False),
        (OrderStatus.PLACED, OrderStatus.PLACED, False),
        (OrderStatus.CANCELLED, OrderStatus.PLACED, False),
    ],
)
def test_transition_table(current, target, allowed):
    assert can_transition(current, target) is allowed


def test_confirmed_to_ready_to_delivered():
    order = order_in(OrderStatus.CONFIRMED)
    assert len(order.status_history) == 2

    for target in (OrderStatus.READY, OrderStatus.DELIVERED):
        order = apply_transition(order, plan_status_change(order, target, "chef", now=NOW))

    assert order.status == OrderStatus.DELIVERED
    assert [entry.status for entry in order.status_history] == [
        OrderStatus.PLACED,
        OrderStatus.CONFIRMED,
        OrderStatus.READY,
        OrderStatus.DELIVERED,
    ]
    assert order.actual_delivery_time == NOW
    assert order.updated_at == NOW
    assert order.status_history[-1].updated_by == "chef"


def test_cancelling_delivered_order_is_rejected_even_when_permissive():
    order = order_in(OrderStatus.DELIVERED)
    for strict in (True, False):
        with pytest.raises(OrderStateError, match="Cannot cancel delivered order"):
            plan_cancellation(order, "staff", strict=strict)


def test_backward_move_is_rejected_in_strict_mode():
    order = order_in(OrderStatus.READY)
    with pytest.raises(OrderStateError, match="from ready to confirmed"):
        plan_status_change(order, OrderStatus.CONFIRMED, "staff")


def test_permissive_mode_keeps_first_delivery_time():
    order = order_in(OrderStatus.DELIVERED)
    stamped = order.actual_delivery_time

    updated = apply_transition(
        order, plan_status_change(order, OrderStatus.DELIVERED, "staff", strict=False, now=NOW)
    )

    assert updated.actual_delivery_time == stamped
    assert len(updated.status_history) == len(order.status_history) + 1


def test_apply_transition_returns_a_copy():
    order = order_in(OrderStatus.PLACED)
    apply_transition(order, plan_cancellation(order, "staff", now=NOW))
    assert order.status == OrderStatus.PLACED
    assert len(order.status_history) == 1
