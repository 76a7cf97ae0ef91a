"""
Order status state machine.

Orders move forward along placed -> confirmed -> in_preparation -> ready ->
delivered; intermediate steps may be skipped. ``cancelled`` is reachable from
every non-terminal status. ``delivered`` and ``cancelled`` are terminal.

With ``strict=False`` any status is accepted as the next one, except that a
delivered order can never be cancelled.
"""

from dataclasses import dataclass
from datetime import datetime

from bistro.errors import OrderStateError
from bistro.models.order import OrderStatus
from bistro.schemas.order import OrderResponse, StatusEntry
from bistro.utils.clock import utcnow

FULFILMENT_PATH = [
    OrderStatus.PLACED,
    OrderStatus.CONFIRMED,
    OrderStatus.IN_PREPARATION,
    OrderStatus.READY,
    OrderStatus.DELIVERED,
]

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})


def _build_transitions() -> dict[OrderStatus, frozenset[OrderStatus]]:
    table: dict[OrderStatus, frozenset[OrderStatus]] = {}
    for index, status in enumerate(FULFILMENT_PATH):
        if status in TERMINAL_STATUSES:
            table[status] = frozenset()
        else:
            table[status] = frozenset(FULFILMENT_PATH[index + 1:]) | {OrderStatus.CANCELLED}
    table[OrderStatus.CANCELLED] = frozenset()
    return table


TRANSITIONS = _build_transitions()


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in TRANSITIONS[current]


@dataclass(frozen=True)
class Transition:
    entry: StatusEntry
    actual_delivery_time: datetime | None

    @property
    def status(self) -> OrderStatus:
        return self.entry.status


def plan_status_change(
    order: OrderResponse,
    target: OrderStatus,
    updated_by: str,
    *,
    strict: bool = True,
    now: datetime | None = None,
) -> Transition:
    """Validate a status change and describe the mutation it implies.

    Raises OrderStateError without touching the order when the change is
    not allowed. The delivery timestamp is stamped on the first transition
    to ``delivered`` only.
    """
    if target == OrderStatus.CANCELLED and order.status == OrderStatus.DELIVERED:
        raise OrderStateError("Cannot cancel delivered order")
    if strict and not can_transition(order.status, target):
        raise OrderStateError(
            f"Cannot change order status from {order.status.value} to {target.value}"
        )

    now = now or utcnow()
    actual_delivery_time = order.actual_delivery_time
    if target == OrderStatus.DELIVERED and actual_delivery_time is None:
        actual_delivery_time = now

    return Transition(
        entry=StatusEntry(status=target, timestamp=now, updated_by=updated_by),
        actual_delivery_time=actual_delivery_time,
    )


def plan_cancellation(
    order: OrderResponse,
    updated_by: str,
    *,
    strict: bool = True,
    now: datetime | None = None,
) -> Transition:
    return plan_status_change(order, OrderStatus.CANCELLED, updated_by, strict=strict, now=now)


def apply_transition(order: OrderResponse, transition: Transition) -> OrderResponse:
    """Return a copy of ``order`` with ``transition`` applied."""
    return order.model_copy(
        update={
            "status": transition.status,
            "status_history": [*order.status_history, transition.entry],
            "actual_delivery_time": transition.actual_delivery_time,
            "updated_at": transition.entry.timestamp,
        }
    )
