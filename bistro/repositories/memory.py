"""
In-process repositories backing degraded mode.

They keep the same contract as the SQL repositories so callers cannot tell
them apart. State lives for the lifetime of the process and is never written
back to the database.
"""

import asyncio
import uuid
from collections.abc import Iterable

from bistro.errors import OrderNotFound
from bistro.models.menu_item import MenuCategory
from bistro.models.order import OrderStatus
from bistro.repositories.base import TransitionPlanner
from bistro.schemas.menu_item import MenuItemResponse
from bistro.schemas.order import OrderDraft, OrderPage, OrderQuery, OrderResponse, SortField, SortOrder
from bistro.services.lifecycle import apply_transition

_STATUS_RANK = {status: rank for rank, status in enumerate(OrderStatus)}


class InMemoryMenuCatalog:
    def __init__(self, items: Iterable[MenuItemResponse]) -> None:
        self._items = {item.id: item for item in items}

    async def get(self, menu_item_id: str) -> MenuItemResponse | None:
        item = self._items.get(menu_item_id)
        return item.model_copy(deep=True) if item else None

    async def list(
        self, category: MenuCategory | None = None, available: bool | None = None
    ) -> list[MenuItemResponse]:
        return [
            item.model_copy(deep=True)
            for item in self._items.values()
            if (category is None or item.category == category)
            and (available is None or item.availability == available)
        ]


def _matches(order: OrderResponse, query: OrderQuery) -> bool:
    if query.status is not None and order.status != query.status:
        return False
    if query.order_type is not None and order.order_type != query.order_type:
        return False
    if query.customer_phone and query.customer_phone not in order.customer.phone.lower():
        return False
    if query.start_date is not None and order.created_at < query.start_date:
        return False
    if query.end_date is not None and order.created_at > query.end_date:
        return False
    return True


def _sort_key(field: SortField):
    if field == SortField.STATUS:
        return lambda order: _STATUS_RANK[order.status]
    return lambda order: getattr(order, field.attribute)


class InMemoryOrderRepository:
    """Most-recent-first list of orders guarded by an asyncio lock."""

    def __init__(
        self,
        orders: Iterable[OrderResponse] = (),
        number_prefix: str = "MB",
        number_width: int = 3,
    ) -> None:
        self._orders: list[OrderResponse] = list(orders)
        self._lock = asyncio.Lock()
        self.number_prefix = number_prefix
        self.number_width = number_width

    def __len__(self) -> int:
        return len(self._orders)

    def _format_number(self, sequence: int) -> str:
        return f"{self.number_prefix}{sequence:0{self.number_width}d}"

    def _index_of(self, order_id: str) -> int:
        for index, order in enumerate(self._orders):
            if order.id == order_id:
                return index
        raise OrderNotFound(order_id)

    async def add(self, draft: OrderDraft) -> OrderResponse:
        async with self._lock:
            order = OrderResponse(
                **draft.model_dump(),
                id=str(uuid.uuid4()),
                order_number=self._format_number(len(self._orders) + 1),
            )
            self._orders.insert(0, order)
        return order.model_copy(deep=True)

    async def get(self, order_id: str) -> OrderResponse | None:
        async with self._lock:
            for order in self._orders:
                if order.id == order_id:
                    return order.model_copy(deep=True)
        return None

    async def find(self, query: OrderQuery) -> OrderPage:
        async with self._lock:
            matched = [order for order in self._orders if _matches(order, query)]
        matched.sort(key=_sort_key(query.sort_by), reverse=query.sort_order == SortOrder.DESC)
        page = matched[query.offset:query.offset + query.limit]
        return OrderPage(items=[order.model_copy(deep=True) for order in page], total=len(matched))

    async def transition(self, order_id: str, plan: TransitionPlanner) -> OrderResponse:
        async with self._lock:
            index = self._index_of(order_id)
            updated = apply_transition(self._orders[index], plan(self._orders[index]))
            self._orders[index] = updated
        return updated.model_copy(deep=True)
