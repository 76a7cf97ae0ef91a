from collections.abc import Callable
from typing import Protocol

from bistro.models.menu_item import MenuCategory
from bistro.schemas.menu_item import MenuItemResponse
from bistro.schemas.order import OrderDraft, OrderPage, OrderQuery, OrderResponse
from bistro.services.lifecycle import Transition

TransitionPlanner = Callable[[OrderResponse], Transition]


class MenuCatalog(Protocol):
    async def get(self, menu_item_id: str) -> MenuItemResponse | None: ...

    async def list(
        self, category: MenuCategory | None = None, available: bool | None = None
    ) -> list[MenuItemResponse]: ...


class OrderRepository(Protocol):
    """Order storage. Implementations assign ``id`` and ``order_number`` in ``add``."""

    async def add(self, draft: OrderDraft) -> OrderResponse: ...

    async def get(self, order_id: str) -> OrderResponse | None: ...

    async def find(self, query: OrderQuery) -> OrderPage: ...

    async def transition(self, order_id: str, plan: TransitionPlanner) -> OrderResponse:
        """Load the order, let ``plan`` validate it, then store the result.

        Raises OrderNotFound, or whatever ``plan`` raises, without writing.
        """
        ...
