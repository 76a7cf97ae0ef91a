from datetime import datetime, timezone
from decimal import Decimal

import pytest

from bistro.errors import OrderNotFound, OrderStateError
from bistro.fallback.sample_data import sample_menu, sample_orders
from bistro.models.menu_item import MenuCategory
from bistro.models.order import OrderStatus
from bistro.repositories.memory import InMemoryMenuCatalog, InMemoryOrderRepository
from bistro.schemas.order import OrderDraft, OrderQuery, SortField, SortOrder
from bistro.services.lifecycle import plan_status_change
from bistro.services.pricing import PricingPolicy


@pytest.fixture
def repository() -> InMemoryOrderRepository:
    return InMemoryOrderRepository(sample_orders(PricingPolicy(Decimal("0.18"))))


async def test_add_prepends_and_numbers_from_list_length(repository):
    template = (await repository.get("order5")).model_dump(exclude={"id", "order_number"})

    order = await repository.add(OrderDraft(**template))

    assert order.order_number == "MB007"
    assert len(repository) == 7
    page = await repository.find(OrderQuery(limit=100))
    assert order.id in {item.id for item in page.items}


async def test_find_filters_by_phone_substring(repository):
    page = await repository.find(OrderQuery(customer_phone="98765"))
    assert page.total == 3
    assert {order.id for order in page.items} == {"order1", "order2", "order3"}


async def test_find_filters_by_date_range_and_status(repository):
    page = await repository.find(
        OrderQuery(start_date=datetime(2024, 12, 8, 9, 0, tzinfo=timezone.utc))
    )
    assert {order.id for order in page.items} == {"order4", "order5", "order6"}

    page = await repository.find(OrderQuery(status=OrderStatus.CANCELLED))
    assert [order.id for order in page.items] == ["order6"]


async def test_find_sorts_and_paginates(repository):
    page = await repository.find(
        OrderQuery(sort_by=SortField.TOTAL, sort_order=SortOrder.ASC, page=2, limit=2)
    )
    everything = await repository.find(OrderQuery(sort_by=SortField.TOTAL, sort_order=SortOrder.ASC))
    totals = [order.total for order in everything.items]

    assert totals == sorted(totals)
    assert page.total == 6
    assert [order.id for order in page.items] == [order.id for order in everything.items[2:4]]


async def test_transition_on_unknown_order(repository):
    with pytest.raises(OrderNotFound):
        await repository.transition(
            "nope", lambda order: plan_status_change(order, OrderStatus.READY, "staff")
        )


async def test_rejected_transition_leaves_order_unchanged(repository):
    with pytest.raises(OrderStateError):
        await repository.transition(
            "order1", lambda order: plan_status_change(order, OrderStatus.CANCELLED, "staff")
        )
    order = await repository.get("order1")
    assert order.status == OrderStatus.DELIVERED
    assert len(order.status_history) == 5


async def test_returned_orders_are_copies(repository):
    order = await repository.get("order5")
    order.status_history.clear()
    assert len((await repository.get("order5")).status_history) == 1


async def test_menu_catalog_filters():
    catalog = InMemoryMenuCatalog(sample_menu())
    breads = await catalog.list(category=MenuCategory.BREAD)
    unavailable = await catalog.list(available=False)

    assert {item.name for item in breads} == {"Butter Naan", "Garlic Naan"}
    assert [item.name for item in unavailable] == ["Fish Curry"]
    assert await catalog.get("999") is None
