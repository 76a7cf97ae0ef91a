from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from bistro import models  # noqa: F401
from bistro.database import Base, DatabaseHealth, build_engine, build_sessionmaker
from bistro.fallback.sample_data import sample_menu, sample_orders
from bistro.models.menu_item import MenuCategory, MenuItem
from bistro.models.order import Order, OrderStatus, StatusChange
from bistro.repositories.memory import InMemoryMenuCatalog, InMemoryOrderRepository
from bistro.repositories.sql import SqlMenuCatalog, SqlOrderRepository, ensure_order_sequence
from bistro.schemas.order import OrderCreate, OrderQuery, SortField, SortOrder
from bistro.services.event_publisher import EventPublisher
from bistro.services.failover import Failover
from bistro.services.order_service import OrderGateway, OrderService
from bistro.services.pricing import FulfilmentPolicy, PricingPolicy


@pytest.fixture
async def session_factory(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'bistro.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = build_sessionmaker(engine)
    async with factory() as db:
        await ensure_order_sequence(db)
    yield factory
    await engine.dispose()


async def _menu_item_id(factory) -> str:
    async with factory() as db:
        item = MenuItem(name="Thali", category=MenuCategory.MAIN_COURSE, price=Decimal("100"), preparation_time=15)
        db.add(item)
        await db.commit()
        return str(item.id)


def _gateway(db):
    repository = SqlOrderRepository(db)
    primary = OrderService(
        repository,
        SqlMenuCatalog(db),
        PricingPolicy(Decimal("0.08")),
        FulfilmentPolicy(fixed_minutes=30),
        EventPublisher(),
    )
    fallback_orders = InMemoryOrderRepository(sample_orders(PricingPolicy(Decimal("0.18"))))
    fallback = OrderService(
        fallback_orders,
        InMemoryMenuCatalog(sample_menu()),
        PricingPolicy(Decimal("0.18")),
        FulfilmentPolicy(min_minutes=15),
        EventPublisher(),
        degraded=True,
    )
    health = DatabaseHealth(engine=None)
    health.available = True
    return OrderGateway(primary, fallback, Failover(health)), repository, fallback_orders, health


def _connection_lost(*args, **kwargs):
    raise OperationalError("SELECT orders", {}, ConnectionResetError("connection lost"))


def _payload(menu_item_id: str) -> OrderCreate:
    return OrderCreate.model_validate(
        {
            "customer": {"name": "A", "phone": "9876543210"},
            "items": [{"menuItem": menu_item_id, "quantity": 2}],
            "orderType": "takeout",
            "paymentMethod": "cash",
        }
    )


async def test_failure_after_create_commit_is_not_replayed_on_fallback(session_factory, monkeypatch):
    menu_item_id = await _menu_item_id(session_factory)
    async with session_factory() as db:
        gateway, repository, fallback_orders, health = _gateway(db)
        monkeypatch.setattr(repository, "_fetch_order", _connection_lost)

        with pytest.raises(OperationalError):
            await gateway.create_order(_payload(menu_item_id), "req-1")

    assert len(fallback_orders) == 6
    assert health.available is True
    async with session_factory() as db:
        assert await db.scalar(select(func.count()).select_from(Order)) == 1


async def test_failure_after_transition_commit_is_not_replayed_on_fallback(session_factory, monkeypatch):
    menu_item_id = await _menu_item_id(session_factory)
    async with session_factory() as db:
        gateway, repository, _, _ = _gateway(db)
        order = (await gateway.create_order(_payload(menu_item_id), "req-1")).value
        fetch = repository._fetch_order

        async def lose_connection_after_commit(order_id, *, for_update=False):
            if not for_update:
                _connection_lost()
            return await fetch(order_id, for_update=for_update)

        monkeypatch.setattr(repository, "_fetch_order", lose_connection_after_commit)

        with pytest.raises(OperationalError):
            await gateway.update_status(order.id, OrderStatus.CONFIRMED, "staff", "req-2")

    async with session_factory() as db:
        stored = await db.scalar(select(Order.status).where(Order.order_number == order.order_number))
        history = await db.scalar(select(func.count()).select_from(StatusChange))
    assert stored == OrderStatus.CONFIRMED
    assert history == 2


async def test_status_sort_follows_lifecycle(session_factory):
    menu_item_id = await _menu_item_id(session_factory)
    async with session_factory() as db:
        gateway, repository, _, _ = _gateway(db)
        ids = [(await gateway.create_order(_payload(menu_item_id), "req")).value.id for _ in range(3)]
        await gateway.update_status(ids[0], OrderStatus.READY, "staff", "req")
        await gateway.cancel_order(ids[1], "staff", "req")

        page = await repository.find(OrderQuery(sort_by=SortField.STATUS, sort_order=SortOrder.ASC))

    assert [order.status for order in page.items] == [
        OrderStatus.PLACED,
        OrderStatus.READY,
        OrderStatus.CANCELLED,
    ]
