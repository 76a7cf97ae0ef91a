"""
Per-request wiring: a database-backed service built on the request's session
and the process-wide fallback service, joined by a Failover.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from bistro.config import Settings
from bistro.database import get_db
from bistro.repositories.sql import SqlMenuCatalog, SqlOrderRepository
from bistro.services.failover import Failover
from bistro.services.menu_service import MenuGateway
from bistro.services.order_service import OrderGateway, OrderService
from bistro.services.pricing import FulfilmentPolicy, PricingPolicy


def build_fallback_service(request: Request) -> OrderService:
    state = request.app.state
    settings: Settings = state.settings
    return OrderService(
        state.fallback_orders,
        state.fallback_menu,
        PricingPolicy(settings.fallback_tax_rate),
        FulfilmentPolicy(min_minutes=settings.fallback_min_preparation_minutes),
        state.publisher,
        strict_transitions=settings.strict_status_transitions,
        degraded=True,
    )


def get_order_gateway(request: Request, db: AsyncSession = Depends(get_db)) -> OrderGateway:
    state = request.app.state
    settings: Settings = state.settings
    primary = OrderService(
        SqlOrderRepository(db, settings.order_number_prefix, settings.order_number_width),
        SqlMenuCatalog(db),
        PricingPolicy(settings.tax_rate),
        FulfilmentPolicy(fixed_minutes=settings.estimated_delivery_minutes),
        state.publisher,
        strict_transitions=settings.strict_status_transitions,
    )
    return OrderGateway(primary, build_fallback_service(request), Failover(state.db_health))


def get_menu_gateway(request: Request, db: AsyncSession = Depends(get_db)) -> MenuGateway:
    state = request.app.state
    return MenuGateway(SqlMenuCatalog(db), state.fallback_menu, Failover(state.db_health))


def request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")
