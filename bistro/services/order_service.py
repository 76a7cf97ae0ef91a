import logging
from functools import partial

from bistro.errors import MenuItemNotFound, MenuItemUnavailable, OrderNotFound
from bistro.events import (
    ORDER_PLACED_TOPIC,
    ORDER_STATUS_CHANGED_TOPIC,
    OrderItemEvent,
    OrderPlacedEvent,
    OrderStatusChangedEvent,
)
from bistro.metrics import ORDERS_CREATED, STATUS_TRANSITIONS
from bistro.models.order import OrderStatus
from bistro.repositories.base import MenuCatalog, OrderRepository
from bistro.schemas.menu_item import MenuItemRef, MenuItemResponse
from bistro.schemas.order import (
    OrderCreate,
    OrderDraft,
    OrderItemCreate,
    OrderLine,
    OrderPage,
    OrderQuery,
    OrderResponse,
    StatusEntry,
)
from bistro.services.event_publisher import EventPublisher
from bistro.services.failover import Failover, Served
from bistro.services.lifecycle import plan_cancellation, plan_status_change
from bistro.services.pricing import FulfilmentPolicy, PricingPolicy
from bistro.utils.clock import utcnow

logger = logging.getLogger(__name__)


def creation_message(order: OrderResponse, degraded: bool) -> str:
    if not degraded:
        return "Order created successfully"
    minutes = 0
    if order.estimated_delivery_time is not None:
        minutes = round((order.estimated_delivery_time - order.created_at).total_seconds() / 60)
    return f"Order {order.order_number} placed successfully! Estimated time: {minutes} minutes."


class OrderService:
    """Order use cases over one storage backend.

    The same class serves the database path and the in-memory fallback; they
    differ only in the repository, menu catalog, and policies passed in.
    """

    def __init__(
        self,
        orders: OrderRepository,
        menu: MenuCatalog,
        pricing: PricingPolicy,
        fulfilment: FulfilmentPolicy,
        publisher: EventPublisher,
        *,
        strict_transitions: bool = True,
        degraded: bool = False,
    ) -> None:
        self.orders = orders
        self.menu = menu
        self.pricing = pricing
        self.fulfilment = fulfilment
        self.publisher = publisher
        self.strict_transitions = strict_transitions
        self.degraded = degraded

    @property
    def mode(self) -> str:
        return "fallback" if self.degraded else "database"

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    async def _resolve_menu_items(self, items: list[OrderItemCreate]) -> list[MenuItemResponse]:
        resolved = []
        for requested in items:
            menu_item = await self.menu.get(requested.menu_item)
            if menu_item is None:
                raise MenuItemNotFound(requested.menu_item)
            if not menu_item.availability:
                raise MenuItemUnavailable(requested.menu_item, menu_item.name)
            resolved.append(menu_item)
        return resolved

    def _build_draft(self, data: OrderCreate, menu_items: list[MenuItemResponse]) -> OrderDraft:
        now = utcnow()
        lines = [
            OrderLine(
                menu_item=MenuItemRef(
                    id=menu_item.id, name=menu_item.name, category=menu_item.category, price=menu_item.price
                ),
                quantity=requested.quantity,
                unit_price=menu_item.price,
                customizations=requested.customizations,
                special_instructions=requested.special_instructions,
                subtotal=self.pricing.line_subtotal(menu_item.price, requested.customizations, requested.quantity),
            )
            for requested, menu_item in zip(data.items, menu_items)
        ]
        totals = self.pricing.totals((line.subtotal for line in lines), tip=data.tip)

        return OrderDraft(
            customer=data.customer,
            items=lines,
            order_type=data.order_type,
            table_number=data.table_number,
            subtotal=totals.subtotal,
            tax=totals.tax,
            tip=totals.tip,
            total=totals.total,
            payment_method=data.payment_method,
            status=OrderStatus.PLACED,
            status_history=[StatusEntry(status=OrderStatus.PLACED, timestamp=now, updated_by="system")],
            estimated_delivery_time=self.fulfilment.estimate(now, (m.preparation_time for m in menu_items)),
            notes=data.notes,
            created_at=now,
            updated_at=now,
        )

    async def _publish_status_change(self, order: OrderResponse, request_id: str) -> None:
        last = order.status_history[-1]
        await self.publisher.publish(
            ORDER_STATUS_CHANGED_TOPIC,
            order.id,
            OrderStatusChangedEvent(
                correlation_id=request_id,
                degraded=self.degraded,
                order_id=order.id,
                order_number=order.order_number,
                status=last.status,
                updated_by=last.updated_by,
            ),
        )

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def create_order(self, data: OrderCreate, request_id: str) -> OrderResponse:
        # 1. Resolve every menu item before computing anything
        menu_items = await self._resolve_menu_items(data.items)

        # 2. Price the order and seed its history
        draft = self._build_draft(data, menu_items)

        # 3. Persist; the repository assigns id and order number
        order = await self.orders.add(draft)
        ORDERS_CREATED.labels(self.mode, order.order_type.value).inc()

        logger.info(
            "Order persisted",
            extra={
                "order_id": order.id,
                "order_number": order.order_number,
                "request_id": request_id,
                "mode": self.mode,
                "total": float(order.total),
                "item_count": len(order.items),
            },
        )

        # 4. Publish order.placed
        await self.publisher.publish(
            ORDER_PLACED_TOPIC,
            order.id,
            OrderPlacedEvent(
                correlation_id=request_id,
                degraded=self.degraded,
                order_id=order.id,
                order_number=order.order_number,
                customer_name=order.customer.name,
                customer_phone=order.customer.phone,
                order_type=order.order_type,
                total=order.total,
                items=[
                    OrderItemEvent(
                        menu_item_id=line.menu_item.id,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        subtotal=line.subtotal,
                    )
                    for line in order.items
                ],
            ),
        )
        return order

    async def get_order(self, order_id: str) -> OrderResponse:
        order = await self.orders.get(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    async def list_orders(self, query: OrderQuery) -> OrderPage:
        return await self.orders.find(query)

    async def update_status(
        self, order_id: str, status: OrderStatus, updated_by: str, request_id: str
    ) -> OrderResponse:
        plan = partial(plan_status_change, target=status, updated_by=updated_by, strict=self.strict_transitions)
        order = await self.orders.transition(order_id, plan)
        STATUS_TRANSITIONS.labels(self.mode, status.value).inc()
        logger.info(
            "Order status updated",
            extra={"order_id": order_id, "status": status.value, "updated_by": updated_by, "request_id": request_id},
        )
        await self._publish_status_change(order, request_id)
        return order

    async def cancel_order(self, order_id: str, updated_by: str, request_id: str) -> OrderResponse:
        plan = partial(plan_cancellation, updated_by=updated_by, strict=self.strict_transitions)
        order = await self.orders.transition(order_id, plan)
        STATUS_TRANSITIONS.labels(self.mode, OrderStatus.CANCELLED.value).inc()
        logger.info(
            "Order cancelled",
            extra={"order_id": order_id, "updated_by": updated_by, "request_id": request_id},
        )
        await self._publish_status_change(order, request_id)
        return order


class OrderGateway:
    """Routes each order operation to the database path or the fallback path."""

    def __init__(self, primary: OrderService, fallback: OrderService, failover: Failover) -> None:
        self.primary = primary
        self.fallback = fallback
        self.failover = failover

    async def create_order(self, data: OrderCreate, request_id: str) -> Served[OrderResponse]:
        return await self.failover.run(
            "create_order",
            lambda: self.primary.create_order(data, request_id),
            lambda: self.fallback.create_order(data, request_id),
        )

    async def get_order(self, order_id: str) -> Served[OrderResponse]:
        return await self.failover.run(
            "get_order",
            lambda: self.primary.get_order(order_id),
            lambda: self.fallback.get_order(order_id),
        )

    async def list_orders(self, query: OrderQuery) -> Served[OrderPage]:
        return await self.failover.run(
            "list_orders",
            lambda: self.primary.list_orders(query),
            lambda: self.fallback.list_orders(query),
        )

    async def update_status(
        self, order_id: str, status: OrderStatus, updated_by: str, request_id: str
    ) -> Served[OrderResponse]:
        return await self.failover.run(
            "update_status",
            lambda: self.primary.update_status(order_id, status, updated_by, request_id),
            lambda: self.fallback.update_status(order_id, status, updated_by, request_id),
        )

    async def cancel_order(self, order_id: str, updated_by: str, request_id: str) -> Served[OrderResponse]:
        return await self.failover.run(
            "cancel_order",
            lambda: self.primary.cancel_order(order_id, updated_by, request_id),
            lambda: self.fallback.cancel_order(order_id, updated_by, request_id),
        )
