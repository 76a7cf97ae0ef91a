import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bistro.errors import OrderNotFound, PersistenceUnavailable
from bistro.models.menu_item import MenuCategory, MenuItem
from bistro.models.order import Order, OrderItem, OrderSequence, OrderStatus, StatusChange
from bistro.repositories.base import TransitionPlanner
from bistro.schemas.menu_item import MenuItemRef, MenuItemResponse
from bistro.schemas.order import (
    Address,
    Customer,
    Customization,
    OrderDraft,
    OrderLine,
    OrderPage,
    OrderQuery,
    OrderResponse,
    SortField,
    SortOrder,
    StatusEntry,
)
from bistro.services.lifecycle import apply_transition
from bistro.utils.clock import as_utc

logger = logging.getLogger(__name__)

ORDER_SEQUENCE = "orders"

# Lifecycle order rather than alphabetical. Comparing through the column lets
# the Enum type bind each status in its stored form.
_STATUS_RANK = case(*[(Order.status == status, rank) for rank, status in enumerate(OrderStatus)])


@asynccontextmanager
async def connectivity_guard(db: AsyncSession, operation: str) -> AsyncIterator[None]:
    """Re-raise connection-level failures as PersistenceUnavailable."""
    try:
        yield
    except (OperationalError, InterfaceError, OSError) as exc:
        await _safe_rollback(db)
        raise PersistenceUnavailable(f"{operation}: {exc}") from exc
    except DBAPIError as exc:
        if not exc.connection_invalidated:
            raise
        await _safe_rollback(db)
        raise PersistenceUnavailable(f"{operation}: {exc}") from exc


async def _safe_rollback(db: AsyncSession) -> None:
    try:
        await db.rollback()
    except (DBAPIError, OSError) as exc:
        logger.debug("Rollback after connectivity failure did not complete", extra={"error": str(exc)})


def _parse_uuid(value: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(value)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Mapping
# ---------------------------------------------------------------------------


def _menu_response(item: MenuItem) -> MenuItemResponse:
    return MenuItemResponse(
        id=str(item.id),
        name=item.name,
        description=item.description,
        category=item.category,
        price=item.price,
        availability=item.is_available,
        preparation_time=item.preparation_time,
    )


def _build_response(order: Order) -> OrderResponse:
    items = [
        OrderLine(
            menu_item=MenuItemRef(
                id=str(item.menu_item_id),
                name=item.menu_item.name,
                category=item.menu_item.category,
                price=item.menu_item.price,
            ),
            quantity=item.quantity,
            unit_price=item.unit_price,
            customizations=[Customization.model_validate(c) for c in item.customizations or []],
            special_instructions=item.special_instructions,
            subtotal=item.subtotal,
        )
        for item in order.items
    ]

    history = [
        StatusEntry(status=change.status, timestamp=as_utc(change.timestamp), updated_by=change.updated_by)
        for change in order.status_history
    ]

    return OrderResponse(
        id=str(order.id),
        order_number=order.order_number,
        customer=Customer(
            name=order.customer_name,
            phone=order.customer_phone,
            email=order.customer_email,
            address=Address.model_validate(order.customer_address) if order.customer_address else None,
        ),
        items=items,
        order_type=order.order_type,
        table_number=order.table_number,
        subtotal=order.subtotal,
        tax=order.tax,
        tip=order.tip,
        total=order.total,
        payment_method=order.payment_method,
        payment_status=order.payment_status,
        status=order.status,
        status_history=history,
        estimated_delivery_time=as_utc(order.estimated_delivery_time),
        actual_delivery_time=as_utc(order.actual_delivery_time),
        notes=order.notes,
        created_at=as_utc(order.created_at),
        updated_at=as_utc(order.updated_at),
    )


# ---------------------------------------------------------------------------
# Menu
# ---------------------------------------------------------------------------


class SqlMenuCatalog:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, menu_item_id: str) -> MenuItemResponse | None:
        key = _parse_uuid(menu_item_id)
        if key is None:
            return None
        async with connectivity_guard(self.db, "menu.get"):
            item = await self.db.get(MenuItem, key)
        return _menu_response(item) if item else None

    async def list(
        self, category: MenuCategory | None = None, available: bool | None = None
    ) -> list[MenuItemResponse]:
        stmt = select(MenuItem).order_by(MenuItem.category, MenuItem.name)
        if category is not None:
            stmt = stmt.where(MenuItem.category == category)
        if available is not None:
            stmt = stmt.where(MenuItem.is_available.is_(available))
        async with connectivity_guard(self.db, "menu.list"):
            result = await self.db.execute(stmt)
        return [_menu_response(item) for item in result.scalars().all()]


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


class SqlOrderRepository:
    def __init__(self, db: AsyncSession, number_prefix: str = "ORD", number_width: int = 6) -> None:
        self.db = db
        self.number_prefix = number_prefix
        self.number_width = number_width

    async def _fetch_order(self, order_id: uuid.UUID, *, for_update: bool = False) -> Order | None:
        stmt = (
            select(Order)
            .where(Order.id == order_id)
            .options(
                selectinload(Order.items).selectinload(OrderItem.menu_item),
                selectinload(Order.status_history),
            )
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def _next_sequence(self) -> int:
        """Atomically increment the order counter inside the current transaction."""
        stmt = (
            update(OrderSequence)
            .where(OrderSequence.name == ORDER_SEQUENCE)
            .values(value=OrderSequence.value + 1)
            .returning(OrderSequence.value)
            .execution_options(synchronize_session=False)
        )
        value = (await self.db.execute(stmt)).scalar_one_or_none()
        if value is None:
            # Counter row missing: continue from the rows already stored.
            existing = await self.db.scalar(select(func.count()).select_from(Order))
            value = (existing or 0) + 1
            self.db.add(OrderSequence(name=ORDER_SEQUENCE, value=value))
            await self.db.flush()
        return value

    async def add(self, draft: OrderDraft) -> OrderResponse:
        async with connectivity_guard(self.db, "orders.add"):
            sequence = await self._next_sequence()
            order = Order(
                order_number=f"{self.number_prefix}{sequence:0{self.number_width}d}",
                customer_name=draft.customer.name,
                customer_phone=draft.customer.phone,
                customer_email=draft.customer.email,
                customer_address=draft.customer.address.model_dump() if draft.customer.address else None,
                order_type=draft.order_type,
                table_number=draft.table_number,
                status=draft.status,
                subtotal=draft.subtotal,
                tax=draft.tax,
                tip=draft.tip,
                total=draft.total,
                payment_method=draft.payment_method,
                payment_status=draft.payment_status,
                estimated_delivery_time=draft.estimated_delivery_time,
                notes=draft.notes,
                created_at=draft.created_at,
                updated_at=draft.updated_at,
            )
            self.db.add(order)
            await self.db.flush()  # obtain order.id before inserting children

            for position, line in enumerate(draft.items):
                self.db.add(
                    OrderItem(
                        order_id=order.id,
                        menu_item_id=uuid.UUID(line.menu_item.id),
                        position=position,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        customizations=[c.model_dump(mode="json") for c in line.customizations],
                        special_instructions=line.special_instructions,
                        subtotal=line.subtotal,
                    )
                )
            for position, entry in enumerate(draft.status_history):
                self.db.add(
                    StatusChange(
                        order_id=order.id,
                        position=position,
                        status=entry.status,
                        timestamp=entry.timestamp,
                        updated_by=entry.updated_by,
                    )
                )

            await self.db.commit()  # order, lines, history and counter in one transaction

        # Committed: a failure from here on must not reroute the write to the fallback.
        stored = await self._fetch_order(order.id)
        return _build_response(stored)

    async def get(self, order_id: str) -> OrderResponse | None:
        key = _parse_uuid(order_id)
        if key is None:
            return None
        async with connectivity_guard(self.db, "orders.get"):
            order = await self._fetch_order(key)
        return _build_response(order) if order else None

    async def find(self, query: OrderQuery) -> OrderPage:
        conditions = []
        if query.status is not None:
            conditions.append(Order.status == query.status)
        if query.order_type is not None:
            conditions.append(Order.order_type == query.order_type)
        if query.customer_phone:
            pattern = query.customer_phone.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            conditions.append(Order.customer_phone.ilike(f"%{pattern}%", escape="\\"))
        if query.start_date is not None:
            conditions.append(Order.created_at >= query.start_date)
        if query.end_date is not None:
            conditions.append(Order.created_at <= query.end_date)

        if query.sort_by == SortField.STATUS:
            column = _STATUS_RANK
        else:
            column = getattr(Order, query.sort_by.attribute)
        ordering = column.desc() if query.sort_order == SortOrder.DESC else column.asc()

        stmt = (
            select(Order)
            .where(*conditions)
            .options(
                selectinload(Order.items).selectinload(OrderItem.menu_item),
                selectinload(Order.status_history),
            )
            .order_by(ordering, Order.id)
            .offset(query.offset)
            .limit(query.limit)
        )
        async with connectivity_guard(self.db, "orders.find"):
            total = await self.db.scalar(select(func.count()).select_from(Order).where(*conditions))
            result = await self.db.execute(stmt)
            orders = result.scalars().all()
        return OrderPage(items=[_build_response(o) for o in orders], total=total or 0)

    async def transition(self, order_id: str, plan: TransitionPlanner) -> OrderResponse:
        key = _parse_uuid(order_id)
        if key is None:
            raise OrderNotFound(order_id)

        async with connectivity_guard(self.db, "orders.transition"):
            order = await self._fetch_order(key, for_update=True)
            if order is None:
                await self.db.rollback()
                raise OrderNotFound(order_id)

            current = _build_response(order)
            try:
                transition = plan(current)
            except Exception:
                await self.db.rollback()
                raise

            updated = apply_transition(current, transition)
            order.status = updated.status
            order.actual_delivery_time = updated.actual_delivery_time
            order.updated_at = updated.updated_at
            self.db.add(
                StatusChange(
                    order_id=order.id,
                    position=len(current.status_history),
                    status=transition.entry.status,
                    timestamp=transition.entry.timestamp,
                    updated_by=transition.entry.updated_by,
                )
            )
            await self.db.commit()

        # Committed: errors from the re-read surface as-is instead of triggering failover.
        stored = await self._fetch_order(key)
        return _build_response(stored)


async def ensure_order_sequence(db: AsyncSession) -> None:
    """Create the order counter row, continuing from any existing orders."""
    existing = await db.get(OrderSequence, ORDER_SEQUENCE)
    if existing is not None:
        return
    count = await db.scalar(select(func.count()).select_from(Order))
    db.add(OrderSequence(name=ORDER_SEQUENCE, value=count or 0))
    await db.commit()
