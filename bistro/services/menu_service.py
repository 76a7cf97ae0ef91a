import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bistro.fallback.sample_data import MENU_ROWS
from bistro.models.menu_item import MenuCategory, MenuItem
from bistro.repositories.base import MenuCatalog
from bistro.schemas.menu_item import MenuItemResponse
from bistro.services.failover import Failover, Served

logger = logging.getLogger(__name__)


async def seed_menu_items(db: AsyncSession) -> None:
    """Populate menu_items if the table is empty. Called once on startup."""
    result = await db.execute(select(MenuItem).limit(1))
    if result.scalars().first() is not None:
        return
    for name, description, category, price, minutes, available in MENU_ROWS:
        db.add(
            MenuItem(
                name=name,
                description=description,
                category=category,
                price=Decimal(price),
                is_available=available,
                preparation_time=minutes,
            )
        )
    await db.commit()
    logger.info("Seeded %d menu items", len(MENU_ROWS))


class MenuGateway:
    def __init__(self, primary: MenuCatalog, fallback: MenuCatalog, failover: Failover) -> None:
        self.primary = primary
        self.fallback = fallback
        self.failover = failover

    async def list_items(
        self, category: MenuCategory | None = None, available: bool | None = None
    ) -> Served[list[MenuItemResponse]]:
        return await self.failover.run(
            "list_menu",
            lambda: self.primary.list(category, available),
            lambda: self.fallback.list(category, available),
        )

    async def get_item(self, menu_item_id: str) -> Served[MenuItemResponse | None]:
        return await self.failover.run(
            "get_menu_item",
            lambda: self.primary.get(menu_item_id),
            lambda: self.fallback.get(menu_item_id),
        )
