from pydantic import Field

from bistro.models.menu_item import MenuCategory
from bistro.schemas.common import CamelModel, Money


class MenuItemResponse(CamelModel):
    id: str
    name: str
    description: str | None = None
    category: MenuCategory
    price: Money
    availability: bool = True
    preparation_time: int = Field(default=15, ge=1)


class MenuItemRef(CamelModel):
    """The slice of a menu item expanded into order lines."""

    id: str
    name: str
    category: MenuCategory
    price: Money
