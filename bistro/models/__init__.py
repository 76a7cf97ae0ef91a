# Import all models here so SQLAlchemy registers them with Base.metadata
from bistro.models.menu_item import MenuCategory, MenuItem
from bistro.models.order import (
    Order,
    OrderItem,
    OrderSequence,
    OrderStatus,
    OrderType,
    PaymentMethod,
    PaymentStatus,
    StatusChange,
)

__all__ = [
    "MenuCategory",
    "MenuItem",
    "Order",
    "OrderItem",
    "OrderSequence",
    "OrderStatus",
    "OrderType",
    "PaymentMethod",
    "PaymentStatus",
    "StatusChange",
]
