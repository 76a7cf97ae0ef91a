"""
Sample dataset served while the database is unreachable.

The same menu rows seed an empty database on startup.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from bistro.models.menu_item import MenuCategory
from bistro.models.order import OrderStatus, OrderType, PaymentMethod, PaymentStatus
from bistro.schemas.menu_item import MenuItemRef, MenuItemResponse
from bistro.schemas.order import Address, Customer, OrderLine, OrderResponse, StatusEntry
from bistro.services.lifecycle import FULFILMENT_PATH
from bistro.services.pricing import PricingPolicy

# (name, description, category, price, preparation minutes, available)
MENU_ROWS = [
    ("Samosa Chaat", "Crispy samosas topped with tangy chutneys, yogurt, and sev", MenuCategory.APPETIZER, "95", 10, True),
    ("Chicken Tikka", "Chicken marinated in yogurt and spices, grilled in tandoor", MenuCategory.APPETIZER, "285", 20, True),
    ("Paneer Tikka", "Marinated cottage cheese grilled with bell peppers and onions", MenuCategory.APPETIZER, "245", 18, True),
    ("Masala Dosa", "Rice and lentil crepe filled with spiced potato curry", MenuCategory.APPETIZER, "125", 15, True),
    ("Butter Chicken", "Chicken in rich tomato and butter sauce", MenuCategory.MAIN_COURSE, "345", 25, True),
    ("Paneer Makhani", "Cottage cheese in velvety tomato and cashew gravy", MenuCategory.MAIN_COURSE, "295", 20, True),
    ("Chicken Biryani", "Basmati rice layered with spiced chicken and saffron", MenuCategory.MAIN_COURSE, "385", 45, True),
    ("Dal Makhani", "Black lentils slow cooked with butter and cream", MenuCategory.MAIN_COURSE, "225", 30, True),
    ("Fish Curry", "Coastal style fish in coconut and tamarind gravy", MenuCategory.MAIN_COURSE, "365", 25, False),
    ("Butter Naan", "Leavened flatbread brushed with butter", MenuCategory.BREAD, "55", 12, True),
    ("Garlic Naan", "Naan topped with garlic and coriander", MenuCategory.BREAD, "65", 12, True),
    ("Tomato Shorba", "Spiced tomato soup with roasted cumin", MenuCategory.SOUP, "110", 10, True),
    ("Kachumber Salad", "Cucumber, tomato and onion with lemon", MenuCategory.SALAD, "90", 5, True),
    ("Mango Lassi", "Yogurt drink blended with Alphonso mango", MenuCategory.BEVERAGE, "95", 5, True),
    ("Masala Chai", "Tea brewed with milk and whole spices", MenuCategory.BEVERAGE, "45", 8, True),
    ("Gulab Jamun", "Milk dumplings soaked in rose syrup", MenuCategory.DESSERT, "85", 20, True),
]


def sample_menu() -> list[MenuItemResponse]:
    return [
        MenuItemResponse(
            id=str(index),
            name=name,
            description=description,
            category=category,
            price=Decimal(price),
            availability=available,
            preparation_time=minutes,
        )
        for index, (name, description, category, price, minutes, available) in enumerate(MENU_ROWS, start=1)
    ]


def _history(status: OrderStatus, placed_at: datetime) -> list[StatusEntry]:
    entries = [StatusEntry(status=OrderStatus.PLACED, timestamp=placed_at, updated_by="system")]
    if status == OrderStatus.CANCELLED:
        entries.append(StatusEntry(status=status, timestamp=placed_at + timedelta(minutes=5), updated_by="staff"))
        return entries
    for step, next_status in enumerate(FULFILMENT_PATH[1:FULFILMENT_PATH.index(status) + 1], start=1):
        entries.append(
            StatusEntry(status=next_status, timestamp=placed_at + timedelta(minutes=10 * step), updated_by="staff")
        )
    return entries


def sample_orders(pricing: PricingPolicy) -> list[OrderResponse]:
    """Six orders, most recent first, priced with ``pricing``."""
    menu = {item.id: item for item in sample_menu()}

    def lines(*picks: tuple[str, int]) -> list[OrderLine]:
        result = []
        for menu_id, quantity in picks:
            item = menu[menu_id]
            result.append(
                OrderLine(
                    menu_item=MenuItemRef(id=item.id, name=item.name, category=item.category, price=item.price),
                    quantity=quantity,
                    unit_price=item.price,
                    subtotal=pricing.line_subtotal(item.price, [], quantity),
                )
            )
        return result

    rows = [
        ("order1", "Rajesh Kumar", "+919876512345", "rajesh.kumar@gmail.com", None,
         lines(("1", 2), ("6", 1), ("10", 3)), OrderType.DINE_IN, 12, OrderStatus.DELIVERED,
         PaymentMethod.CARD, PaymentStatus.PAID, "Medium spice level for Paneer Makhani",
         datetime(2024, 12, 8, 5, 0, tzinfo=timezone.utc)),
        ("order2", "Priya Sharma", "+919876554321", "priya.sharma@yahoo.com", None,
         lines(("7", 1), ("14", 2)), OrderType.TAKEOUT, None, OrderStatus.READY,
         PaymentMethod.ONLINE, PaymentStatus.PAID, "Extra raita with biryani",
         datetime(2024, 12, 8, 6, 45, tzinfo=timezone.utc)),
        ("order3", "Amit Patel", "+919876567890", "amit.patel@hotmail.com",
         Address(street="123 MG Road, Koramangala", city="Bangalore", zip_code="560034"),
         lines(("5", 2), ("11", 4), ("16", 1)), OrderType.DELIVERY, None, OrderStatus.IN_PREPARATION,
         PaymentMethod.CASH, PaymentStatus.PENDING, None,
         datetime(2024, 12, 8, 8, 15, tzinfo=timezone.utc)),
        ("order4", "Sneha Reddy", "+919123456780", None, None,
         lines(("3", 1), ("12", 2)), OrderType.DINE_IN, 5, OrderStatus.CONFIRMED,
         PaymentMethod.CARD, PaymentStatus.PENDING, None,
         datetime(2024, 12, 8, 10, 30, tzinfo=timezone.utc)),
        ("order5", "Vikram Singh", "+918765432109", "vikram.singh@gmail.com", None,
         lines(("4", 2), ("15", 2)), OrderType.TAKEOUT, None, OrderStatus.PLACED,
         PaymentMethod.CASH, PaymentStatus.PENDING, None,
         datetime(2024, 12, 8, 12, 0, tzinfo=timezone.utc)),
        ("order6", "Kavya Nair", "+917012345678", "kavya.nair@outlook.com",
         Address(street="45 Residency Road", city="Bangalore", zip_code="560025"),
         lines(("2", 1), ("13", 1)), OrderType.DELIVERY, None, OrderStatus.CANCELLED,
         PaymentMethod.ONLINE, PaymentStatus.REFUNDED, "Customer called to cancel",
         datetime(2024, 12, 8, 13, 20, tzinfo=timezone.utc)),
    ]

    orders = []
    for number, row in enumerate(rows, start=1):
        (order_id, name, phone, email, address, order_lines, order_type, table, status,
         payment_method, payment_status, notes, placed_at) = row
        totals = pricing.totals(line.subtotal for line in order_lines)
        history = _history(status, placed_at)
        orders.append(
            OrderResponse(
                id=order_id,
                order_number=f"MB{number:03d}",
                customer=Customer(name=name, phone=phone, email=email, address=address),
                items=order_lines,
                order_type=order_type,
                table_number=table,
                subtotal=totals.subtotal,
                tax=totals.tax,
                tip=totals.tip,
                total=totals.total,
                payment_method=payment_method,
                payment_status=payment_status,
                status=status,
                status_history=history,
                estimated_delivery_time=placed_at + timedelta(minutes=30),
                actual_delivery_time=history[-1].timestamp if status == OrderStatus.DELIVERED else None,
                notes=notes,
                created_at=placed_at,
                updated_at=history[-1].timestamp,
            )
        )
    orders.reverse()
    return orders
