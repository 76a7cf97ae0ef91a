"""
Pydantic event schemas published to Kafka.
All events extend EventBase which carries correlation/tracing metadata.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from bistro.models.order import OrderStatus, OrderType
from bistro.utils.clock import utcnow

ORDER_PLACED_TOPIC = "order.placed"
ORDER_STATUS_CHANGED_TOPIC = "order.status_changed"


class EventBase(BaseModel):
    event_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    event_version: int = 1
    correlation_id: str  # carries X-Request-ID from the HTTP layer
    occurred_at: datetime = Field(default_factory=utcnow)
    degraded: bool = False  # emitted while serving from the in-memory fallback

    model_config = {"extra": "ignore"}


class OrderItemEvent(BaseModel):
    menu_item_id: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

    model_config = {"extra": "ignore"}


class OrderPlacedEvent(EventBase):
    order_id: str
    order_number: str
    customer_name: str
    customer_phone: str
    order_type: OrderType
    total: Decimal
    items: list[OrderItemEvent]


class OrderStatusChangedEvent(EventBase):
    order_id: str
    order_number: str
    status: OrderStatus
    updated_by: str
