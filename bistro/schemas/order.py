from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated

from pydantic import EmailStr, Field, StringConstraints, ValidationInfo, field_validator

from bistro.models.order import OrderStatus, OrderType, PaymentMethod, PaymentStatus
from bistro.schemas.common import CamelModel, Money
from bistro.schemas.menu_item import MenuItemRef
from bistro.utils.clock import as_utc
from bistro.utils.phone import is_valid_pin_code, normalize_indian_mobile, strip_separators

PHONE_FORMAT_MESSAGE = (
    "Valid Indian phone number is required (format: +91-XXXXX-XXXXX or 10 digits starting with 6-9)"
)

CustomerName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
ActorLabel = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]


# ---------------------------------------------------------------------------
# Shared value objects
# ---------------------------------------------------------------------------


class Address(CamelModel):
    street: str = Field(min_length=1, max_length=200)
    city: str = Field(min_length=1, max_length=100)
    zip_code: str

    @field_validator("zip_code")
    @classmethod
    def check_pin_code(cls, value: str) -> str:
        if not is_valid_pin_code(value):
            raise ValueError("PIN code must be 6 digits and cannot start with 0")
        return value.strip()


class Customization(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    selected_option: str | None = None
    additional_price: Money = Field(default=Decimal("0"), ge=0)


class Customer(CamelModel):
    name: CustomerName
    phone: str
    email: EmailStr | None = None
    address: Address | None = None

    @field_validator("phone")
    @classmethod
    def normalize_phone(cls, value: str) -> str:
        normalized = normalize_indian_mobile(value)
        if normalized is None:
            raise ValueError(PHONE_FORMAT_MESSAGE)
        return normalized

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_missing(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str | None) -> str | None:
        return value.lower() if value else value


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class OrderItemCreate(CamelModel):
    menu_item: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    customizations: list[Customization] = Field(default_factory=list)
    special_instructions: str | None = Field(default=None, max_length=200)


class OrderCreate(CamelModel):
    """Order intake payload.

    ``order_type`` is declared first so the conditional checks on
    ``customer`` and ``table_number`` can see it. Prices and totals sent by
    the client are ignored.
    """

    order_type: OrderType
    customer: Customer
    items: list[OrderItemCreate] = Field(min_length=1)
    table_number: int | None = Field(default=None, validate_default=True)
    payment_method: PaymentMethod
    notes: str | None = Field(default=None, max_length=500)
    tip: Money = Field(default=Decimal("0"), ge=0)

    @field_validator("customer", mode="before")
    @classmethod
    def discard_address_unless_delivery(cls, value, info: ValidationInfo):
        # Only delivery orders keep an address, so nothing else validates one.
        order_type = info.data.get("order_type")
        if order_type is not None and order_type != OrderType.DELIVERY and isinstance(value, dict):
            return {key: item for key, item in value.items() if key != "address"}
        return value

    @field_validator("customer")
    @classmethod
    def address_only_for_delivery(cls, value: Customer, info: ValidationInfo) -> Customer:
        order_type = info.data.get("order_type")
        if order_type is None:
            return value
        if order_type == OrderType.DELIVERY:
            if value.address is None:
                raise ValueError("Delivery address is required for delivery orders")
            return value
        return value.model_copy(update={"address": None})

    @field_validator("table_number")
    @classmethod
    def table_only_for_dine_in(cls, value: int | None, info: ValidationInfo) -> int | None:
        order_type = info.data.get("order_type")
        if order_type is None:
            return value
        if order_type != OrderType.DINE_IN:
            return None
        if value is None:
            raise ValueError("Table number is required for dine-in orders")
        if value < 1:
            raise ValueError("Table number must be a positive integer")
        return value

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class StatusUpdate(CamelModel):
    status: OrderStatus
    updated_by: ActorLabel = "staff"


class CancelRequest(CamelModel):
    updated_by: ActorLabel = "staff"


# ---------------------------------------------------------------------------
# Stored order
# ---------------------------------------------------------------------------


class OrderLine(CamelModel):
    menu_item: MenuItemRef
    quantity: int
    unit_price: Money
    customizations: list[Customization] = Field(default_factory=list)
    special_instructions: str | None = None
    subtotal: Money


class StatusEntry(CamelModel):
    status: OrderStatus
    timestamp: datetime
    updated_by: str


class OrderDraft(CamelModel):
    """A fully priced order that has not been assigned an id or number yet."""

    customer: Customer
    items: list[OrderLine]
    order_type: OrderType
    table_number: int | None = None
    subtotal: Money
    tax: Money
    tip: Money = Decimal("0.00")
    total: Money
    payment_method: PaymentMethod
    payment_status: PaymentStatus = PaymentStatus.PENDING
    status: OrderStatus = OrderStatus.PLACED
    status_history: list[StatusEntry]
    estimated_delivery_time: datetime | None = None
    actual_delivery_time: datetime | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class OrderResponse(OrderDraft):
    id: str
    order_number: str


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


class SortField(str, Enum):
    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"
    TOTAL = "total"
    ORDER_NUMBER = "orderNumber"
    STATUS = "status"

    @property
    def attribute(self) -> str:
        return {
            SortField.CREATED_AT: "created_at",
            SortField.UPDATED_AT: "updated_at",
            SortField.TOTAL: "total",
            SortField.ORDER_NUMBER: "order_number",
            SortField.STATUS: "status",
        }[self]


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass
class OrderQuery:
    status: OrderStatus | None = None
    order_type: OrderType | None = None
    customer_phone: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    page: int = 1
    limit: int = 10
    sort_by: SortField = SortField.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC

    def __post_init__(self) -> None:
        if self.customer_phone is not None:
            self.customer_phone = strip_separators(self.customer_phone).lower() or None
        self.start_date = as_utc(self.start_date)
        self.end_date = as_utc(self.end_date)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class OrderPage:
    items: list[OrderResponse]
    total: int
