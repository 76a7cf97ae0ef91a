import pytest
from pydantic import ValidationError

from bistro.models.order import OrderType
from bistro.schemas.order import Customer, OrderCreate, OrderQuery
from bistro.utils.phone import is_valid_pin_code, normalize_indian_mobile


def payload(**overrides) -> dict:
    data = {
        "customer": {"name": "A", "phone": "9876543210"},
        "items": [{"menuItem": "1", "quantity": 1}],
        "orderType": "takeout",
        "paymentMethod": "cash",
    }
    data.update(overrides)
    return data


@pytest.mark.parametrize(
    "raw",
    ["9876543210", "+919876543210", "919876543210", "+91-98765-43210", "(987) 654 3210"],
)
def test_phone_forms_normalize_to_plus_91(raw):
    assert normalize_indian_mobile(raw) == "+919876543210"


@pytest.mark.parametrize("raw", ["5876543210", "98765", "+1 415 555 0100", "98765432101"])
def test_invalid_phone_numbers(raw):
    assert normalize_indian_mobile(raw) is None


def test_pin_codes():
    assert is_valid_pin_code("560034")
    assert not is_valid_pin_code("060034")
    assert not is_valid_pin_code("56003")


def test_customer_email_is_lowercased_and_blank_dropped():
    assert Customer(name="A", phone="9876543210", email="Rajesh@Example.COM").email == "rajesh@example.com"
    assert Customer(name="A", phone="9876543210", email="  ").email is None


def test_customer_name_is_trimmed():
    assert Customer(name="  Priya ", phone="9876543210").name == "Priya"
    with pytest.raises(ValidationError):
        Customer(name="   ", phone="9876543210")


def test_dine_in_requires_table_number():
    with pytest.raises(ValidationError) as excinfo:
        OrderCreate.model_validate(payload(orderType="dine_in"))
    assert excinfo.value.errors()[0]["loc"] == ("tableNumber",)


def test_table_number_dropped_for_takeout():
    order = OrderCreate.model_validate(payload(tableNumber=4))
    assert order.table_number is None


def test_delivery_requires_address_and_other_types_drop_it():
    with pytest.raises(ValidationError):
        OrderCreate.model_validate(payload(orderType="delivery"))

    address = {"street": "123 MG Road", "city": "Bangalore", "zipCode": "560034"}
    customer = {"name": "A", "phone": "9876543210", "address": address}
    delivery = OrderCreate.model_validate(payload(orderType="delivery", customer=customer))
    takeout = OrderCreate.model_validate(payload(customer=customer))

    assert delivery.order_type == OrderType.DELIVERY
    assert delivery.customer.address.zip_code == "560034"
    assert takeout.customer.address is None


def test_all_field_errors_are_reported_together():
    with pytest.raises(ValidationError) as excinfo:
        OrderCreate.model_validate(
            payload(
                orderType="dine_in",
                customer={"name": "", "phone": "12345"},
                items=[],
                tip=-1,
            )
        )
    locations = {error["loc"] for error in excinfo.value.errors()}
    assert {("customer", "name"), ("customer", "phone"), ("items",), ("tableNumber",), ("tip",)} <= locations


def test_item_quantity_and_instructions_limits():
    with pytest.raises(ValidationError):
        OrderCreate.model_validate(payload(items=[{"menuItem": "1", "quantity": 0}]))
    with pytest.raises(ValidationError):
        OrderCreate.model_validate(
            payload(items=[{"menuItem": "1", "quantity": 1, "specialInstructions": "x" * 201}])
        )


def test_order_query_normalizes_phone_and_offset():
    query = OrderQuery(customer_phone="98765-43210", page=3, limit=20)
    assert query.customer_phone == "9876543210"
    assert query.offset == 40


def test_stray_address_on_takeout_is_not_validated():
    customer = {
        "name": "A",
        "phone": "9876543210",
        "address": {"street": "", "city": "Bangalore", "zipCode": "012345"},
    }
    order = OrderCreate.model_validate(payload(customer=customer))
    assert order.customer.address is None

    with pytest.raises(ValidationError) as excinfo:
        OrderCreate.model_validate(payload(orderType="delivery", customer=customer))
    assert ("customer", "address", "zipCode") in {error["loc"] for error in excinfo.value.errors()}
