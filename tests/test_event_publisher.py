import json

from aiokafka.errors import KafkaConnectionError

from bistro.events import ORDER_STATUS_CHANGED_TOPIC, OrderStatusChangedEvent
from bistro.models.order import OrderStatus
from bistro.services.event_publisher import EventPublisher


class RecordingProducer:
    def __init__(self, error: Exception | None = None) -> None:
        self.sent = []
        self.error = error

    async def send_and_wait(self, topic, key=None, value=None, headers=None):
        if self.error is not None:
            raise self.error
        self.sent.append((topic, key, value, headers))


def event() -> OrderStatusChangedEvent:
    return OrderStatusChangedEvent(
        correlation_id="req-1",
        order_id="order4",
        order_number="MB004",
        status=OrderStatus.READY,
        updated_by="staff",
    )


async def test_publishes_json_keyed_by_order():
    producer = RecordingProducer()

    await EventPublisher(producer).publish(ORDER_STATUS_CHANGED_TOPIC, "order4", event())

    [(topic, key, value, _)] = producer.sent
    assert topic == "order.status_changed"
    assert key == b"order4"
    payload = json.loads(value)
    assert payload["status"] == "ready"
    assert payload["correlation_id"] == "req-1"


async def test_broker_failure_is_not_raised():
    producer = RecordingProducer(KafkaConnectionError("broker down"))
    await EventPublisher(producer).publish(ORDER_STATUS_CHANGED_TOPIC, "order4", event())
    assert producer.sent == []


async def test_without_producer_events_are_dropped():
    await EventPublisher().publish(ORDER_STATUS_CHANGED_TOPIC, "order4", event())
