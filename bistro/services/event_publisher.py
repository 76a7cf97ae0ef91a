import logging

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError
from opentelemetry.propagate import inject

from bistro.events import EventBase

logger = logging.getLogger(__name__)


class EventPublisher:
    """Publishes order events to Kafka.

    A failed publish is logged and dropped: the order has already been
    stored and the HTTP response must not depend on the broker.
    """

    def __init__(self, producer: AIOKafkaProducer | None = None) -> None:
        self.producer = producer

    async def publish(self, topic: str, key: str, event: EventBase) -> None:
        if self.producer is None:
            logger.debug("Kafka disabled, dropping %s event", topic, extra={"key": key})
            return

        # Propagate trace context into the Kafka message
        outgoing_headers: dict[str, str] = {}
        inject(outgoing_headers)
        kafka_headers = [(k, v.encode()) for k, v in outgoing_headers.items()]

        try:
            await self.producer.send_and_wait(
                topic,
                key=key.encode(),
                value=event.model_dump_json().encode(),
                headers=kafka_headers,
            )
        except KafkaError as exc:
            logger.warning(
                "Failed to publish %s event",
                topic,
                extra={"key": key, "correlation_id": event.correlation_id, "error": str(exc)},
            )
            return

        logger.info(
            "Published %s event",
            topic,
            extra={"key": key, "correlation_id": event.correlation_id},
        )
