"""
Kafka Producer for event publishing.

Publishes product domain events to one topic per action. Delivery is
best-effort: a failed send is logged and counted, never retried.
"""
from typing import Any, Optional

from aiokafka import AIOKafkaProducer

from internal.domain.errors import EventPublishError
from internal.domain.events import DEFAULT_TOPIC_PREFIX, DomainEvent
from internal.infrastructure.json_codec import dumps
from internal.infrastructure.metrics.prometheus import EVENTS_PUBLISHED
from pkg.logger.logger import get_logger


logger = get_logger(__name__)


class KafkaProducer:
    """
    Kafka producer owned by the process entry point.

    Serializes values as UTF-8 JSON and keys as UTF-8 strings.
    """

    def __init__(
        self,
        bootstrap_servers: str,
        client_id: str = "catalog-service",
    ) -> None:
        """
        Initialize the Kafka producer.

        Args:
            bootstrap_servers: Comma-separated list of Kafka brokers.
            client_id: Client identifier for the producer.
        """
        self._bootstrap_servers = bootstrap_servers
        self._client_id = client_id
        self._producer: Optional[AIOKafkaProducer] = None

    async def start(self) -> None:
        """Start the Kafka producer."""
        self._producer = AIOKafkaProducer(
            bootstrap_servers=self._bootstrap_servers,
            client_id=self._client_id,
            value_serializer=lambda v: dumps(v).encode("utf-8"),
            key_serializer=lambda k: k.encode("utf-8") if k else None,
            acks="all",
        )
        await self._producer.start()
        logger.info("Kafka producer started", bootstrap_servers=self._bootstrap_servers)

    async def stop(self) -> None:
        """Stop the Kafka producer."""
        if self._producer:
            await self._producer.stop()
            self._producer = None
            logger.info("Kafka producer stopped")

    async def publish_message(
        self,
        topic: str,
        key: Optional[str],
        value: dict,
    ) -> None:
        """
        Publish a message to Kafka and wait for the acknowledgement.

        Args:
            topic: The Kafka topic to publish to.
            key: Message key.
            value: Message value as dictionary.

        Raises:
            RuntimeError: If the producer is not started.
        """
        if not self._producer:
            raise RuntimeError("Producer not started")

        await self._producer.send_and_wait(
            topic=topic,
            key=key,
            value=value,
        )

        logger.debug("Message published to Kafka", topic=topic, key=key)


class EventPublisher:
    """
    Best-effort domain event publisher.

    Sends each event once. Failures never reach the caller; the forced
    search resync is the recovery path for lost events.
    """

    def __init__(
        self,
        producer: KafkaProducer,
        topic_prefix: str = DEFAULT_TOPIC_PREFIX,
    ) -> None:
        """
        Initialize the publisher.

        Args:
            producer: Started Kafka producer.
            topic_prefix: Prefix of the product topics.
        """
        self._producer = producer
        self._topic_prefix = topic_prefix

    async def publish(
        self,
        topic: str,
        payload: dict[str, Any],
        key: Optional[str] = None,
    ) -> bool:
        """
        Publish a payload to a topic.

        Args:
            topic: Destination topic.
            payload: JSON-compatible payload (datetimes and UUIDs allowed).
            key: Message key, usually the product id.

        Returns:
            True if the broker acknowledged the message, False otherwise.
        """
        try:
            await self._producer.publish_message(topic=topic, key=key, value=payload)
        except Exception as e:
            error = EventPublishError(topic, str(e))
            logger.error(
                error.message,
                topic=topic,
                key=key,
                error_type=type(e).__name__,
            )
            EVENTS_PUBLISHED.labels(topic=topic, status="error").inc()
            return False

        EVENTS_PUBLISHED.labels(topic=topic, status="success").inc()
        logger.info("Event published", topic=topic, key=key)
        return True

    async def publish_event(self, event: DomainEvent) -> bool:
        """
        Publish a domain event on its action topic, keyed by product id.

        Args:
            event: Event to publish.

        Returns:
            True if the broker acknowledged the message, False otherwise.
        """
        return await self.publish(
            event.topic(self._topic_prefix),
            event.payload,
            key=event.product_id,
        )
