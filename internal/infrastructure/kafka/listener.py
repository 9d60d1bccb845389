"""
Generic topic listener.

One TopicListener serves one topic with one handler: subscribe, decode each
message independently, dispatch, commit, and reconnect on transport errors
with a bounded number of fixed-delay attempts.
"""
import asyncio
import json
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from aiokafka import AIOKafkaConsumer
from aiokafka.errors import KafkaError

from internal.domain.errors import ListenerConnectionError, ListenerProcessingError
from internal.infrastructure.metrics.prometheus import (
    LISTENER_MESSAGES,
    LISTENER_RECONNECTS,
    LISTENER_STATE,
)
from pkg.logger.logger import get_logger
from pkg.resilience.retry import RetryPolicy


logger = get_logger(__name__)


MessageHandler = Callable[[dict], Awaitable[None]]
ConsumerFactory = Callable[[str], Any]

MAX_LOGGED_PAYLOAD = 1000


class ListenerState(str, Enum):
    """Listener lifecycle states."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    RECONNECTING = "reconnecting"
    PERMANENTLY_FAILED = "permanently_failed"
    STOPPED = "stopped"


_STATE_GAUGE_VALUES = {state: index for index, state in enumerate(ListenerState)}


def decode_message(raw: Any) -> dict:
    """
    Decode a message value into a JSON object.

    Args:
        raw: Raw message value.

    Returns:
        Decoded payload.

    Raises:
        ValueError: If the value is empty, not UTF-8 JSON, or not an object.
    """
    if raw is None:
        raise ValueError("Empty message")
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")

    payload = json.loads(raw)
    if not isinstance(payload, dict):
        raise ValueError(f"Expected a JSON object, got {type(payload).__name__}")
    return payload


def _truncate(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    text = str(raw)
    if len(text) > MAX_LOGGED_PAYLOAD:
        return text[:MAX_LOGGED_PAYLOAD] + "..."
    return text


class TopicListener:
    """
    Subscription engine parameterized by a (topic, handler) pair.

    Messages are handled strictly one at a time. A message that fails to
    decode or handle is logged and committed; the subscription goes on.
    """

    def __init__(
        self,
        topic: str,
        handler: MessageHandler,
        bootstrap_servers: str = "localhost:9092",
        group_id: str = "search-index-worker",
        client_id: str = "search-index-worker",
        policy: RetryPolicy = RetryPolicy(),
        consumer_factory: Optional[ConsumerFactory] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the listener.

        Args:
            topic: Topic to subscribe to.
            handler: Async function receiving each decoded payload.
            bootstrap_servers: Comma-separated list of Kafka brokers.
            group_id: Consumer group identifier.
            client_id: Client identifier for the consumer.
            policy: Reconnect policy (attempts and fixed delay).
            consumer_factory: Builds a consumer for a topic (injectable for tests).
            sleep: Sleep coroutine (injectable for tests).
        """
        self.topic = topic
        self._handler = handler
        self._bootstrap_servers = bootstrap_servers
        self._group_id = group_id
        self._client_id = client_id
        self._policy = policy
        self._consumer_factory = consumer_factory or self._create_consumer
        self._sleep = sleep
        self._attempts = 0
        self._stopping = False
        self._state = ListenerState.DISCONNECTED
        LISTENER_STATE.labels(topic=topic).set(_STATE_GAUGE_VALUES[self._state])

    @property
    def state(self) -> ListenerState:
        """Current lifecycle state."""
        return self._state

    @property
    def attempts(self) -> int:
        """Consecutive failed connection attempts."""
        return self._attempts

    def _set_state(self, state: ListenerState) -> None:
        if state != self._state:
            logger.info(
                "Listener state changed",
                topic=self.topic,
                previous=self._state.value,
                state=state.value,
            )
        self._state = state
        LISTENER_STATE.labels(topic=self.topic).set(_STATE_GAUGE_VALUES[state])

    def _create_consumer(self, topic: str) -> AIOKafkaConsumer:
        return AIOKafkaConsumer(
            topic,
            bootstrap_servers=self._bootstrap_servers,
            group_id=self._group_id,
            client_id=self._client_id,
            auto_offset_reset="earliest",
            enable_auto_commit=False,
        )

    async def run(self) -> None:
        """
        Run the subscription until stopped or permanently failed.

        Cancellation stops the listener without draining.
        """
        try:
            while not self._stopping:
                self._set_state(ListenerState.CONNECTING)
                consumer = None
                try:
                    consumer = self._consumer_factory(self.topic)
                    await consumer.start()
                    self._attempts = 0
                    self._set_state(ListenerState.SUBSCRIBED)
                    await self._consume(consumer)
                    if self._stopping:
                        break
                    reason = "Subscription ended unexpectedly"
                except (KafkaError, OSError) as e:
                    if self._stopping:
                        break
                    reason = str(e) or type(e).__name__
                except Exception as e:
                    if self._stopping:
                        break
                    logger.error(
                        "Unexpected listener error",
                        topic=self.topic,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    reason = f"{type(e).__name__}: {e}"
                finally:
                    if consumer is not None:
                        await self._close(consumer)

                if not await self._on_connection_lost(reason):
                    return
        except asyncio.CancelledError:
            self._set_state(ListenerState.STOPPED)
            raise

        self._set_state(ListenerState.STOPPED)

    async def _on_connection_lost(self, reason: str) -> bool:
        """
        Count a failed attempt and wait before the next one.

        Returns:
            False once the policy is exhausted.
        """
        self._attempts += 1
        error = ListenerConnectionError(self.topic, self._attempts, reason)

        if self._policy.exhausted(self._attempts):
            self._set_state(ListenerState.PERMANENTLY_FAILED)
            logger.critical(
                "Listener permanently failed, restart required",
                topic=self.topic,
                attempts=self._attempts,
                error=error.message,
            )
            return False

        logger.warning(
            error.message,
            topic=self.topic,
            attempt=self._attempts,
            max_attempts=self._policy.max_attempts,
            retry_in_seconds=self._policy.delay_seconds,
        )
        LISTENER_RECONNECTS.labels(topic=self.topic).inc()
        self._set_state(ListenerState.RECONNECTING)
        await self._sleep(self._policy.delay_seconds)
        return True

    async def _consume(self, consumer: Any) -> None:
        async for msg in consumer:
            await self._process_message(msg)
            await consumer.commit()
            if self._stopping:
                return

    async def _process_message(self, msg: Any) -> None:
        """
        Decode and handle a single message; failures are logged, not raised.

        Args:
            msg: Kafka message to process.
        """
        try:
            payload = decode_message(msg.value)
            await self._handler(payload)
        except Exception as e:
            error = ListenerProcessingError(self.topic, str(e))
            logger.error(
                error.message,
                topic=self.topic,
                partition=getattr(msg, "partition", None),
                offset=getattr(msg, "offset", None),
                attempts=self._attempts,
                error_type=type(e).__name__,
                raw_payload=_truncate(getattr(msg, "value", None)),
            )
            LISTENER_MESSAGES.labels(topic=self.topic, status="error").inc()
            return

        LISTENER_MESSAGES.labels(topic=self.topic, status="success").inc()
        logger.debug(
            "Message handled",
            topic=self.topic,
            partition=getattr(msg, "partition", None),
            offset=getattr(msg, "offset", None),
        )

    async def _close(self, consumer: Any) -> None:
        try:
            await consumer.stop()
        except (KafkaError, OSError) as e:
            logger.warning("Error while closing consumer", topic=self.topic, error=str(e))

    def stop(self) -> None:
        """Ask the listener to stop after the current message."""
        self._stopping = True


class ListenerGroup:
    """
    Runs one task per listener.

    Listeners fail and reconnect independently of each other.
    """

    def __init__(self, listeners: list[TopicListener]) -> None:
        """
        Initialize the group.

        Args:
            listeners: Listeners to run.
        """
        self._listeners = listeners
        self._tasks: list[asyncio.Task] = []

    @classmethod
    def from_dispatch_table(
        cls,
        table: dict[str, MessageHandler],
        **listener_kwargs: Any,
    ) -> "ListenerGroup":
        """
        Build one listener per (topic, handler) entry.

        Args:
            table: Mapping of topic to handler.
            **listener_kwargs: Shared TopicListener arguments.

        Returns:
            ListenerGroup.
        """
        return cls([TopicListener(topic, handler, **listener_kwargs) for topic, handler in table.items()])

    @property
    def listeners(self) -> list[TopicListener]:
        """Listeners in this group."""
        return list(self._listeners)

    def states(self) -> dict[str, ListenerState]:
        """Return the state of every listener by topic."""
        return {listener.topic: listener.state for listener in self._listeners}

    def start(self) -> None:
        """Start every listener in its own task."""
        self._tasks = [
            asyncio.create_task(listener.run(), name=f"listener:{listener.topic}")
            for listener in self._listeners
        ]
        logger.info("Listeners started", topics=[l.topic for l in self._listeners])

    async def wait(self) -> None:
        """Wait until every listener has finished."""
        if self._tasks:
            await asyncio.gather(*self._tasks)

    async def stop(self) -> None:
        """Stop all listeners without draining in-flight messages."""
        for listener in self._listeners:
            listener.stop()
        for task in self._tasks:
            task.cancel()

        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for listener, result in zip(self._listeners, results):
            if isinstance(result, Exception):
                logger.error(
                    "Listener task failed",
                    topic=listener.topic,
                    error=str(result),
                )
        self._tasks = []
        logger.info("Listeners stopped")
