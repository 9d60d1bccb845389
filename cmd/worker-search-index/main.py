"""
Search Index Worker Entry Point.

Waits for the search index store, backfills it from the product service, and
keeps it in sync by listening to the product topics.
"""
import asyncio
import signal
from typing import Optional

from dotenv import load_dotenv

from config.settings import get_settings
from internal.infrastructure.kafka.listener import ListenerGroup, ListenerState
from internal.infrastructure.postgres import PostgresSearchIndex, create_pool
from internal.infrastructure.product_service import ProductServiceClient
from internal.usecase.index_events import IndexEventHandler, build_dispatch_table
from internal.usecase.index_sync import IndexSyncCoordinator
from pkg.logger.logger import setup_logging, get_logger
from pkg.resilience.retry import RetryPolicy


load_dotenv()
settings = get_settings()

# Setup logging
setup_logging(
    level=settings.log_level,
    json_format=settings.json_logs,
    service="search-index-worker",
)

logger = get_logger(__name__)


class SearchIndexWorker:
    """
    Worker keeping the search index eventually consistent.

    Listeners start only after the startup sync has run, so the backfill does
    not race the first events. Until the index store is reachable the worker
    keeps polling it and consumes nothing; unread events wait in Kafka.
    """

    def __init__(self) -> None:
        """Initialize the worker."""
        self._running = False
        self._db_pool = None
        self._product_client: Optional[ProductServiceClient] = None
        self._listeners: Optional[ListenerGroup] = None
        self._startup: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Start the worker."""
        logger.info("Starting Search Index Worker...")

        self._running = True

        # Initialize search database pool
        try:
            self._db_pool = await create_pool(
                settings.search_database_url,
                min_size=settings.db_pool_min_size,
                max_size=settings.db_pool_max_size,
            )
            logger.info("Search database pool created")
        except Exception as e:
            logger.error("Failed to create search database pool", error=str(e))
            raise

        index = PostgresSearchIndex(self._db_pool, text_config=settings.search_text_config)
        self._product_client = ProductServiceClient(
            base_url=settings.product_service_url,
            service_token=settings.service_token,
        )

        coordinator = IndexSyncCoordinator(
            index=index,
            products=self._product_client,
            health_policy=RetryPolicy(
                max_attempts=settings.sync_health_max_attempts,
                delay_seconds=settings.sync_health_delay_seconds,
            ),
            index_poll_interval=settings.index_poll_interval_seconds,
        )

        # Blocks until the index store is reachable; stop() cancels it
        self._startup = asyncio.create_task(coordinator.run_startup_sync())
        try:
            result = await self._startup
        except asyncio.CancelledError:
            logger.info("Startup sync cancelled")
            return
        logger.info("Startup sync finished", **result)

        # Initialize listeners, one per product topic
        handler = IndexEventHandler(index)
        self._listeners = ListenerGroup.from_dispatch_table(
            build_dispatch_table(handler, prefix=settings.kafka_topic_prefix),
            bootstrap_servers=settings.kafka_bootstrap_servers,
            group_id=settings.kafka_group_id,
            client_id="search-index-worker",
            policy=RetryPolicy(
                max_attempts=settings.listener_max_reconnect_attempts,
                delay_seconds=settings.listener_reconnect_delay_seconds,
            ),
        )
        self._listeners.start()

        logger.info("Search Index Worker started successfully")

        try:
            await self._listeners.wait()
        except asyncio.CancelledError:
            logger.info("Worker consumption cancelled")

        failed = [
            topic for topic, state in self._listeners.states().items()
            if state == ListenerState.PERMANENTLY_FAILED
        ]
        if failed and self._running:
            logger.critical("Listeners permanently failed", topics=failed)

    async def stop(self) -> None:
        """Stop the worker."""
        if not self._running:
            return

        logger.info("Stopping Search Index Worker...")

        self._running = False

        if self._startup and not self._startup.done():
            self._startup.cancel()

        if self._listeners:
            await self._listeners.stop()

        if self._product_client:
            await self._product_client.close()

        if self._db_pool:
            await self._db_pool.close()

        logger.info("Search Index Worker stopped")


async def main() -> None:
    """Main entry point."""
    worker = SearchIndexWorker()

    # Handle shutdown signals
    loop = asyncio.get_running_loop()

    def signal_handler() -> None:
        logger.info("Received shutdown signal")
        asyncio.create_task(worker.stop())

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await worker.start()
    except Exception as e:
        logger.error("Worker failed", error=str(e))
        await worker.stop()
        raise

    await worker.stop()


if __name__ == "__main__":
    asyncio.run(main())
