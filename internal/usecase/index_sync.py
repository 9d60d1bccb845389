"""
Index Sync Coordinator.

Backfills the search index from the product service at startup and rebuilds
it on demand. The forced resync is the recovery path for lost events.
"""
import asyncio
from typing import Any, Awaitable, Callable, Protocol

from internal.domain.product import ProductStatus
from internal.domain.search import SearchDocument
from internal.infrastructure.metrics.prometheus import (
    SEARCH_DOCUMENTS_INDEXED,
    SEARCH_SYNC_RUNS,
)
from internal.usecase.index_events import SearchIndex
from pkg.logger.logger import get_logger
from pkg.resilience.retry import RetryPolicy, wait_until


logger = get_logger(__name__)


class ProductSource(Protocol):
    """Protocol for the product service query interface."""

    async def is_healthy(self) -> bool:
        """Return True if the product service is live."""
        ...

    async def list_products(self) -> list[dict[str, Any]]:
        """Fetch every product snapshot."""
        ...


class IndexSyncCoordinator:
    """
    Keeps the search index populated from the system of record.

    Results are plain dictionaries so they can be logged and returned over
    HTTP as they are.
    """

    def __init__(
        self,
        index: SearchIndex,
        products: ProductSource,
        health_policy: RetryPolicy = RetryPolicy(max_attempts=10, delay_seconds=2.0),
        index_poll_interval: float = 30.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the coordinator.

        Args:
            index: Search index store.
            products: Product service query interface.
            health_policy: Polling policy for product service readiness.
            index_poll_interval: Seconds between index store reachability checks.
            sleep: Sleep coroutine (injectable for tests).
        """
        self._index = index
        self._products = products
        self._health_policy = health_policy
        self._index_poll_interval = index_poll_interval
        self._sleep = sleep

    async def wait_for_index(self) -> None:
        """
        Poll the index store until it answers.

        Polls at a fixed interval with no attempt limit; cancel the awaiting
        task to give up.
        """
        attempt = 0
        while not await self._index.ping():
            attempt += 1
            if attempt == 1:
                logger.warning(
                    "Search index not reachable, polling",
                    interval_seconds=self._index_poll_interval,
                )
            else:
                logger.info("Search index still not reachable", attempt=attempt)
            await self._sleep(self._index_poll_interval)

        if attempt:
            logger.info("Search index reachable", attempts=attempt + 1)

    async def run_startup_sync(self) -> dict[str, Any]:
        """Wait for the index store to become reachable, then run the backfill."""
        await self.wait_for_index()
        return await self.sync_existing_products()

    async def sync_existing_products(self) -> dict[str, Any]:
        """
        Backfill the index if it is empty.

        Returns:
            {"skipped": True, "count": N} if documents already exist,
            {"error": ...} if the product service is not ready or the run failed,
            {"indexed": 0} if there are no products, otherwise
            {"indexed", "errors", "total", "filtered"}.
        """
        try:
            await self._index.ensure_index()

            count = await self._index.count()
            if count > 0:
                logger.info("Search index already populated, skipping backfill", count=count)
                SEARCH_SYNC_RUNS.labels(outcome="skipped").inc()
                return {"skipped": True, "count": count}

            return await self._backfill()
        except Exception as e:
            logger.error("Search index sync failed", error=str(e), error_type=type(e).__name__)
            SEARCH_SYNC_RUNS.labels(outcome="error").inc()
            return {"error": str(e)}

    async def force_resync(self) -> dict[str, Any]:
        """
        Delete every document and backfill unconditionally.

        Returns:
            Backfill result plus the number of deleted documents.

        Raises:
            Exception: Any index or product service failure.
        """
        await self._index.ensure_index()
        deleted = await self._index.delete_all()
        logger.warning("Search index cleared for forced resync", deleted=deleted)
        SEARCH_SYNC_RUNS.labels(outcome="forced").inc()

        result = await self._backfill()
        return {"deleted": deleted, **result}

    async def _backfill(self) -> dict[str, Any]:
        ready = await wait_until(
            self._products.is_healthy,
            policy=self._health_policy,
            name="product-service",
            sleep=self._sleep,
        )
        if not ready:
            logger.error("Product service not ready, backfill aborted")
            SEARCH_SYNC_RUNS.labels(outcome="not_ready").inc()
            return {"error": "Product service not ready"}

        products = await self._products.list_products()
        if not products:
            logger.info("No products to index")
            SEARCH_SYNC_RUNS.labels(outcome="empty").inc()
            return {"indexed": 0}

        published = [
            snapshot for snapshot in products
            if snapshot.get("status") == ProductStatus.PUBLISHED.value
        ]

        indexed = 0
        errors = 0
        for snapshot in published:
            try:
                await self._index.upsert(SearchDocument.from_snapshot(snapshot))
                indexed += 1
                SEARCH_DOCUMENTS_INDEXED.labels(status="success").inc()
            except Exception as e:
                errors += 1
                SEARCH_DOCUMENTS_INDEXED.labels(status="error").inc()
                logger.error(
                    "Failed to index product",
                    product_id=snapshot.get("id"),
                    gtin=snapshot.get("gtin"),
                    error=str(e),
                )

        result = {
            "indexed": indexed,
            "errors": errors,
            "total": len(published),
            "filtered": len(products) - len(published),
        }
        logger.info("Search index backfill completed", **result)
        SEARCH_SYNC_RUNS.labels(outcome="indexed").inc()
        return result
