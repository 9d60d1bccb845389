"""Rebuild the search index from the product service."""
import asyncio
import sys

from dotenv import load_dotenv

from config.settings import get_settings
from internal.infrastructure.postgres import PostgresSearchIndex, create_pool
from internal.infrastructure.product_service import ProductServiceClient
from internal.usecase.index_sync import IndexSyncCoordinator
from pkg.logger.logger import get_logger, setup_logging
from pkg.resilience.retry import RetryPolicy


load_dotenv()
settings = get_settings()

setup_logging(
    level=settings.log_level,
    json_format=settings.json_logs,
    service="resync-search-index",
)

logger = get_logger(__name__)


async def resync_search_index() -> dict:
    logger.info("Starting forced search index resync")

    pool = await create_pool(settings.search_database_url, min_size=1, max_size=2)
    client = ProductServiceClient(
        base_url=settings.product_service_url,
        service_token=settings.service_token,
    )
    coordinator = IndexSyncCoordinator(
        index=PostgresSearchIndex(pool, text_config=settings.search_text_config),
        products=client,
        health_policy=RetryPolicy(
            max_attempts=settings.sync_health_max_attempts,
            delay_seconds=settings.sync_health_delay_seconds,
        ),
    )

    try:
        result = await coordinator.force_resync()
        logger.info("Forced search index resync completed", **result)
        return result
    finally:
        await client.close()
        await pool.close()


def main() -> None:
    try:
        result = asyncio.run(resync_search_index())
    except Exception as e:
        logger.error("Forced search index resync failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)

    if "error" in result:
        sys.exit(1)


if __name__ == "__main__":
    main()
