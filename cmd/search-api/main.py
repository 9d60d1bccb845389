"""
Search API Entry Point.

REST API server for the search index: full-text queries, document lookup and
the manual resync trigger.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from config.settings import get_settings
from internal.infrastructure.postgres import PostgresSearchIndex, create_pool
from internal.infrastructure.product_service import ProductServiceClient
from internal.transport.http.middleware import MetricsMiddleware, RequestContextMiddleware
from internal.transport.http.system import create_system_router
from internal.transport.http.v1.search import router, set_search_dependencies
from internal.usecase.index_sync import IndexSyncCoordinator
from internal.usecase.search_products import SearchProductsUseCase
from pkg.logger.logger import get_logger, setup_logging
from pkg.resilience.retry import RetryPolicy


load_dotenv()
settings = get_settings()

# Setup logging
setup_logging(
    level=settings.log_level,
    json_format=settings.json_logs,
    service="search-api",
)

logger = get_logger(__name__)


# Global resources
db_pool = None
product_client: Optional[ProductServiceClient] = None
search_index: Optional[PostgresSearchIndex] = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown of resources.
    """
    global db_pool, product_client, search_index

    logger.info("Starting Search API...")

    try:
        db_pool = await create_pool(
            settings.search_database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
        )
        logger.info("Search database pool created")
    except Exception as e:
        logger.error("Failed to create search database pool", error=str(e))
        raise

    search_index = PostgresSearchIndex(db_pool, text_config=settings.search_text_config)
    await search_index.ensure_index()

    product_client = ProductServiceClient(
        base_url=settings.product_service_url,
        service_token=settings.service_token,
    )

    coordinator = IndexSyncCoordinator(
        index=search_index,
        products=product_client,
        health_policy=RetryPolicy(
            max_attempts=settings.sync_health_max_attempts,
            delay_seconds=settings.sync_health_delay_seconds,
        ),
    )

    set_search_dependencies(
        search_use_case=SearchProductsUseCase(search_index),
        coordinator=coordinator,
        service_token=settings.service_token,
    )

    logger.info("Search API started successfully")

    yield

    logger.info("Shutting down Search API...")

    if product_client:
        await product_client.close()

    if db_pool:
        await db_pool.close()

    logger.info("Search API shutdown complete")


def _readiness():
    return search_index.ping if search_index else None


app = FastAPI(
    title="Product Search API",
    description="Full-text search over published products",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(create_system_router("search-api", readiness=_readiness))
app.include_router(router)


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
    )
