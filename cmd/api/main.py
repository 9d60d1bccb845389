"""
FastAPI Application Entry Point.

REST API server for the product catalog: product lifecycle, audit trail and
the internal query interface used by the search index worker.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from config.settings import get_settings
from internal.infrastructure.kafka.producer import EventPublisher, KafkaProducer
from internal.infrastructure.postgres import (
    PostgresAuditRepository,
    PostgresProductRepository,
    PostgresUserRepository,
    create_pool,
)
from internal.transport.http.middleware import MetricsMiddleware, RequestContextMiddleware
from internal.transport.http.system import create_system_router
from internal.transport.http.v1.handlers import router, set_dependencies
from internal.usecase.audit_history import AuditHistoryService
from internal.usecase.audit_trail import AuditTrailWriter
from internal.usecase.product_lifecycle import ProductLifecycleService
from pkg.logger.logger import get_logger, setup_logging


load_dotenv()
settings = get_settings()

# Setup logging
setup_logging(
    level=settings.log_level,
    json_format=settings.json_logs,
    service="product-api",
)

logger = get_logger(__name__)


# Global resources
db_pool = None
kafka_producer: Optional[KafkaProducer] = None
product_repository: Optional[PostgresProductRepository] = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown of resources.
    """
    global db_pool, kafka_producer, product_repository

    logger.info("Starting Product API...")

    # Initialize database pool
    try:
        db_pool = await create_pool(
            settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
        )
        logger.info("Database pool created")
    except Exception as e:
        logger.error("Failed to create database pool", error=str(e))
        raise

    # Initialize Kafka producer; events are best effort, so the API starts without it
    kafka_producer = KafkaProducer(
        bootstrap_servers=settings.kafka_bootstrap_servers,
        client_id=settings.kafka_client_id,
    )
    try:
        await kafka_producer.start()
    except Exception as e:
        logger.warning("Failed to start Kafka producer, events will be dropped", error=str(e))

    # Create repositories and services
    product_repository = PostgresProductRepository(db_pool)
    audit_repository = PostgresAuditRepository(db_pool)
    user_repository = PostgresUserRepository(db_pool)

    publisher = EventPublisher(kafka_producer, topic_prefix=settings.kafka_topic_prefix)
    audit_writer = AuditTrailWriter(audit_repository)

    lifecycle = ProductLifecycleService(
        repository=product_repository,
        users=user_repository,
        audit=audit_writer,
        publisher=publisher,
        history=audit_repository,
    )
    history = AuditHistoryService(audit=audit_repository, products=product_repository)

    set_dependencies(
        lifecycle=lifecycle,
        history=history,
        service_token=settings.service_token,
    )

    logger.info("Product API started successfully")

    yield

    # Shutdown
    logger.info("Shutting down Product API...")

    if kafka_producer:
        await kafka_producer.stop()

    if db_pool:
        await db_pool.close()

    logger.info("Product API shutdown complete")


def _readiness():
    return product_repository.ping if product_repository else None


# Create FastAPI application
app = FastAPI(
    title="Product Catalog API",
    description="Product lifecycle with approval workflow and audit trail",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Metrics middleware
app.add_middleware(MetricsMiddleware)

# Request ID middleware
app.add_middleware(RequestContextMiddleware)


# Include routers
app.include_router(create_system_router("product-api", readiness=_readiness))
app.include_router(router)


# Root endpoint
@app.get("/")
async def root() -> dict:
    """Root endpoint with service information."""
    return {
        "service": "product-api",
        "version": "1.0.0",
        "status": "running",
    }


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
    )
