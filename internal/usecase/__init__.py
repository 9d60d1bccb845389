"""
Use case package for the catalog services.

Contains business logic and use cases.
"""
from .audit_trail import AuditTrailWriter
from .product_lifecycle import ProductLifecycleService
from .audit_history import AuditHistoryService
from .index_events import IndexEventHandler, build_dispatch_table
from .index_sync import IndexSyncCoordinator
from .search_products import (
    SearchProductsUseCase,
    SearchProductsInput,
    SearchProductsOutput,
)

__all__ = [
    "AuditTrailWriter",
    "ProductLifecycleService",
    "AuditHistoryService",
    "IndexEventHandler",
    "build_dispatch_table",
    "IndexSyncCoordinator",
    "SearchProductsUseCase",
    "SearchProductsInput",
    "SearchProductsOutput",
]
