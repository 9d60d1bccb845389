"""
PostgreSQL infrastructure package.
"""
from .repository import PostgresProductRepository, create_pool
from .user_repository import PostgresUserRepository
from .audit_repository import PostgresAuditRepository
from .search_index import PostgresSearchIndex

__all__ = [
    "PostgresProductRepository",
    "PostgresUserRepository",
    "PostgresAuditRepository",
    "PostgresSearchIndex",
    "create_pool",
]
