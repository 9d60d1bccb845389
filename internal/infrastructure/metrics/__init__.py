"""
Metrics infrastructure package.
"""
from .prometheus import (
    HTTP_REQUESTS_TOTAL,
    HTTP_REQUEST_DURATION,
    PRODUCT_MUTATIONS,
    AUDIT_WRITE_FAILURES,
    EVENTS_PUBLISHED,
    LISTENER_MESSAGES,
    LISTENER_STATE,
    LISTENER_RECONNECTS,
    SEARCH_SYNC_RUNS,
    SEARCH_DOCUMENTS_INDEXED,
    SEARCH_QUERY_DURATION,
)

__all__ = [
    "HTTP_REQUESTS_TOTAL",
    "HTTP_REQUEST_DURATION",
    "PRODUCT_MUTATIONS",
    "AUDIT_WRITE_FAILURES",
    "EVENTS_PUBLISHED",
    "LISTENER_MESSAGES",
    "LISTENER_STATE",
    "LISTENER_RECONNECTS",
    "SEARCH_SYNC_RUNS",
    "SEARCH_DOCUMENTS_INDEXED",
    "SEARCH_QUERY_DURATION",
]
