"""
Prometheus Metrics for the catalog services.

Defines the metrics used by the product API, the audit trail, the event
publisher and the search index worker.
"""

from prometheus_client import Counter, Histogram, Gauge

# API
HTTP_REQUESTS_TOTAL = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code']
)

HTTP_REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Lifecycle
PRODUCT_MUTATIONS = Counter(
    'product_mutations_total',
    'Accepted product mutations',
    ['action']  # created, updated, approved, deleted
)

AUDIT_WRITE_FAILURES = Counter(
    'audit_write_failures_total',
    'Audit entries that could not be persisted',
    ['action']
)

# Kafka
EVENTS_PUBLISHED = Counter(
    'events_published_total',
    'Domain events handed to the broker',
    ['topic', 'status']  # status: success, error
)

LISTENER_MESSAGES = Counter(
    'listener_messages_total',
    'Messages processed by topic listeners',
    ['topic', 'status']  # status: success, error
)

LISTENER_STATE = Gauge(
    'listener_state',
    'Current listener state (0 disconnected, 1 connecting, 2 subscribed, '
    '3 reconnecting, 4 permanently failed, 5 stopped)',
    ['topic']
)

LISTENER_RECONNECTS = Counter(
    'listener_reconnects_total',
    'Listener reconnect attempts',
    ['topic']
)

# Search index
SEARCH_SYNC_RUNS = Counter(
    'search_sync_runs_total',
    'Search index sync runs',
    ['outcome']  # skipped, indexed, empty, not_ready, error, forced
)

SEARCH_DOCUMENTS_INDEXED = Counter(
    'search_documents_indexed_total',
    'Documents written to the search index',
    ['status']  # success, error
)

SEARCH_QUERY_DURATION = Histogram(
    'search_query_duration_seconds',
    'Search query duration',
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0]
)
