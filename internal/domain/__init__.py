"""
Domain package for the catalog service.

Contains domain entities, value objects, and domain errors.
"""
from .product import (
    Product,
    ProductStatus,
    WeightUnit,
    UserRef,
    ProductDetails,
    CONTROL_FIELDS,
    IMMUTABLE_FIELDS,
    PATCHABLE_FIELDS,
)
from .value_objects import (
    Actor,
    Role,
    PERMISSIONS,
    has_permission,
    is_elevated,
    validate_gtin,
    is_valid_gtin,
    calculate_check_digit,
    format_gtin,
)
from .changes import UNDEFINED, detect_changes, sanitize_snapshot, serialize_changes
from .audit import AuditAction, AuditEntry, AuditFilters, AuditStats, AuditActionStats
from .events import DomainEvent, EventType, all_topics
from .search import SearchDocument, SearchResult
from .errors import (
    DomainError,
    DomainValidationError,
    PermissionDeniedError,
    ProductNotFoundError,
    ConflictError,
    ProductAlreadyExistsError,
    InvalidStatusTransitionError,
    AuditWriteError,
    EventPublishError,
    ListenerProcessingError,
    ListenerConnectionError,
)

__all__ = [
    "Product",
    "ProductStatus",
    "WeightUnit",
    "UserRef",
    "ProductDetails",
    "CONTROL_FIELDS",
    "IMMUTABLE_FIELDS",
    "PATCHABLE_FIELDS",
    "Actor",
    "Role",
    "PERMISSIONS",
    "has_permission",
    "is_elevated",
    "validate_gtin",
    "is_valid_gtin",
    "calculate_check_digit",
    "format_gtin",
    "UNDEFINED",
    "detect_changes",
    "sanitize_snapshot",
    "serialize_changes",
    "AuditAction",
    "AuditEntry",
    "AuditFilters",
    "AuditStats",
    "AuditActionStats",
    "DomainEvent",
    "EventType",
    "all_topics",
    "SearchDocument",
    "SearchResult",
    # Errors
    "DomainError",
    "DomainValidationError",
    "PermissionDeniedError",
    "ProductNotFoundError",
    "ConflictError",
    "ProductAlreadyExistsError",
    "InvalidStatusTransitionError",
    "AuditWriteError",
    "EventPublishError",
    "ListenerProcessingError",
    "ListenerConnectionError",
]
