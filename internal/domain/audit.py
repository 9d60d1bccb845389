"""
Audit trail entities.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from .errors import DomainValidationError
from .product import utcnow


class AuditAction(str, Enum):
    """Mutations recorded in the audit trail."""

    CREATED = "created"
    UPDATED = "updated"
    APPROVED = "approved"
    DELETED = "deleted"


@dataclass
class AuditEntry:
    """
    One append-only record per accepted product mutation.

    Attributes:
        gtin: GTIN of the audited product.
        product_id: Storage id of the audited product.
        action: Recorded action.
        changed_by: ID of the acting user.
        changes: Field-level diff (field -> {from, to}), when both snapshots exist.
        previous_data: Snapshot before the mutation (None for 'created').
        new_data: Snapshot after the mutation (None for 'deleted').
        metadata: Free-form context; always carries 'source' and 'timestamp'.
        id: Entry identifier.
        changed_at: Timestamp of the mutation.
    """
    gtin: str
    product_id: UUID
    action: AuditAction
    changed_by: str
    changes: Optional[dict[str, Any]] = None
    previous_data: Optional[dict[str, Any]] = None
    new_data: Optional[dict[str, Any]] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: UUID = field(default_factory=uuid4)
    changed_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        """Validate domain invariants after initialization."""
        try:
            self.action = AuditAction(self.action)
        except ValueError:
            raise DomainValidationError(f"Unknown audit action '{self.action}'")

        if not self.changed_by:
            raise DomainValidationError("changed_by is required")
        if self.action == AuditAction.CREATED and self.previous_data is not None:
            raise DomainValidationError("A 'created' entry cannot carry previous data")
        if self.action == AuditAction.DELETED and self.new_data is not None:
            raise DomainValidationError("A 'deleted' entry cannot carry new data")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": str(self.id),
            "gtin": self.gtin,
            "product_id": str(self.product_id),
            "action": self.action.value,
            "changed_by": self.changed_by,
            "changed_at": self.changed_at.isoformat(),
            "changes": self.changes,
            "previous_data": self.previous_data,
            "new_data": self.new_data,
            "metadata": self.metadata,
        }


@dataclass
class AuditActionStats:
    """Per-action counters for one product's history."""

    count: int = 0
    last_change: Optional[datetime] = None


@dataclass
class AuditStats:
    """Summary of a product's audit history."""

    total_changes: int = 0
    by_action: dict[str, AuditActionStats] = field(default_factory=dict)


@dataclass
class AuditFilters:
    """
    Filters for audit trail queries.

    Attributes:
        gtin: Only entries for this GTIN.
        action: Only entries with this action.
        changed_by: Only entries by this user.
        name: Case-insensitive match on the product name before or after.
        date_from: Only entries at or after this time.
        date_to: Only entries at or before this time.
        limit: Page size.
        offset: Number of entries to skip.
    """
    gtin: Optional[str] = None
    action: Optional[AuditAction] = None
    changed_by: Optional[str] = None
    name: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    limit: int = 10
    offset: int = 0
