"""
Audit Trail Writer.

Appends one audit entry per accepted product mutation. Writing the entry is
non-fatal: a failure is logged and counted, and the mutation still succeeds.
"""
from typing import Any, Optional, Protocol
from uuid import UUID

from internal.domain.audit import AuditAction, AuditEntry
from internal.domain.changes import detect_changes, sanitize_snapshot, serialize_changes
from internal.domain.errors import AuditWriteError
from internal.domain.product import utcnow
from internal.infrastructure.metrics.prometheus import AUDIT_WRITE_FAILURES
from pkg.logger.logger import get_logger


logger = get_logger(__name__)


class AuditRepository(Protocol):
    """Protocol for the append-only audit store."""

    async def append(self, entry: AuditEntry) -> AuditEntry:
        """Insert an audit entry."""
        ...


class AuditTrailWriter:
    """
    Builds and stores audit entries.

    Snapshots are sanitized before storage and diffed when both exist.
    """

    def __init__(self, repository: AuditRepository, source: str = "http-api") -> None:
        """
        Initialize the writer.

        Args:
            repository: Audit store.
            source: Value stamped into every entry's metadata.
        """
        self._repository = repository
        self._source = source

    async def record(
        self,
        gtin: str,
        product_id: UUID,
        action: AuditAction,
        actor_id: str,
        before: Optional[dict[str, Any]],
        after: Optional[dict[str, Any]],
        metadata: Optional[dict[str, Any]] = None,
    ) -> Optional[AuditEntry]:
        """
        Record one mutation.

        Args:
            gtin: GTIN of the mutated product.
            product_id: Storage id of the mutated product.
            action: Mutation kind.
            actor_id: ID of the acting user.
            before: Snapshot before the mutation (None for creations).
            after: Snapshot after the mutation (None for deletions).
            metadata: Extra context merged into the entry metadata.

        Returns:
            The stored entry, or None if it could not be written.
        """
        try:
            previous_data = sanitize_snapshot(before) if before is not None else None
            new_data = sanitize_snapshot(after) if after is not None else None

            changes = None
            if previous_data is not None and new_data is not None:
                changes = serialize_changes(detect_changes(previous_data, new_data))

            entry = AuditEntry(
                gtin=gtin,
                product_id=product_id,
                action=action,
                changed_by=actor_id,
                changes=changes,
                previous_data=previous_data,
                new_data=new_data,
                metadata={
                    "source": self._source,
                    "timestamp": utcnow().isoformat(),
                    **(metadata or {}),
                },
            )
            stored = await self._repository.append(entry)
        except Exception as e:
            action_name = getattr(action, "value", action)
            error = AuditWriteError(action_name, gtin, str(e))
            logger.error(
                error.message,
                gtin=gtin,
                action=action_name,
                actor_id=actor_id,
                product_id=str(product_id),
                error_type=type(e).__name__,
            )
            AUDIT_WRITE_FAILURES.labels(action=action_name).inc()
            return None

        logger.debug(
            "Audit entry recorded",
            gtin=gtin,
            action=stored.action.value,
            actor_id=actor_id,
            changed_fields=sorted(stored.changes) if stored.changes else [],
        )
        return stored
