"""
Search-side projection of products.

The search index owns these documents; the product side only knows the event
contract they are built from.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .errors import DomainValidationError


@dataclass
class SearchDocument:
    """
    Flattened product projection stored in the search index.

    Attributes:
        id: Product storage id, the document key.
        gtin: GTIN.
        name: Product name (full-text).
        description: Product description (full-text).
        brand: Brand (full-text).
        manufacturer: Manufacturer (full-text).
        net_weight: Net weight.
        net_weight_unit: Unit keyword.
        status: Status keyword.
        created_by_id: Creator id.
        approved_by_id: Approver id.
        created_at: Creation timestamp.
        updated_at: Update timestamp.
        approved_at: Approval timestamp.
    """
    id: str
    gtin: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    brand: Optional[str] = None
    manufacturer: Optional[str] = None
    net_weight: Optional[float] = None
    net_weight_unit: Optional[str] = None
    status: Optional[str] = None
    created_by_id: Optional[str] = None
    approved_by_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None

    @classmethod
    def from_snapshot(cls, snapshot: dict[str, Any]) -> "SearchDocument":
        """
        Project a product snapshot into a search document.

        Accepts both the denormalized form (creator and approver as objects)
        and the flat form (plain ids). Timestamps may be ISO strings.

        Args:
            snapshot: Product snapshot from an event or the query interface.

        Returns:
            SearchDocument.

        Raises:
            DomainValidationError: If the snapshot has no id.
        """
        document_id = extract_document_id(snapshot)
        if document_id is None:
            raise DomainValidationError("Product snapshot has no id")

        net_weight = snapshot.get("net_weight")
        return cls(
            id=document_id,
            gtin=snapshot.get("gtin"),
            name=snapshot.get("name"),
            description=snapshot.get("description"),
            brand=snapshot.get("brand"),
            manufacturer=snapshot.get("manufacturer"),
            net_weight=float(net_weight) if net_weight is not None else None,
            net_weight_unit=snapshot.get("net_weight_unit"),
            status=snapshot.get("status"),
            created_by_id=_reference_id(snapshot, "created_by"),
            approved_by_id=_reference_id(snapshot, "approved_by"),
            created_at=parse_timestamp(snapshot.get("created_at")),
            updated_at=parse_timestamp(snapshot.get("updated_at")),
            approved_at=parse_timestamp(snapshot.get("approved_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "gtin": self.gtin,
            "name": self.name,
            "description": self.description,
            "brand": self.brand,
            "manufacturer": self.manufacturer,
            "net_weight": self.net_weight,
            "net_weight_unit": self.net_weight_unit,
            "status": self.status,
            "created_by_id": self.created_by_id,
            "approved_by_id": self.approved_by_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
        }


@dataclass
class SearchResult:
    """One page of search hits."""

    documents: list[SearchDocument] = field(default_factory=list)
    total: int = 0
    limit: int = 20
    offset: int = 0


def extract_document_id(payload: dict[str, Any]) -> Optional[str]:
    """Return the product id of a payload ('id' or '_id'), if any."""
    value = payload.get("id") or payload.get("_id")
    return str(value) if value else None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; datetimes and None pass through."""
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise DomainValidationError(f"Invalid timestamp '{value}'")
    raise DomainValidationError(f"Invalid timestamp '{value}'")


def _reference_id(snapshot: dict[str, Any], name: str) -> Optional[str]:
    reference = snapshot.get(name)
    if isinstance(reference, dict):
        reference = reference.get("id") or reference.get("_id")
    if reference is None:
        reference = snapshot.get(f"{name}_id")
    return str(reference) if reference is not None else None
