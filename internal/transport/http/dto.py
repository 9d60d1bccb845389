"""
Data Transfer Objects for the catalog HTTP APIs.

Contains Pydantic models for request/response validation.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from internal.domain.audit import AuditEntry, AuditStats
from internal.domain.product import ProductDetails, UserRef
from internal.domain.search import SearchDocument


# User DTOs
class UserRefDTO(BaseModel):
    """Creator or approver of a product."""

    id: str = Field(..., description="User ID")
    name: Optional[str] = Field(None, description="User name")
    email: Optional[str] = Field(None, description="User email")
    role: Optional[str] = Field(None, description="User role")

    @classmethod
    def build(cls, user_id: Optional[str], ref: Optional[UserRef]) -> Optional[UserRefDTO]:
        """Build from a user id and its resolved record, if any."""
        if user_id is None:
            return None
        if ref is None:
            return cls(id=user_id)
        return cls(id=ref.id, name=ref.name, email=ref.email, role=ref.role)


# Product DTOs
class ProductCreateRequest(BaseModel):
    """Request body for creating a product."""

    gtin: str = Field(..., description="GS1 GTIN (8, 12, 13 or 14 digits)")
    name: str = Field(..., description="Product name")
    description: str = Field(..., description="Product description")
    brand: str = Field(..., description="Brand name")
    manufacturer: str = Field(..., description="Manufacturer name")
    net_weight: float = Field(..., description="Net weight (>= 0.01)")
    net_weight_unit: str = Field(..., description="One of g, kg, ml, l, oz, lb")

    class Config:
        json_schema_extra = {
            "example": {
                "gtin": "1234567890128",
                "name": "Whole milk",
                "description": "Pasteurized whole milk, 1 litre",
                "brand": "Dairy Co",
                "manufacturer": "Dairy Co Ltd",
                "net_weight": 1,
                "net_weight_unit": "l",
            }
        }


class ProductUpdateRequest(BaseModel):
    """Request body for updating a product. Only set fields are applied."""

    name: Optional[str] = Field(None, description="Product name")
    description: Optional[str] = Field(None, description="Product description")
    brand: Optional[str] = Field(None, description="Brand name")
    manufacturer: Optional[str] = Field(None, description="Manufacturer name")
    net_weight: Optional[float] = Field(None, description="Net weight (>= 0.01)")
    net_weight_unit: Optional[str] = Field(None, description="One of g, kg, ml, l, oz, lb")


class AuditEntryDTO(BaseModel):
    """Audit trail entry."""

    id: str
    gtin: str
    product_id: str
    action: str
    changed_by: str
    changed_at: datetime
    changes: Optional[Dict[str, Any]] = None
    previous_data: Optional[Dict[str, Any]] = None
    new_data: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_entry(cls, entry: AuditEntry) -> AuditEntryDTO:
        """Build from a domain entry."""
        return cls(
            id=str(entry.id),
            gtin=entry.gtin,
            product_id=str(entry.product_id),
            action=entry.action.value,
            changed_by=entry.changed_by,
            changed_at=entry.changed_at,
            changes=entry.changes,
            previous_data=entry.previous_data,
            new_data=entry.new_data,
            metadata=entry.metadata,
        )


class ProductResponse(BaseModel):
    """Product with creator and approver expanded."""

    id: str = Field(..., description="Storage identifier")
    gtin: str = Field(..., description="GTIN")
    name: str
    description: str
    brand: str
    manufacturer: str
    net_weight: float
    net_weight_unit: str
    status: str = Field(..., description="pending or published")
    created_by: Optional[UserRefDTO] = None
    approved_by: Optional[UserRefDTO] = None
    approved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    history: List[AuditEntryDTO] = Field(default_factory=list, description="Recent changes")

    @classmethod
    def from_details(cls, details: ProductDetails) -> ProductResponse:
        """Build from a denormalized product view."""
        product = details.product
        return cls(
            id=str(product.id),
            gtin=product.gtin,
            name=product.name,
            description=product.description,
            brand=product.brand,
            manufacturer=product.manufacturer,
            net_weight=product.net_weight,
            net_weight_unit=product.net_weight_unit.value,
            status=product.status.value,
            created_by=UserRefDTO.build(product.created_by, details.created_by),
            approved_by=UserRefDTO.build(product.approved_by, details.approved_by),
            approved_at=product.approved_at,
            created_at=product.created_at,
            updated_at=product.updated_at,
            history=[AuditEntryDTO.from_entry(entry) for entry in details.history],
        )


class ProductListResponse(BaseModel):
    """Page of products."""

    data: List[ProductResponse]
    limit: int
    offset: int


class InternalProductsResponse(BaseModel):
    """Full product list for the search service."""

    products: List[Dict[str, Any]]
    total: int


class AuditListResponse(BaseModel):
    """Page of audit entries."""

    data: List[AuditEntryDTO]
    limit: int
    offset: int


class ActionStatsDTO(BaseModel):
    """Counters for one audit action."""

    count: int
    last_change: Optional[datetime] = None


class HistoryStatsResponse(BaseModel):
    """Summary of a product's audit history."""

    gtin: str
    total_changes: int
    by_action: Dict[str, ActionStatsDTO]

    @classmethod
    def from_stats(cls, gtin: str, stats: AuditStats) -> HistoryStatsResponse:
        """Build from domain stats."""
        return cls(
            gtin=gtin,
            total_changes=stats.total_changes,
            by_action={
                action: ActionStatsDTO(count=item.count, last_change=item.last_change)
                for action, item in stats.by_action.items()
            },
        )


# Search DTOs
class SearchDocumentDTO(BaseModel):
    """Indexed product document."""

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
    def from_document(cls, document: SearchDocument) -> SearchDocumentDTO:
        """Build from a search document."""
        return cls(
            id=document.id,
            gtin=document.gtin,
            name=document.name,
            description=document.description,
            brand=document.brand,
            manufacturer=document.manufacturer,
            net_weight=document.net_weight,
            net_weight_unit=document.net_weight_unit,
            status=document.status,
            created_by_id=document.created_by_id,
            approved_by_id=document.approved_by_id,
            created_at=document.created_at,
            updated_at=document.updated_at,
            approved_at=document.approved_at,
        )


# Pagination DTOs
class PaginationInfo(BaseModel):
    """Pagination information."""

    page: int = Field(..., ge=1, description="Current page number")
    per_page: int = Field(..., ge=1, le=100, description="Items per page")
    total: int = Field(..., ge=0, description="Total number of items")
    pages: int = Field(..., ge=0, description="Total number of pages")


class SearchResponse(BaseModel):
    """Search hits with pagination."""

    data: List[SearchDocumentDTO]
    pagination: PaginationInfo


class ResyncResponse(BaseModel):
    """Outcome of a sync run."""

    result: Dict[str, Any]


# Error DTOs
class ErrorResponse(BaseModel):
    """Error response body."""

    detail: str
    code: Optional[str] = None
    request_id: Optional[str] = None
