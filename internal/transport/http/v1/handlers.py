"""
FastAPI HTTP Handlers for the Product API v1.

Implements REST endpoints for the product lifecycle and the audit trail.
Authentication happens upstream: the gateway forwards the authenticated
user in the X-User-Id and X-User-Role headers.
"""

import hmac
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from fastapi.responses import Response

from internal.domain.audit import AuditAction, AuditFilters
from internal.domain.errors import DomainError, DomainValidationError
from internal.domain.product import ProductStatus
from internal.domain.value_objects import Actor
from internal.transport.http.dto import (
    AuditEntryDTO,
    AuditListResponse,
    ErrorResponse,
    HistoryStatsResponse,
    InternalProductsResponse,
    ProductCreateRequest,
    ProductListResponse,
    ProductResponse,
    ProductUpdateRequest,
)
from internal.transport.http.errors import to_http_error
from internal.usecase.audit_history import AuditHistoryService
from internal.usecase.product_lifecycle import ProductLifecycleService
from pkg.logger.logger import get_logger

logger = get_logger(__name__)


router = APIRouter(prefix="/api/v1", tags=["products"])


# Dependency injection container (simplified)
class Dependencies:
    """Container for handler dependencies."""

    lifecycle: Optional[ProductLifecycleService] = None
    history: Optional[AuditHistoryService] = None
    service_token: Optional[str] = None


_deps = Dependencies()


def get_lifecycle() -> ProductLifecycleService:
    """Get ProductLifecycleService instance."""
    if _deps.lifecycle is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return _deps.lifecycle


def get_history_service() -> AuditHistoryService:
    """Get AuditHistoryService instance."""
    if _deps.history is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return _deps.history


def get_actor(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
) -> Optional[Actor]:
    """
    Resolve the acting user from gateway headers.

    Returns:
        Actor, or None for unauthenticated requests.
    """
    if not x_user_id:
        return None
    try:
        return Actor(id=x_user_id, role=x_user_role or "provider")
    except DomainValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)


def verify_service_token(
    x_service_token: Optional[str] = Header(None, alias="X-Service-Token"),
) -> None:
    """Reject internal calls without the configured service token."""
    expected = _deps.service_token
    if expected and not hmac.compare_digest(x_service_token or "", expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid service token",
        )


def set_dependencies(
    lifecycle: ProductLifecycleService,
    history: AuditHistoryService,
    service_token: Optional[str] = None,
) -> None:
    """
    Set handler dependencies.

    Called during application startup.
    """
    _deps.lifecycle = lifecycle
    _deps.history = history
    _deps.service_token = service_token


_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Validation error"},
    403: {"model": ErrorResponse, "description": "Permission denied"},
    404: {"model": ErrorResponse, "description": "Product not found"},
    409: {"model": ErrorResponse, "description": "Conflict"},
    503: {"model": ErrorResponse, "description": "Service unavailable"},
}


# Products
@router.post(
    "/products",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_ERROR_RESPONSES,
)
async def create_product(
    request: ProductCreateRequest,
    actor: Optional[Actor] = Depends(get_actor),
    lifecycle: ProductLifecycleService = Depends(get_lifecycle),
) -> ProductResponse:
    """
    Create a new product.

    Editors and admins publish directly; providers create pending products.
    """
    logger.info("Creating product", gtin=request.gtin)

    try:
        details = await lifecycle.create(request.model_dump(), actor)
    except DomainError as e:
        raise to_http_error(e)

    return ProductResponse.from_details(details)


@router.get("/products", response_model=ProductListResponse)
async def list_products(
    status_filter: Optional[ProductStatus] = Query(None, alias="status"),
    created_by: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    actor: Optional[Actor] = Depends(get_actor),
    lifecycle: ProductLifecycleService = Depends(get_lifecycle),
) -> ProductListResponse:
    """
    List the products visible to the caller, newest first.
    """
    try:
        items = await lifecycle.list_products(
            actor,
            status=status_filter,
            created_by=created_by,
            limit=limit,
            offset=offset,
        )
    except DomainError as e:
        raise to_http_error(e)

    return ProductListResponse(
        data=[ProductResponse.from_details(item) for item in items],
        limit=limit,
        offset=offset,
    )


@router.get("/products/pending", response_model=ProductListResponse, responses=_ERROR_RESPONSES)
async def list_pending_products(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    actor: Optional[Actor] = Depends(get_actor),
    lifecycle: ProductLifecycleService = Depends(get_lifecycle),
) -> ProductListResponse:
    """
    List products awaiting approval. Editors and admins only.
    """
    try:
        items = await lifecycle.list_pending(actor, limit=limit, offset=offset)
    except DomainError as e:
        raise to_http_error(e)

    return ProductListResponse(
        data=[ProductResponse.from_details(item) for item in items],
        limit=limit,
        offset=offset,
    )


@router.get("/products/{gtin}", response_model=ProductResponse, responses=_ERROR_RESPONSES)
async def get_product(
    gtin: str,
    actor: Optional[Actor] = Depends(get_actor),
    lifecycle: ProductLifecycleService = Depends(get_lifecycle),
) -> ProductResponse:
    """
    Get a product with its ten most recent changes.
    """
    try:
        details = await lifecycle.get_product(gtin, actor)
    except DomainError as e:
        raise to_http_error(e)

    if details is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Product with GTIN {gtin} not found",
        )

    return ProductResponse.from_details(details)


@router.patch("/products/{gtin}", response_model=ProductResponse, responses=_ERROR_RESPONSES)
async def update_product(
    gtin: str,
    request: ProductUpdateRequest,
    actor: Optional[Actor] = Depends(get_actor),
    lifecycle: ProductLifecycleService = Depends(get_lifecycle),
) -> ProductResponse:
    """
    Update the descriptive fields of a product.

    Providers may only update their own pending products.
    """
    try:
        details = await lifecycle.update(gtin, request.model_dump(exclude_unset=True), actor)
    except DomainError as e:
        raise to_http_error(e)

    return ProductResponse.from_details(details)


@router.post(
    "/products/{gtin}/approve",
    response_model=ProductResponse,
    responses=_ERROR_RESPONSES,
)
async def approve_product(
    gtin: str,
    actor: Optional[Actor] = Depends(get_actor),
    lifecycle: ProductLifecycleService = Depends(get_lifecycle),
) -> ProductResponse:
    """
    Approve a pending product. Editors and admins only.
    """
    try:
        details = await lifecycle.approve(gtin, actor)
    except DomainError as e:
        raise to_http_error(e)

    return ProductResponse.from_details(details)


@router.delete(
    "/products/{gtin}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_ERROR_RESPONSES,
)
async def delete_product(
    gtin: str,
    actor: Optional[Actor] = Depends(get_actor),
    lifecycle: ProductLifecycleService = Depends(get_lifecycle),
) -> Response:
    """
    Delete a product. Editors and admins only.
    """
    try:
        await lifecycle.delete(gtin, actor)
    except DomainError as e:
        raise to_http_error(e)

    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Audit trail
@router.get(
    "/products/{gtin}/history",
    response_model=AuditListResponse,
    responses=_ERROR_RESPONSES,
)
async def get_product_history(
    gtin: str,
    action: Optional[AuditAction] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    actor: Optional[Actor] = Depends(get_actor),
    history: AuditHistoryService = Depends(get_history_service),
) -> AuditListResponse:
    """
    Get the change history of one product, newest first.
    """
    try:
        entries = await history.get_product_history(
            gtin, actor, limit=limit, offset=offset, action=action
        )
    except DomainError as e:
        raise to_http_error(e)

    return AuditListResponse(
        data=[AuditEntryDTO.from_entry(entry) for entry in entries],
        limit=limit,
        offset=offset,
    )


@router.get(
    "/products/{gtin}/history/stats",
    response_model=HistoryStatsResponse,
    responses=_ERROR_RESPONSES,
)
async def get_product_history_stats(
    gtin: str,
    actor: Optional[Actor] = Depends(get_actor),
    history: AuditHistoryService = Depends(get_history_service),
) -> HistoryStatsResponse:
    """
    Count the changes of one product per action.
    """
    try:
        stats = await history.get_history_stats(gtin, actor)
    except DomainError as e:
        raise to_http_error(e)

    return HistoryStatsResponse.from_stats(gtin, stats)


@router.get("/audit", response_model=AuditListResponse, responses=_ERROR_RESPONSES)
async def get_audit_history(
    gtin: Optional[str] = Query(None),
    action: Optional[AuditAction] = Query(None),
    changed_by: Optional[str] = Query(None),
    name: Optional[str] = Query(None, description="Product name contains"),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    actor: Optional[Actor] = Depends(get_actor),
    history: AuditHistoryService = Depends(get_history_service),
) -> AuditListResponse:
    """
    Query the audit trail. Providers only see their own changes.
    """
    filters = AuditFilters(
        gtin=gtin,
        action=action,
        changed_by=changed_by,
        name=name,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )

    try:
        entries = await history.get_audit_history(actor, filters)
    except DomainError as e:
        raise to_http_error(e)

    return AuditListResponse(
        data=[AuditEntryDTO.from_entry(entry) for entry in entries],
        limit=limit,
        offset=offset,
    )


# Query interface for the search service
@router.get(
    "/internal/products",
    response_model=InternalProductsResponse,
    dependencies=[Depends(verify_service_token)],
    tags=["internal"],
)
async def list_products_for_sync(
    lifecycle: ProductLifecycleService = Depends(get_lifecycle),
) -> InternalProductsResponse:
    """
    List every product with creator and approver expanded.
    """
    items = await lifecycle.list_all_for_sync()
    logger.info("Serving products for sync", count=len(items))

    return InternalProductsResponse(
        products=[item.to_dict() for item in items],
        total=len(items),
    )
