"""
FastAPI HTTP Handlers for the Search API v1.

Read access to the search index plus the manual resync trigger.
"""
import hmac
import math
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from internal.transport.http.dto import (
    ErrorResponse,
    PaginationInfo,
    ResyncResponse,
    SearchDocumentDTO,
    SearchResponse,
)
from internal.usecase.index_sync import IndexSyncCoordinator
from internal.usecase.search_products import SearchProductsInput, SearchProductsUseCase
from pkg.logger.logger import get_logger

logger = get_logger(__name__)


router = APIRouter(prefix="/api/v1/search", tags=["search"])


class SearchDependencies:
    """Container for search handler dependencies."""

    search_use_case: Optional[SearchProductsUseCase] = None
    coordinator: Optional[IndexSyncCoordinator] = None
    service_token: Optional[str] = None


_deps = SearchDependencies()


def set_search_dependencies(
    search_use_case: SearchProductsUseCase,
    coordinator: IndexSyncCoordinator,
    service_token: Optional[str] = None,
) -> None:
    """Set search handler dependencies. Called during application startup."""
    _deps.search_use_case = search_use_case
    _deps.coordinator = coordinator
    _deps.service_token = service_token


def get_search_use_case() -> SearchProductsUseCase:
    """Get SearchProductsUseCase instance."""
    if _deps.search_use_case is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return _deps.search_use_case


def get_coordinator() -> IndexSyncCoordinator:
    """Get IndexSyncCoordinator instance."""
    if _deps.coordinator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return _deps.coordinator


def verify_service_token(
    x_service_token: Optional[str] = Header(None, alias="X-Service-Token"),
) -> None:
    """Reject resync calls without the configured service token."""
    expected = _deps.service_token
    if expected and not hmac.compare_digest(x_service_token or "", expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid service token",
        )


@router.get("", response_model=SearchResponse)
async def search_products(
    q: str = Query("", max_length=500, description="Search query"),
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    use_case: SearchProductsUseCase = Depends(get_search_use_case),
) -> SearchResponse:
    """
    Full-text search over indexed products.

    Matches name, brand, manufacturer, description and GTIN. An empty
    query lists every indexed product.
    """
    result = await use_case.execute(
        SearchProductsInput(query=q, status=status_filter, page=page, per_page=per_page)
    )

    return SearchResponse(
        data=[SearchDocumentDTO.from_document(doc) for doc in result.products],
        pagination=PaginationInfo(
            page=result.page,
            per_page=result.per_page,
            total=result.total,
            pages=math.ceil(result.total / result.per_page) if result.total else 0,
        ),
    )


@router.get(
    "/documents/{document_id}",
    response_model=SearchDocumentDTO,
    responses={404: {"model": ErrorResponse, "description": "Document not indexed"}},
)
async def get_document(
    document_id: str,
    use_case: SearchProductsUseCase = Depends(get_search_use_case),
) -> SearchDocumentDTO:
    """Get one indexed document by product id."""
    document = await use_case.get_document(document_id)
    if document is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Document {document_id} not found",
        )
    return SearchDocumentDTO.from_document(document)


@router.post(
    "/resync",
    response_model=ResyncResponse,
    dependencies=[Depends(verify_service_token)],
    responses={500: {"model": ErrorResponse, "description": "Resync failed"}},
)
async def resync_index(
    coordinator: IndexSyncCoordinator = Depends(get_coordinator),
) -> ResyncResponse:
    """
    Drop every indexed document and rebuild from the product service.
    """
    logger.warning("Forced search index resync requested")

    try:
        result = await coordinator.force_resync()
    except Exception as e:
        logger.error("Forced resync failed", error=str(e), error_type=type(e).__name__)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Resync failed: {e}",
        )

    return ResyncResponse(result=result)
