"""
Search Products Use Case.

Implements full-text search over the search index with pagination.
"""
import time
from dataclasses import dataclass
from typing import Optional

from internal.domain.search import SearchDocument
from internal.infrastructure.metrics.prometheus import SEARCH_QUERY_DURATION
from internal.usecase.index_events import SearchIndex
from pkg.logger.logger import get_logger


logger = get_logger(__name__)


MAX_PER_PAGE = 100


@dataclass
class SearchProductsInput:
    """Input for SearchProductsUseCase."""

    query: str = ""
    status: Optional[str] = None
    page: int = 1
    per_page: int = 20


@dataclass
class SearchProductsOutput:
    """Output for SearchProductsUseCase."""

    products: list[SearchDocument]
    total: int
    page: int
    per_page: int


class SearchProductsUseCase:
    """
    Use case for full-text search of products.

    An empty query lists every indexed document.
    """

    def __init__(self, index: SearchIndex):
        """
        Initialize the use case.

        Args:
            index: Search index store.
        """
        self._index = index

    async def execute(self, input_data: SearchProductsInput) -> SearchProductsOutput:
        """
        Execute the search use case.

        Args:
            input_data: Search input with query and filters.

        Returns:
            Search results with pagination.
        """
        page = max(input_data.page, 1)
        per_page = min(max(input_data.per_page, 1), MAX_PER_PAGE)

        logger.info("Searching products", query=input_data.query, page=page)

        started = time.perf_counter()
        result = await self._index.search(
            query=input_data.query,
            status=input_data.status,
            limit=per_page,
            offset=(page - 1) * per_page,
        )
        SEARCH_QUERY_DURATION.observe(time.perf_counter() - started)

        logger.info(
            "Search completed",
            query=input_data.query,
            total=result.total,
            returned=len(result.documents),
        )

        return SearchProductsOutput(
            products=result.documents,
            total=result.total,
            page=page,
            per_page=per_page,
        )

    async def get_document(self, document_id: str) -> Optional[SearchDocument]:
        """
        Get one indexed document.

        Args:
            document_id: Product storage id.

        Returns:
            SearchDocument if indexed, None otherwise.
        """
        return await self._index.get(document_id)
