"""
Unit tests for SearchProductsUseCase.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from internal.domain.search import SearchDocument, SearchResult
from internal.usecase.search_products import (
    SearchProductsInput,
    SearchProductsOutput,
    SearchProductsUseCase,
)


@pytest.fixture
def index():
    index = MagicMock()
    index.search = AsyncMock(return_value=SearchResult())
    index.get = AsyncMock(return_value=None)
    return index


class TestSearchProductsUseCase:
    """Tests for SearchProductsUseCase."""

    @pytest.mark.asyncio
    async def test_execute_calls_index_search(self, index):
        documents = [SearchDocument(id="p1", gtin="12345670", name="Whole milk", status="published")]
        index.search = AsyncMock(return_value=SearchResult(documents=documents, total=1))
        use_case = SearchProductsUseCase(index)

        result = await use_case.execute(
            SearchProductsInput(query="milk", status="published", page=1, per_page=20)
        )

        assert isinstance(result, SearchProductsOutput)
        assert result.products == documents
        assert result.total == 1
        assert result.page == 1
        assert result.per_page == 20

        index.search.assert_awaited_once_with(query="milk", status="published", limit=20, offset=0)

    @pytest.mark.asyncio
    async def test_execute_pagination_offset_calculation(self, index):
        use_case = SearchProductsUseCase(index)

        await use_case.execute(SearchProductsInput(query="milk", page=3, per_page=10))

        call_kwargs = index.search.call_args.kwargs
        assert call_kwargs["offset"] == 20
        assert call_kwargs["limit"] == 10

    @pytest.mark.asyncio
    async def test_execute_clamps_paging(self, index):
        use_case = SearchProductsUseCase(index)

        result = await use_case.execute(SearchProductsInput(page=0, per_page=1000))

        assert result.page == 1
        assert result.per_page == 100
        assert index.search.call_args.kwargs["offset"] == 0

    @pytest.mark.asyncio
    async def test_execute_returns_empty_results(self, index):
        use_case = SearchProductsUseCase(index)

        result = await use_case.execute(SearchProductsInput(query="nothing matches"))

        assert result.products == []
        assert result.total == 0

    @pytest.mark.asyncio
    async def test_get_document(self, index):
        document = SearchDocument(id="p1")
        index.get = AsyncMock(return_value=document)

        assert await SearchProductsUseCase(index).get_document("p1") is document
        index.get.assert_awaited_once_with("p1")
