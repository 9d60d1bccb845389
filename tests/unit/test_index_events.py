"""
Unit tests for the search index event handlers.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from internal.domain.errors import DomainValidationError
from internal.domain.events import DomainEvent, EventType
from internal.domain.product import ProductDetails
from internal.usecase.index_events import (
    IndexEventHandler,
    build_dispatch_table,
    unwrap_snapshot,
)


@pytest.fixture
def index():
    index = MagicMock()
    index.upsert = AsyncMock()
    index.delete = AsyncMock(return_value=True)
    return index


class InMemoryIndex:
    """Dict-backed search index keyed by document id."""

    def __init__(self):
        self.docs = {}

    async def upsert(self, document):
        self.docs[document.id] = document

    async def delete(self, document_id):
        return self.docs.pop(document_id, None) is not None


class TestIndexEventHandler:
    """Tests for IndexEventHandler."""

    @pytest.mark.asyncio
    async def test_created_event_is_upserted(self, index, published_product):
        event = DomainEvent.from_details(EventType.CREATED, ProductDetails(product=published_product))

        await IndexEventHandler(index).upsert(event.payload)

        document = index.upsert.call_args.args[0]
        assert document.id == str(published_product.id)
        assert document.gtin == published_product.gtin
        assert document.status == "published"
        assert document.created_by_id == published_product.created_by

    @pytest.mark.asyncio
    async def test_updated_event_uses_new_data(self, index, published_product):
        patched = published_product.apply_patch({"name": "Skimmed milk"})
        event = DomainEvent.from_details(
            EventType.UPDATED, ProductDetails(product=patched), previous=published_product.to_dict()
        )

        await IndexEventHandler(index).upsert(event.payload)

        document = index.upsert.call_args.args[0]
        assert document.name == "Skimmed milk"

    @pytest.mark.asyncio
    async def test_replayed_event_leaves_one_document(self, published_product):
        index = InMemoryIndex()
        handler = IndexEventHandler(index)
        event = DomainEvent.from_details(EventType.CREATED, ProductDetails(product=published_product))

        await handler.upsert(event.payload)
        first = index.docs[str(published_product.id)]
        await handler.upsert(event.payload)

        assert list(index.docs) == [str(published_product.id)]
        assert index.docs[str(published_product.id)] == first

    @pytest.mark.asyncio
    async def test_deleted_event_removes_document(self, index, published_product):
        event = DomainEvent.from_details(EventType.DELETED, ProductDetails(product=published_product))

        await IndexEventHandler(index).remove(event.payload)

        index.delete.assert_awaited_once_with(str(published_product.id))

    @pytest.mark.asyncio
    async def test_removing_absent_document_is_a_no_op(self, index):
        index.delete = AsyncMock(return_value=False)

        await IndexEventHandler(index).remove({"_id": "missing"})

        index.delete.assert_awaited_once_with("missing")

    @pytest.mark.asyncio
    async def test_payload_without_id_raises(self, index):
        handler = IndexEventHandler(index)

        with pytest.raises(DomainValidationError):
            await handler.upsert({"name": "no id"})
        with pytest.raises(DomainValidationError):
            await handler.remove({"action": "deleted"})

        index.upsert.assert_not_awaited()
        index.delete.assert_not_awaited()


class TestDispatchTable:
    """Tests for build_dispatch_table."""

    def test_maps_every_topic(self, index):
        handler = IndexEventHandler(index)

        table = build_dispatch_table(handler, prefix="product")

        assert table == {
            "product.created": handler.upsert,
            "product.updated": handler.upsert,
            "product.approved": handler.upsert,
            "product.deleted": handler.remove,
        }

    def test_unwrap_snapshot(self):
        assert unwrap_snapshot({"new_data": {"id": "1"}, "id": "1"}) == {"id": "1"}
        assert unwrap_snapshot({"id": "2", "new_data": None}) == {"id": "2", "new_data": None}
