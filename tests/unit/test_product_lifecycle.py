"""
Unit tests for ProductLifecycleService.
"""
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from internal.domain.audit import AuditAction
from internal.domain.errors import (
    DomainValidationError,
    InvalidStatusTransitionError,
    PermissionDeniedError,
    ProductAlreadyExistsError,
    ProductNotFoundError,
)
from internal.domain.events import EventType
from internal.domain.product import ProductStatus
from internal.usecase.audit_trail import AuditTrailWriter
from internal.usecase.product_lifecycle import ProductLifecycleService


@pytest.fixture
def service(product_repository, user_repository, audit_repository, event_sink):
    return ProductLifecycleService(
        repository=product_repository,
        users=user_repository,
        audit=AuditTrailWriter(audit_repository),
        publisher=event_sink,
        history=audit_repository,
    )


def published_events(event_sink):
    return [call.args[0] for call in event_sink.publish_event.await_args_list]


class TestCreate:
    """Tests for product creation."""

    @pytest.mark.asyncio
    async def test_provider_creates_pending_without_event(
        self, service, product_data, provider, audit_repository, event_sink
    ):
        details = await service.create(product_data, provider)

        product = details.product
        assert product.status == ProductStatus.PENDING
        assert product.approved_by is None

        entries = audit_repository.for_gtin(product.gtin)
        assert [e.action for e in entries] == [AuditAction.CREATED]
        assert entries[0].previous_data is None
        assert entries[0].changed_by == provider.id
        event_sink.publish_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_editor_creates_published_with_event(
        self, service, product_data, editor, audit_repository, event_sink
    ):
        details = await service.create(product_data, editor)

        product = details.product
        assert product.status == ProductStatus.PUBLISHED
        assert product.approved_by == editor.id
        assert product.approved_at is not None
        assert details.created_by.id == editor.id
        assert details.approved_by.role == "editor"

        assert [e.action for e in audit_repository.for_gtin(product.gtin)] == [AuditAction.CREATED]
        events = published_events(event_sink)
        assert len(events) == 1
        assert events[0].event_type == EventType.CREATED
        assert events[0].product_id == str(product.id)
        assert events[0].payload["created_by"]["email"] == "user-editor@example.com"

    @pytest.mark.asyncio
    async def test_unauthenticated_is_denied(self, service, product_data, product_repository):
        with pytest.raises(PermissionDeniedError):
            await service.create(product_data, None)

        assert product_repository.products == {}

    @pytest.mark.asyncio
    async def test_invalid_gtin_has_no_side_effects(
        self, service, product_data, provider, product_repository, audit_repository
    ):
        with pytest.raises(DomainValidationError):
            await service.create({**product_data, "gtin": "1234567890123"}, provider)

        assert product_repository.products == {}
        assert audit_repository.entries == []

    @pytest.mark.asyncio
    async def test_duplicate_gtin_conflicts(
        self, service, product_data, provider, editor, audit_repository
    ):
        await service.create(product_data, provider)

        with pytest.raises(ProductAlreadyExistsError):
            await service.create({**product_data, "gtin": "1234-5678-90128"}, editor)

        assert len(audit_repository.entries) == 1

    @pytest.mark.asyncio
    async def test_insert_race_surfaces_conflict(
        self, service, product_data, provider, product_repository
    ):
        product_repository.create = AsyncMock(side_effect=ProductAlreadyExistsError("1234567890128"))

        with pytest.raises(ProductAlreadyExistsError):
            await service.create(product_data, provider)

    @pytest.mark.asyncio
    async def test_failure_after_insert_is_compensated(
        self, service, product_data, provider, product_repository, user_repository
    ):
        user_repository.get_many = AsyncMock(side_effect=RuntimeError("users unavailable"))

        with pytest.raises(RuntimeError):
            await service.create(product_data, provider)

        assert product_repository.products == {}

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_fail_create(
        self, product_repository, user_repository, event_sink, product_data, editor
    ):
        failing_store = AsyncMock()
        failing_store.append = AsyncMock(side_effect=ConnectionError("audit down"))
        service = ProductLifecycleService(
            repository=product_repository,
            users=user_repository,
            audit=AuditTrailWriter(failing_store),
            publisher=event_sink,
        )

        details = await service.create(product_data, editor)

        assert details.product.gtin in product_repository.products
        event_sink.publish_event.assert_awaited_once()


class TestApprove:
    """Tests for product approval."""

    @pytest.mark.asyncio
    async def test_editor_approves_pending(
        self, service, product_data, provider, editor, audit_repository, event_sink
    ):
        created = await service.create(product_data, provider)

        details = await service.approve(created.product.gtin, editor)

        assert details.product.status == ProductStatus.PUBLISHED
        assert details.product.approved_by == editor.id
        assert details.product.approved_at is not None

        actions = [e.action for e in audit_repository.for_gtin(created.product.gtin)]
        assert actions == [AuditAction.CREATED, AuditAction.APPROVED]
        approved_entry = audit_repository.entries[-1]
        assert approved_entry.changes["status"] == {"from": "pending", "to": "published"}

        events = published_events(event_sink)
        assert [e.event_type for e in events] == [EventType.APPROVED]
        assert events[0].payload["status"] == "published"

    @pytest.mark.asyncio
    async def test_provider_cannot_approve(self, service, product_data, provider):
        created = await service.create(product_data, provider)

        with pytest.raises(PermissionDeniedError):
            await service.approve(created.product.gtin, provider)

    @pytest.mark.asyncio
    async def test_approving_published_conflicts_without_side_effects(
        self, service, product_data, editor, audit_repository, event_sink, product_repository
    ):
        created = await service.create(product_data, editor)
        event_sink.publish_event.reset_mock()
        stored_before = product_repository.products[created.product.gtin]

        with pytest.raises(InvalidStatusTransitionError):
            await service.approve(created.product.gtin, editor)

        assert len(audit_repository.entries) == 1
        event_sink.publish_event.assert_not_awaited()
        assert product_repository.products[created.product.gtin] is stored_before

    @pytest.mark.asyncio
    async def test_unknown_gtin(self, service, editor):
        with pytest.raises(ProductNotFoundError):
            await service.approve("12345670", editor)


class TestUpdate:
    """Tests for product updates."""

    @pytest.mark.asyncio
    async def test_owner_updates_pending_without_event(
        self, service, product_data, provider, audit_repository, event_sink
    ):
        created = await service.create(product_data, provider)

        details = await service.update(created.product.gtin, {"name": "Skimmed milk"}, provider)

        assert details.product.name == "Skimmed milk"
        entry = audit_repository.entries[-1]
        assert entry.action == AuditAction.UPDATED
        assert entry.changes == {"name": {"from": "Whole milk", "to": "Skimmed milk"}}
        event_sink.publish_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_provider_cannot_update_published_product_of_another(
        self, service, product_data, editor, provider, audit_repository, event_sink
    ):
        created = await service.create(product_data, editor)
        audit_before = len(audit_repository.entries)
        event_sink.publish_event.reset_mock()

        with pytest.raises(PermissionDeniedError):
            await service.update(created.product.gtin, {"name": "Hacked"}, provider)

        assert len(audit_repository.entries) == audit_before
        event_sink.publish_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_provider_cannot_update_someone_elses_pending(
        self, service, product_data, provider, other_provider
    ):
        created = await service.create(product_data, provider)

        with pytest.raises(PermissionDeniedError):
            await service.update(created.product.gtin, {"name": "Mine"}, other_provider)

    @pytest.mark.asyncio
    async def test_editor_updates_published_and_publishes_wrapped_event(
        self, service, product_data, editor, event_sink
    ):
        created = await service.create(product_data, editor)
        event_sink.publish_event.reset_mock()

        await service.update(created.product.gtin, {"brand": "New brand"}, editor)

        events = published_events(event_sink)
        assert [e.event_type for e in events] == [EventType.UPDATED]
        assert events[0].payload["new_data"]["brand"] == "New brand"
        assert events[0].payload["previous_data"]["brand"] == "Dairy Co"

    @pytest.mark.asyncio
    async def test_control_fields_are_ignored(self, service, product_data, provider):
        created = await service.create(product_data, provider)

        details = await service.update(
            created.product.gtin,
            {"status": "published", "approved_by": provider.id, "name": "Renamed"},
            provider,
        )

        assert details.product.status == ProductStatus.PENDING
        assert details.product.approved_by is None
        assert details.product.name == "Renamed"

    @pytest.mark.asyncio
    async def test_invalid_patch_is_rejected(self, service, product_data, provider, audit_repository):
        created = await service.create(product_data, provider)

        with pytest.raises(DomainValidationError):
            await service.update(created.product.gtin, {"net_weight": 0}, provider)

        assert len(audit_repository.entries) == 1

    @pytest.mark.asyncio
    async def test_unknown_gtin(self, service, editor):
        with pytest.raises(ProductNotFoundError):
            await service.update("12345670", {"name": "x"}, editor)


class TestDelete:
    """Tests for product deletion."""

    @pytest.mark.asyncio
    async def test_delete_audits_then_removes_and_publishes(
        self, service, product_data, provider, editor, product_repository, audit_repository, event_sink
    ):
        created = await service.create(product_data, provider)

        await service.delete(created.product.gtin, editor)

        assert product_repository.products == {}
        entry = audit_repository.entries[-1]
        assert entry.action == AuditAction.DELETED
        assert entry.new_data is None
        assert entry.previous_data["gtin"] == created.product.gtin

        events = published_events(event_sink)
        assert [e.event_type for e in events] == [EventType.DELETED]
        assert events[0].payload["id"] == str(created.product.id)

    @pytest.mark.asyncio
    async def test_audit_entry_is_written_before_removal(
        self, service, product_data, editor, product_repository, audit_repository
    ):
        created = await service.create(product_data, editor)
        present_during_audit = []
        original_append = audit_repository.append

        async def append(entry):
            present_during_audit.append(entry.gtin in product_repository.products)
            return await original_append(entry)

        audit_repository.append = append

        await service.delete(created.product.gtin, editor)

        assert present_during_audit == [True]

    @pytest.mark.asyncio
    async def test_provider_cannot_delete(self, service, product_data, provider):
        created = await service.create(product_data, provider)

        with pytest.raises(PermissionDeniedError):
            await service.delete(created.product.gtin, provider)

    @pytest.mark.asyncio
    async def test_unknown_gtin(self, service, admin):
        with pytest.raises(ProductNotFoundError):
            await service.delete("12345670", admin)


class TestQueries:
    """Tests for product reads."""

    @pytest_asyncio.fixture
    async def catalog(self, service, product_data, provider, other_provider, editor):
        mine = await service.create(product_data, provider)
        theirs = await service.create({**product_data, "gtin": "123456789012"}, other_provider)
        public = await service.create({**product_data, "gtin": "12345670"}, editor)
        return {"mine": mine.product, "theirs": theirs.product, "public": public.product}

    @pytest.mark.asyncio
    async def test_unauthenticated_sees_published_only(self, service, catalog):
        items = await service.list_products(None)

        assert [d.product.gtin for d in items] == [catalog["public"].gtin]

    @pytest.mark.asyncio
    async def test_unauthenticated_pending_filter_is_empty(self, service, catalog):
        assert await service.list_products(None, status=ProductStatus.PENDING) == []

    @pytest.mark.asyncio
    async def test_provider_sees_published_and_own(self, service, catalog, provider):
        items = await service.list_products(provider)

        gtins = {d.product.gtin for d in items}
        assert gtins == {catalog["mine"].gtin, catalog["public"].gtin}

    @pytest.mark.asyncio
    async def test_editor_sees_everything(self, service, catalog, editor):
        items = await service.list_products(editor, limit=500)

        assert len(items) == 3

    @pytest.mark.asyncio
    async def test_get_product_includes_history(self, service, catalog, provider):
        details = await service.get_product(catalog["mine"].gtin, provider)

        assert details.product.id == catalog["mine"].id
        assert [e.action for e in details.history] == [AuditAction.CREATED]

    @pytest.mark.asyncio
    async def test_get_pending_hidden_from_unauthenticated(self, service, catalog):
        assert await service.get_product(catalog["mine"].gtin, None) is None

    @pytest.mark.asyncio
    async def test_get_pending_of_another_provider_is_denied(self, service, catalog, provider):
        with pytest.raises(PermissionDeniedError):
            await service.get_product(catalog["theirs"].gtin, provider)

    @pytest.mark.asyncio
    async def test_get_absent_returns_none(self, service, editor):
        assert await service.get_product("96385074", editor) is None

    @pytest.mark.asyncio
    async def test_list_pending_requires_elevation(self, service, catalog, provider, editor):
        with pytest.raises(PermissionDeniedError):
            await service.list_pending(provider)

        pending = await service.list_pending(editor)
        assert {d.product.gtin for d in pending} == {catalog["mine"].gtin, catalog["theirs"].gtin}

    @pytest.mark.asyncio
    async def test_list_all_for_sync_expands_users(self, service, catalog):
        items = await service.list_all_for_sync()

        assert len(items) == 3
        snapshot = next(d for d in items if d.product.gtin == catalog["public"].gtin).to_dict()
        assert snapshot["approved_by"]["id"] == "user-editor"
