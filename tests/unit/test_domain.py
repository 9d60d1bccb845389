"""
Unit tests for domain entities.
"""
from datetime import datetime, timezone
from uuid import uuid4

import pytest

from internal.domain.audit import AuditAction, AuditEntry
from internal.domain.errors import DomainValidationError, InvalidStatusTransitionError
from internal.domain.events import DomainEvent, EventType, all_topics
from internal.domain.product import (
    Product,
    ProductDetails,
    ProductStatus,
    UserRef,
    WeightUnit,
)
from internal.domain.search import SearchDocument, extract_document_id, parse_timestamp
from internal.domain.value_objects import (
    SAMPLE_VALID_GTINS,
    Actor,
    Role,
    VALID_GTIN_LENGTHS,
    calculate_check_digit,
    format_gtin,
    get_gtin_validation_error,
    has_permission,
    is_elevated,
    is_valid_gtin,
    validate_gtin,
    validate_gtin_check_digit,
)


class TestGtin:
    """Tests for GS1 identity code validation."""

    @pytest.mark.parametrize("gtin", sorted(SAMPLE_VALID_GTINS.values()))
    def test_sample_gtins_are_valid(self, gtin):
        assert is_valid_gtin(gtin)

    def test_format_strips_spaces_and_dashes(self):
        assert format_gtin("123-456 789-0128") == "1234567890128"

    def test_format_non_string_is_empty(self):
        assert format_gtin(None) == ""
        assert format_gtin(1234567890128) == ""

    def test_check_digit(self):
        assert calculate_check_digit("123456789012") == 8
        assert calculate_check_digit("1234567") == 0

    def test_formatted_input_is_valid(self):
        result = validate_gtin("1234-5678-90128")

        assert result.is_valid
        assert result.normalized == "1234567890128"
        assert result.type == "GTIN-13 (EAN-13)"

    def test_wrong_check_digit(self):
        result = validate_gtin("1234567890123")

        assert not result.is_valid
        assert result.errors == ["Invalid GS1 check digit"]

    def test_wrong_length(self):
        result = validate_gtin("1234567")

        assert not result.is_valid
        assert result.type is None
        assert "8, 12, 13 or 14 digits" in result.errors[0]

    def test_empty(self):
        assert validate_gtin("").errors == ["GTIN is required"]

    def test_error_message_names_the_value(self):
        message = get_gtin_validation_error("abc")

        assert message.startswith('Invalid GTIN: "abc"')
        assert get_gtin_validation_error("12345670") is None

    @pytest.mark.parametrize(
        "gtin", ["12345670", "036000291452", "1234567890128", "10012345678902"]
    )
    def test_check_digit_matches_body(self, gtin):
        assert len(gtin) in VALID_GTIN_LENGTHS
        assert calculate_check_digit(gtin[:-1]) == int(gtin[-1])
        assert validate_gtin_check_digit(gtin)

    @pytest.mark.parametrize(
        "gtin", ["12345670", "036000291452", "1234567890128", "10012345678902"]
    )
    def test_any_single_digit_change_is_rejected(self, gtin):
        for position, digit in enumerate(gtin):
            for replacement in "0123456789":
                if replacement == digit:
                    continue
                mutated = gtin[:position] + replacement + gtin[position + 1:]
                assert not validate_gtin_check_digit(mutated), mutated


class TestActor:
    """Tests for Actor and the permission matrix."""

    def test_role_string_is_coerced(self):
        actor = Actor(id="u1", role="editor")

        assert actor.role == Role.EDITOR
        assert actor.is_elevated

    def test_unknown_role_raises(self):
        with pytest.raises(DomainValidationError):
            Actor(id="u1", role="superuser")

    def test_empty_id_raises(self):
        with pytest.raises(DomainValidationError):
            Actor(id="", role="provider")

    def test_provider_is_base_privilege(self, provider):
        assert not is_elevated(provider)
        assert has_permission(provider, "products", "create")
        assert not has_permission(provider, "products", "approve")
        assert not has_permission(provider, "products", "delete")
        assert has_permission(provider, "history", "read_own")

    def test_admin_and_editor_are_elevated(self, editor, admin):
        for actor in (editor, admin):
            assert is_elevated(actor)
            assert has_permission(actor, "products", "approve")
            assert has_permission(actor, "history", "read_all")

    def test_unauthenticated_has_no_permission(self):
        assert not has_permission(None, "products", "create")
        assert not is_elevated(None)


class TestProduct:
    """Tests for the Product aggregate."""

    def test_provider_creates_pending(self, product_data, provider):
        product = Product.create(product_data, provider)

        assert product.status == ProductStatus.PENDING
        assert product.created_by == provider.id
        assert product.approved_by is None
        assert product.approved_at is None
        assert product.net_weight == 1.0
        assert product.net_weight_unit == WeightUnit.L

    def test_editor_creates_published(self, product_data, editor):
        product = Product.create(product_data, editor)

        assert product.status == ProductStatus.PUBLISHED
        assert product.approved_by == editor.id
        assert product.approved_at is not None

    def test_control_fields_are_ignored(self, product_data, provider):
        product = Product.create(
            {**product_data, "status": "published", "approved_by": "x", "created_by": "y"},
            provider,
        )

        assert product.status == ProductStatus.PENDING
        assert product.approved_by is None
        assert product.created_by == provider.id

    def test_gtin_is_normalized(self, product_data, provider):
        product = Product.create({**product_data, "gtin": "1234 5678 90128"}, provider)

        assert product.gtin == "1234567890128"

    def test_invalid_gtin_raises(self, product_data, provider):
        with pytest.raises(DomainValidationError) as exc_info:
            Product.create({**product_data, "gtin": "1234567890123"}, provider)

        assert "Invalid GTIN" in str(exc_info.value)

    def test_missing_field_raises(self, product_data, provider):
        del product_data["brand"]

        with pytest.raises(DomainValidationError) as exc_info:
            Product.create(product_data, provider)

        assert "brand is required" in str(exc_info.value)

    def test_blank_text_raises(self, product_data, provider):
        with pytest.raises(DomainValidationError):
            Product.create({**product_data, "name": "   "}, provider)

    @pytest.mark.parametrize("weight", [0, 0.001, -1, "1", True])
    def test_invalid_net_weight_raises(self, product_data, provider, weight):
        with pytest.raises(DomainValidationError):
            Product.create({**product_data, "net_weight": weight}, provider)

    def test_unknown_unit_raises(self, product_data, provider):
        with pytest.raises(DomainValidationError):
            Product.create({**product_data, "net_weight_unit": "ton"}, provider)

    def test_approver_pair_must_be_complete(self, product_data):
        with pytest.raises(DomainValidationError):
            Product(
                **product_data,
                created_by="u1",
                status=ProductStatus.PUBLISHED,
                approved_by="u2",
            )

    def test_approve_pending(self, pending_product, editor):
        pending_product.approve(editor.id)

        assert pending_product.is_published
        assert pending_product.approved_by == editor.id
        assert pending_product.approved_at is not None

    def test_approve_published_raises(self, published_product, editor):
        with pytest.raises(InvalidStatusTransitionError):
            published_product.approve(editor.id)

    def test_apply_patch_returns_copy(self, pending_product):
        patched = pending_product.apply_patch({"name": "Skimmed milk"})

        assert patched.name == "Skimmed milk"
        assert pending_product.name == "Whole milk"
        assert patched.id == pending_product.id

    def test_apply_patch_drops_control_and_unknown_fields(self, pending_product):
        patched = pending_product.apply_patch(
            {"status": "published", "gtin": "12345670", "color": "white", "brand": "Other"}
        )

        assert patched.status == ProductStatus.PENDING
        assert patched.gtin == pending_product.gtin
        assert patched.brand == "Other"
        assert not hasattr(patched, "color")

    def test_apply_patch_revalidates(self, pending_product):
        with pytest.raises(DomainValidationError):
            pending_product.apply_patch({"net_weight": 0})


class TestProductDetails:
    """Tests for the denormalized product view."""

    def test_users_are_expanded(self, published_product, editor):
        ref = UserRef(id=editor.id, name="Editor", email="e@example.com", role="editor")
        details = ProductDetails(product=published_product, created_by=ref, approved_by=ref)

        data = details.to_dict()

        assert data["created_by"] == ref.to_dict()
        assert data["approved_by"]["email"] == "e@example.com"

    def test_unresolved_user_keeps_id(self, pending_product, provider):
        data = ProductDetails(product=pending_product).to_dict()

        assert data["created_by"] == {"id": provider.id, "name": None, "email": None, "role": None}
        assert data["approved_by"] is None


class TestAuditEntry:
    """Tests for AuditEntry invariants."""

    def test_created_entry_cannot_have_previous_data(self):
        with pytest.raises(DomainValidationError):
            AuditEntry(
                gtin="12345670",
                product_id=uuid4(),
                action=AuditAction.CREATED,
                changed_by="u1",
                previous_data={"name": "x"},
            )

    def test_deleted_entry_cannot_have_new_data(self):
        with pytest.raises(DomainValidationError):
            AuditEntry(
                gtin="12345670",
                product_id=uuid4(),
                action="deleted",
                changed_by="u1",
                new_data={"name": "x"},
            )

    def test_to_dict(self):
        entry = AuditEntry(
            gtin="12345670",
            product_id=uuid4(),
            action="updated",
            changed_by="u1",
            changes={"name": {"from": "a", "to": "b"}},
        )

        data = entry.to_dict()

        assert data["action"] == "updated"
        assert data["changes"]["name"]["to"] == "b"
        assert isinstance(data["changed_at"], str)


class TestDomainEvent:
    """Tests for event payload shapes."""

    def test_topics(self):
        assert EventType.APPROVED.topic() == "product.approved"
        assert all_topics("catalog") == [
            "catalog.created",
            "catalog.updated",
            "catalog.approved",
            "catalog.deleted",
        ]

    def test_created_event_carries_snapshot(self, published_product):
        event = DomainEvent.from_details(EventType.CREATED, ProductDetails(product=published_product))

        assert event.product_id == str(published_product.id)
        assert event.payload["action"] == "created"
        assert event.payload["gtin"] == published_product.gtin
        assert event.payload["created_by"]["id"] == published_product.created_by

    def test_updated_event_wraps_new_data(self, published_product):
        previous = published_product.to_dict()
        patched = published_product.apply_patch({"name": "Skimmed milk"})

        event = DomainEvent.from_details(
            EventType.UPDATED, ProductDetails(product=patched), previous=previous
        )

        assert event.payload["id"] == str(patched.id)
        assert event.payload["new_data"]["name"] == "Skimmed milk"
        assert event.payload["previous_data"]["name"] == "Whole milk"


class TestSearchDocument:
    """Tests for the search projection."""

    def test_from_denormalized_snapshot(self):
        document = SearchDocument.from_snapshot({
            "id": "p1",
            "gtin": "12345670",
            "name": "Milk",
            "net_weight": 1,
            "status": "published",
            "created_by": {"id": "u1", "name": "Provider"},
            "approved_by": {"id": "u2"},
            "created_at": "2024-05-01T12:00:00Z",
        })

        assert document.id == "p1"
        assert document.net_weight == 1.0
        assert document.created_by_id == "u1"
        assert document.approved_by_id == "u2"
        assert document.created_at == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def test_from_flat_snapshot(self):
        document = SearchDocument.from_snapshot({"_id": "p1", "created_by": "u1"})

        assert document.id == "p1"
        assert document.created_by_id == "u1"
        assert document.approved_by_id is None

    def test_missing_id_raises(self):
        with pytest.raises(DomainValidationError):
            SearchDocument.from_snapshot({"gtin": "12345670"})

    def test_extract_document_id(self):
        assert extract_document_id({"id": 5}) == "5"
        assert extract_document_id({}) is None

    def test_parse_timestamp_rejects_garbage(self):
        with pytest.raises(DomainValidationError):
            parse_timestamp("yesterday")
