"""
Pytest configuration and fixtures.
"""
from datetime import datetime, timezone
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from internal.domain.product import Product, UserRef
from internal.domain.value_objects import Actor


class InMemoryProductRepository:
    """Dict-backed product store keyed by GTIN."""

    def __init__(self) -> None:
        self.products: dict[str, Product] = {}

    async def get_by_gtin(self, gtin: str) -> Optional[Product]:
        return self.products.get(gtin)

    async def get_by_id(self, product_id) -> Optional[Product]:
        for product in self.products.values():
            if product.id == product_id:
                return product
        return None

    async def create(self, product: Product) -> Product:
        from internal.domain.errors import ProductAlreadyExistsError

        if product.gtin in self.products:
            raise ProductAlreadyExistsError(product.gtin)
        self.products[product.gtin] = product
        return product

    async def update(self, product: Product) -> Product:
        self.products[product.gtin] = product
        return product

    async def delete(self, product_id) -> bool:
        for gtin, product in list(self.products.items()):
            if product.id == product_id:
                del self.products[gtin]
                return True
        return False

    async def list_products(
        self,
        status=None,
        created_by=None,
        published_or_owned_by=None,
        limit=20,
        offset=0,
    ) -> list[Product]:
        items = sorted(self.products.values(), key=lambda p: p.created_at, reverse=True)
        if status is not None:
            items = [p for p in items if p.status.value == status]
        if created_by is not None:
            items = [p for p in items if p.created_by == created_by]
        if published_or_owned_by is not None:
            items = [
                p for p in items
                if p.is_published or p.created_by == published_or_owned_by
            ]
        return items[offset:offset + limit]

    async def list_all(self) -> list[Product]:
        return sorted(self.products.values(), key=lambda p: p.created_at, reverse=True)


class InMemoryAuditRepository:
    """List-backed append-only audit store."""

    def __init__(self) -> None:
        self.entries = []

    async def append(self, entry):
        self.entries.append(entry)
        return entry

    async def list_for_product(self, gtin, limit=50, offset=0, action=None):
        items = [e for e in reversed(self.entries) if e.gtin == gtin]
        if action is not None:
            items = [e for e in items if e.action == action]
        return items[offset:offset + limit]

    def for_gtin(self, gtin):
        return [e for e in self.entries if e.gtin == gtin]


@pytest.fixture
def provider() -> Actor:
    """Base-privilege actor."""
    return Actor(id="user-provider", role="provider")


@pytest.fixture
def other_provider() -> Actor:
    """Another base-privilege actor."""
    return Actor(id="user-other", role="provider")


@pytest.fixture
def editor() -> Actor:
    """Elevated actor."""
    return Actor(id="user-editor", role="editor")


@pytest.fixture
def admin() -> Actor:
    """Elevated actor."""
    return Actor(id="user-admin", role="admin")


@pytest.fixture
def product_data() -> dict:
    """Valid product creation payload."""
    return {
        "gtin": "1234567890128",
        "name": "Whole milk",
        "description": "Pasteurized whole milk",
        "brand": "Dairy Co",
        "manufacturer": "Dairy Co Ltd",
        "net_weight": 1,
        "net_weight_unit": "l",
    }


@pytest.fixture
def pending_product(product_data, provider) -> Product:
    """Pending product created by the provider fixture."""
    return Product.create(product_data, provider)


@pytest.fixture
def published_product(product_data, editor) -> Product:
    """Published product created by the editor fixture."""
    return Product.create({**product_data, "gtin": "12345670"}, editor)


@pytest.fixture
def product_repository() -> InMemoryProductRepository:
    return InMemoryProductRepository()


@pytest.fixture
def audit_repository() -> InMemoryAuditRepository:
    return InMemoryAuditRepository()


@pytest.fixture
def user_repository() -> MagicMock:
    """User store resolving every known fixture actor."""
    users = {
        uid: UserRef(id=uid, name=uid.replace("user-", "").title(), email=f"{uid}@example.com", role=role)
        for uid, role in (
            ("user-provider", "provider"),
            ("user-other", "provider"),
            ("user-editor", "editor"),
            ("user-admin", "admin"),
        )
    }
    repo = MagicMock()
    repo.get_by_id = AsyncMock(side_effect=lambda uid: users.get(uid))
    repo.get_many = AsyncMock(side_effect=lambda ids: {uid: users[uid] for uid in ids if uid in users})
    return repo


@pytest.fixture
def event_sink() -> MagicMock:
    """Publisher recording every event."""
    sink = MagicMock()
    sink.publish_event = AsyncMock(return_value=True)
    return sink


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
