"""
Product Lifecycle Service.

Enforces the product status state machine and ownership rules, and drives
the side effects of every accepted mutation in a fixed order:
persist, audit, publish. Audit and publish failures never fail the mutation.
"""
from dataclasses import replace
from typing import Any, Awaitable, Callable, Iterable, Optional, Protocol
from uuid import UUID

from internal.domain.audit import AuditAction, AuditEntry
from internal.domain.errors import (
    PermissionDeniedError,
    ProductAlreadyExistsError,
    ProductNotFoundError,
)
from internal.domain.events import DomainEvent, EventType
from internal.domain.product import Product, ProductDetails, ProductStatus, UserRef
from internal.domain.value_objects import Actor, format_gtin, has_permission
from internal.infrastructure.metrics.prometheus import PRODUCT_MUTATIONS
from internal.usecase.audit_trail import AuditTrailWriter
from pkg.logger.logger import get_logger


logger = get_logger(__name__)


RECENT_HISTORY_LIMIT = 10
MAX_PAGE_SIZE = 100


class ProductRepository(Protocol):
    """Protocol for product repository operations."""

    async def get_by_gtin(self, gtin: str) -> Optional[Product]:
        """Get product by GTIN."""
        ...

    async def create(self, product: Product) -> Product:
        """Insert a product; raises ProductAlreadyExistsError on a duplicate GTIN."""
        ...

    async def update(self, product: Product) -> Product:
        """Update a product."""
        ...

    async def delete(self, product_id: UUID) -> bool:
        """Delete a product."""
        ...

    async def list_products(
        self,
        status: Optional[str] = None,
        created_by: Optional[str] = None,
        published_or_owned_by: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Product]:
        """List products, newest first."""
        ...

    async def list_all(self) -> list[Product]:
        """List every product."""
        ...


class UserRepository(Protocol):
    """Protocol for user lookups."""

    async def get_many(self, user_ids: Iterable[str]) -> dict[str, UserRef]:
        """Get several users by ID."""
        ...


class HistoryRepository(Protocol):
    """Protocol for reading product history."""

    async def list_for_product(
        self,
        gtin: str,
        limit: int = 50,
        offset: int = 0,
        action: Optional[AuditAction] = None,
    ) -> list[AuditEntry]:
        """List the history of one product, newest first."""
        ...


class EventSink(Protocol):
    """Protocol for best-effort event publishing."""

    async def publish_event(self, event: DomainEvent) -> bool:
        """Publish an event; never raises."""
        ...


class ProductLifecycleService:
    """
    Service orchestrating product create, update, approve and delete.

    This service:
    1. Checks role and ownership rules
    2. Persists the mutation
    3. Writes exactly one audit entry for it
    4. Publishes an event for published results and deletions
    """

    def __init__(
        self,
        repository: ProductRepository,
        users: UserRepository,
        audit: AuditTrailWriter,
        publisher: EventSink,
        history: Optional[HistoryRepository] = None,
    ) -> None:
        """
        Initialize the lifecycle service.

        Args:
            repository: Product repository.
            users: User repository used to expand references.
            audit: Audit trail writer.
            publisher: Event publisher.
            history: Audit store for detail views (optional).
        """
        self._repository = repository
        self._users = users
        self._audit = audit
        self._publisher = publisher
        self._history = history

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    async def create(self, data: dict[str, Any], actor: Optional[Actor]) -> ProductDetails:
        """
        Create a product.

        Elevated actors publish directly; base actors create pending products.

        Args:
            data: Product fields including the GTIN.
            actor: Creating actor.

        Returns:
            Denormalized view of the created product.

        Raises:
            PermissionDeniedError: If the actor is not authenticated.
            DomainValidationError: If the GTIN or a required field is invalid.
            ProductAlreadyExistsError: If the GTIN is already taken.
        """
        actor = self._require_permission(actor, "create", "create products")
        product = Product.create(data, actor)

        if await self._repository.get_by_gtin(product.gtin):
            raise ProductAlreadyExistsError(product.gtin)

        inserted: Optional[Product] = None

        async def persist() -> Product:
            nonlocal inserted
            inserted = await self._repository.create(product)
            return inserted

        try:
            await self._audited_mutation(AuditAction.CREATED, actor, None, persist)
            details = await self._compose(product)
            if product.is_published:
                await self._publish(EventType.CREATED, details)
        except Exception as e:
            if inserted is not None:
                await self._compensate_create(inserted, e)
            raise

        logger.info(
            "Product created",
            gtin=product.gtin,
            product_id=str(product.id),
            status=product.status.value,
            actor_id=actor.id,
        )
        return details

    async def update(
        self,
        gtin: str,
        patch: dict[str, Any],
        actor: Optional[Actor],
    ) -> ProductDetails:
        """
        Update the descriptive fields of a product.

        Control fields (status, creator, approver, approval time) and
        immutable fields are ignored; unknown keys are dropped.

        Args:
            gtin: Product GTIN.
            patch: Field updates.
            actor: Acting user.

        Returns:
            Denormalized view of the updated product.

        Raises:
            PermissionDeniedError: If a base actor does not own the pending product.
            ProductNotFoundError: If the product does not exist.
            DomainValidationError: If the patched product is invalid.
        """
        actor = self._require_actor(actor, "update products")
        product = await self._get_existing(gtin)

        if not has_permission(actor, "products", "update_all"):
            owns_pending = (
                product.status == ProductStatus.PENDING and product.is_owned_by(actor)
            )
            if not owns_pending:
                raise PermissionDeniedError(
                    "You can only update your own pending products", actor.id
                )

        patched = product.apply_patch(patch)
        await self._audited_mutation(
            AuditAction.UPDATED, actor, product, lambda: self._repository.update(patched)
        )

        details = await self._compose(patched)
        if patched.is_published:
            await self._publish(EventType.UPDATED, details, previous=product.to_dict())

        logger.info("Product updated", gtin=patched.gtin, actor_id=actor.id)
        return details

    async def approve(self, gtin: str, actor: Optional[Actor]) -> ProductDetails:
        """
        Publish a pending product.

        Args:
            gtin: Product GTIN.
            actor: Approving actor.

        Returns:
            Denormalized view of the approved product.

        Raises:
            PermissionDeniedError: If the actor is not elevated.
            ProductNotFoundError: If the product does not exist.
            InvalidStatusTransitionError: If the product is not pending.
        """
        actor = self._require_permission(actor, "approve", "approve products")
        product = await self._get_existing(gtin)

        approved = replace(product)
        approved.approve(actor.id)

        await self._audited_mutation(
            AuditAction.APPROVED, actor, product, lambda: self._repository.update(approved)
        )

        details = await self._compose(approved)
        await self._publish(EventType.APPROVED, details)

        logger.info("Product approved", gtin=approved.gtin, actor_id=actor.id)
        return details

    async def delete(self, gtin: str, actor: Optional[Actor]) -> None:
        """
        Delete a product.

        The audit entry is written before the row is removed. A deletion
        event is published whatever the prior status.

        Args:
            gtin: Product GTIN.
            actor: Acting user.

        Raises:
            PermissionDeniedError: If the actor is not elevated.
            ProductNotFoundError: If the product does not exist.
        """
        actor = self._require_permission(actor, "delete", "delete products")
        product = await self._get_existing(gtin)
        details = await self._compose(product)

        async def remove() -> None:
            await self._repository.delete(product.id)

        await self._audited_mutation(
            AuditAction.DELETED, actor, product, remove, audit_first=True
        )
        await self._publish(EventType.DELETED, details)

        logger.info("Product deleted", gtin=product.gtin, actor_id=actor.id)

    # ========================================================================
    # QUERIES
    # ========================================================================

    async def list_products(
        self,
        actor: Optional[Actor],
        status: Optional[ProductStatus] = None,
        created_by: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[ProductDetails]:
        """
        List the products visible to an actor, newest first.

        Unauthenticated callers see published products; base actors also
        see their own pending products; elevated actors see everything.

        Args:
            actor: Acting user, or None.
            status: Filter by status.
            created_by: Filter by creator.
            limit: Page size (capped at 100).
            offset: Number of products to skip.

        Returns:
            Denormalized product views.
        """
        status_value = ProductStatus(status).value if status is not None else None
        limit = min(limit, MAX_PAGE_SIZE)

        if actor is None:
            if status_value not in (None, ProductStatus.PUBLISHED.value):
                return []
            products = await self._repository.list_products(
                status=ProductStatus.PUBLISHED.value,
                created_by=created_by,
                limit=limit,
                offset=offset,
            )
        elif has_permission(actor, "products", "read_all"):
            products = await self._repository.list_products(
                status=status_value,
                created_by=created_by,
                limit=limit,
                offset=offset,
            )
        else:
            products = await self._repository.list_products(
                status=status_value,
                created_by=created_by,
                published_or_owned_by=actor.id,
                limit=limit,
                offset=offset,
            )

        return await self._compose_many(products)

    async def get_product(
        self,
        gtin: str,
        actor: Optional[Actor],
    ) -> Optional[ProductDetails]:
        """
        Get one product with its recent history.

        Args:
            gtin: Product GTIN.
            actor: Acting user, or None.

        Returns:
            Denormalized view, or None if absent or not visible to an
            unauthenticated caller.

        Raises:
            PermissionDeniedError: If a base actor asks for someone else's
                pending product.
        """
        product = await self._repository.get_by_gtin(format_gtin(gtin))
        if product is None:
            return None

        if product.status == ProductStatus.PENDING:
            if actor is None:
                return None
            if not has_permission(actor, "products", "read_all") and not product.is_owned_by(actor):
                raise PermissionDeniedError(
                    "You do not have permission to view this product", actor.id
                )

        details = await self._compose(product)
        if self._history is not None:
            details.history = await self._history.list_for_product(
                product.gtin, limit=RECENT_HISTORY_LIMIT
            )
        return details

    async def list_pending(
        self,
        actor: Optional[Actor],
        limit: int = 20,
        offset: int = 0,
    ) -> list[ProductDetails]:
        """
        List products awaiting approval.

        Raises:
            PermissionDeniedError: If the actor is not elevated.
        """
        return await self.list_by_status(ProductStatus.PENDING, actor, limit, offset)

    async def list_by_status(
        self,
        status: ProductStatus,
        actor: Optional[Actor],
        limit: int = 20,
        offset: int = 0,
    ) -> list[ProductDetails]:
        """
        List products in one status.

        Args:
            status: Status to list.
            actor: Acting user.
            limit: Page size (capped at 100).
            offset: Number of products to skip.

        Returns:
            Denormalized product views.

        Raises:
            PermissionDeniedError: If the actor is not elevated.
        """
        actor = self._require_permission(actor, "read_all", "list products by status")
        products = await self._repository.list_products(
            status=ProductStatus(status).value,
            limit=min(limit, MAX_PAGE_SIZE),
            offset=offset,
        )
        return await self._compose_many(products)

    async def list_all_for_sync(self) -> list[ProductDetails]:
        """Return every product, denormalized, for search index backfills."""
        products = await self._repository.list_all()
        return await self._compose_many(products)

    # ========================================================================
    # HELPERS
    # ========================================================================

    async def _audited_mutation(
        self,
        action: AuditAction,
        actor: Actor,
        before: Optional[Product],
        persist: Callable[[], Awaitable[Optional[Product]]],
        audit_first: bool = False,
    ) -> Optional[Product]:
        """
        Snapshot, persist, diff and audit one mutation.

        Args:
            action: Audited action.
            actor: Acting user.
            before: Product before the mutation (None for creations).
            persist: Coroutine function performing the write and returning
                the product after it (None for deletions).
            audit_first: Record the entry before persisting (deletions).

        Returns:
            The product returned by `persist`.
        """
        snapshot_before = before.to_dict() if before is not None else None

        if audit_first:
            await self._audit.record(
                gtin=before.gtin,
                product_id=before.id,
                action=action,
                actor_id=actor.id,
                before=snapshot_before,
                after=None,
            )
            after = await persist()
        else:
            after = await persist()
            subject = after if after is not None else before
            await self._audit.record(
                gtin=subject.gtin,
                product_id=subject.id,
                action=action,
                actor_id=actor.id,
                before=snapshot_before,
                after=after.to_dict() if after is not None else None,
            )

        PRODUCT_MUTATIONS.labels(action=action.value).inc()
        return after

    async def _compensate_create(self, product: Product, error: Exception) -> None:
        """Best-effort removal of a product whose creation failed midway."""
        logger.warning(
            "Rolling back product creation",
            gtin=product.gtin,
            product_id=str(product.id),
            error=str(error),
        )
        try:
            await self._repository.delete(product.id)
        except Exception as e:
            logger.error(
                "Failed to roll back product creation",
                gtin=product.gtin,
                product_id=str(product.id),
                error=str(e),
            )

    async def _publish(
        self,
        event_type: EventType,
        details: ProductDetails,
        previous: Optional[dict[str, Any]] = None,
    ) -> bool:
        event = DomainEvent.from_details(event_type, details, previous=previous)
        return await self._publisher.publish_event(event)

    async def _get_existing(self, gtin: str) -> Product:
        product = await self._repository.get_by_gtin(format_gtin(gtin))
        if product is None:
            raise ProductNotFoundError(gtin)
        return product

    async def _compose(self, product: Product) -> ProductDetails:
        return (await self._compose_many([product]))[0]

    async def _compose_many(self, products: list[Product]) -> list[ProductDetails]:
        """Expand creator and approver references with one user lookup."""
        user_ids = set()
        for product in products:
            user_ids.add(product.created_by)
            if product.approved_by:
                user_ids.add(product.approved_by)

        users = await self._users.get_many(user_ids) if user_ids else {}
        return [
            ProductDetails(
                product=product,
                created_by=users.get(product.created_by),
                approved_by=users.get(product.approved_by) if product.approved_by else None,
            )
            for product in products
        ]

    def _require_actor(self, actor: Optional[Actor], purpose: str) -> Actor:
        if actor is None:
            raise PermissionDeniedError(f"Authentication required to {purpose}")
        return actor

    def _require_permission(
        self,
        actor: Optional[Actor],
        permission: str,
        purpose: str,
    ) -> Actor:
        actor = self._require_actor(actor, purpose)
        if not has_permission(actor, "products", permission):
            raise PermissionDeniedError(
                f"Role '{actor.role.value}' is not allowed to {purpose}", actor.id
            )
        return actor
