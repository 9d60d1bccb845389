"""
Audit History Use Case.

Read access to the audit trail. Base actors only see the history of their
own products and their own changes.
"""
from dataclasses import replace
from typing import Optional, Protocol

from internal.domain.audit import AuditAction, AuditEntry, AuditFilters, AuditStats
from internal.domain.errors import PermissionDeniedError, ProductNotFoundError
from internal.domain.product import Product
from internal.domain.value_objects import Actor, format_gtin, has_permission
from pkg.logger.logger import get_logger


logger = get_logger(__name__)


MAX_HISTORY_PAGE = 100
DEFAULT_AUDIT_PAGE = 10


class AuditReadRepository(Protocol):
    """Protocol for audit trail reads."""

    async def list_for_product(
        self,
        gtin: str,
        limit: int = 50,
        offset: int = 0,
        action: Optional[AuditAction] = None,
    ) -> list[AuditEntry]:
        """List the history of one product."""
        ...

    async def find(self, filters: AuditFilters) -> list[AuditEntry]:
        """Query audit entries."""
        ...

    async def stats_for_product(self, gtin: str) -> AuditStats:
        """Summarize the history of one product."""
        ...


class ProductLookup(Protocol):
    """Protocol for product lookups."""

    async def get_by_gtin(self, gtin: str) -> Optional[Product]:
        """Get product by GTIN."""
        ...


class AuditHistoryService:
    """Service answering audit trail queries."""

    def __init__(self, audit: AuditReadRepository, products: ProductLookup) -> None:
        """
        Initialize the service.

        Args:
            audit: Audit store.
            products: Product repository used for ownership checks.
        """
        self._audit = audit
        self._products = products

    async def get_product_history(
        self,
        gtin: str,
        actor: Optional[Actor],
        limit: int = 50,
        offset: int = 0,
        action: Optional[AuditAction] = None,
    ) -> list[AuditEntry]:
        """
        Get the history of one product, newest first.

        Args:
            gtin: Product GTIN.
            actor: Acting user.
            limit: Page size (capped at 100).
            offset: Number of entries to skip.
            action: Filter by action.

        Returns:
            Audit entries.

        Raises:
            PermissionDeniedError: If unauthenticated, or a base actor asks
                for a product they did not create.
            ProductNotFoundError: If the product does not exist.
        """
        product = await self._authorized_product(gtin, actor)
        return await self._audit.list_for_product(
            product.gtin,
            limit=min(limit, MAX_HISTORY_PAGE),
            offset=offset,
            action=action,
        )

    async def get_audit_history(
        self,
        actor: Optional[Actor],
        filters: Optional[AuditFilters] = None,
    ) -> list[AuditEntry]:
        """
        Query the audit trail across products.

        Base actors are restricted to their own changes.

        Args:
            actor: Acting user.
            filters: Query filters.

        Returns:
            Audit entries, newest first.

        Raises:
            PermissionDeniedError: If unauthenticated.
        """
        if actor is None:
            raise PermissionDeniedError("Authentication required to read the audit trail")

        filters = filters or AuditFilters()
        filters = replace(
            filters,
            gtin=format_gtin(filters.gtin) if filters.gtin else None,
            limit=min(filters.limit or DEFAULT_AUDIT_PAGE, MAX_HISTORY_PAGE),
        )
        if not has_permission(actor, "history", "read_all"):
            filters = replace(filters, changed_by=actor.id)

        logger.debug("Querying audit trail", actor_id=actor.id, gtin=filters.gtin)
        return await self._audit.find(filters)

    async def get_history_stats(self, gtin: str, actor: Optional[Actor]) -> AuditStats:
        """
        Summarize the history of one product.

        Raises:
            PermissionDeniedError: If the actor may not read this history.
            ProductNotFoundError: If the product does not exist.
        """
        product = await self._authorized_product(gtin, actor)
        return await self._audit.stats_for_product(product.gtin)

    async def _authorized_product(self, gtin: str, actor: Optional[Actor]) -> Product:
        if actor is None:
            raise PermissionDeniedError("Authentication required to read product history")

        product = await self._products.get_by_gtin(format_gtin(gtin))
        if product is None:
            raise ProductNotFoundError(gtin)

        if not has_permission(actor, "history", "read_all") and not product.is_owned_by(actor):
            raise PermissionDeniedError(
                "You do not have permission to view the history of this product", actor.id
            )
        return product
