"""
HTTP client for the product service query interface.

Used by the search service to check product service liveness and to pull the
full product list for backfills.
"""
from typing import Any, Optional

import httpx

from pkg.logger.logger import get_logger


logger = get_logger(__name__)


SERVICE_TOKEN_HEADER = "X-Service-Token"


class ProductServiceClient:
    """
    Thin async wrapper over ``httpx.AsyncClient``.

    The client is created at startup by the process entry point and closed
    at shutdown.
    """

    def __init__(
        self,
        base_url: str,
        service_token: Optional[str] = None,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: Product service base URL.
            service_token: Token sent in the X-Service-Token header.
            timeout_seconds: Request timeout.
            transport: Custom transport (injectable for tests).
        """
        headers = {SERVICE_TOKEN_HEADER: service_token} if service_token else {}
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_seconds,
            headers=headers,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    async def is_healthy(self) -> bool:
        """
        Check product service liveness.

        Returns:
            True if GET /health answers with a 2xx status.
        """
        try:
            response = await self._client.get("/health")
        except httpx.HTTPError as e:
            logger.debug("Product service health check failed", error=str(e))
            return False
        return response.is_success

    async def list_products(self) -> list[dict[str, Any]]:
        """
        Fetch every product with creator and approver identifiers.

        Returns:
            Product snapshots.

        Raises:
            httpx.HTTPError: On transport failure or a non-2xx status.
        """
        response = await self._client.get("/api/v1/internal/products")
        response.raise_for_status()

        body = response.json()
        products = body.get("products", []) if isinstance(body, dict) else body
        logger.info("Fetched products from product service", count=len(products))
        return products
