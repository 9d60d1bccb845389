"""
Health and metrics endpoints shared by the catalog HTTP apps.
"""
from typing import Awaitable, Callable, Optional

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST


ReadinessCheck = Callable[[], Awaitable[bool]]


def create_system_router(
    service: str,
    readiness: Optional[Callable[[], Optional[ReadinessCheck]]] = None,
) -> APIRouter:
    """
    Build the /health and /metrics router for a service.

    Args:
        service: Service name reported by /health.
        readiness: Returns the current readiness check, if one is wired.

    Returns:
        APIRouter.
    """
    router = APIRouter(tags=["system"])

    @router.get("/health")
    async def health_check() -> Response:
        """
        Health check endpoint.

        Returns 503 while the service's storage is unreachable.
        """
        check = readiness() if readiness else None
        if check is not None and not await check():
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "unhealthy", "service": service},
            )
        return JSONResponse(content={"status": "healthy", "service": service})

    @router.get("/metrics")
    async def metrics() -> Response:
        """
        Prometheus metrics endpoint.

        Returns:
            Prometheus metrics in text format.
        """
        return Response(
            content=generate_latest(),
            media_type=CONTENT_TYPE_LATEST
        )

    return router
