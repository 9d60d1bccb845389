"""
HTTP Middleware for the catalog services.

Request context for structured logs and Prometheus request metrics.
"""
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from internal.infrastructure.metrics import HTTP_REQUESTS_TOTAL, HTTP_REQUEST_DURATION
from pkg.logger.logger import set_actor_id, set_request_id


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Add request ID and actor ID to the logging context.

    The request ID is taken from X-Request-ID or generated, and echoed back.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        set_request_id(request_id)
        set_actor_id(request.headers.get("X-User-Id"))

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Count and time HTTP requests.

    Requests are labelled by route template (/api/v1/products/{gtin}), so
    GTINs and document ids never become label values. A request whose
    handler raises is recorded as a 500.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            route = request.scope.get("route")
            endpoint = getattr(route, "path", None) or request.url.path

            HTTP_REQUESTS_TOTAL.labels(
                method=request.method,
                endpoint=endpoint,
                status_code=status_code,
            ).inc()
            HTTP_REQUEST_DURATION.labels(
                method=request.method,
                endpoint=endpoint,
            ).observe(time.perf_counter() - started)


__all__ = [
    "MetricsMiddleware",
    "RequestContextMiddleware",
]
