"""
Correlation ID Middleware

Tags every request with a correlation id that is logged, forwarded to the
case-management backend and echoed back to the caller.
"""

import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from ...utils.logger import set_correlation_id, get_logger
from ...utils.idgen import generate_correlation_id

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-Id"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware that binds a correlation ID to each request.

    - Reuses the caller's X-Correlation-Id when present
    - Logs method, path, status and duration once the response is ready
    - Adds the id to the response headers
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or generate_correlation_id()
        set_correlation_id(correlation_id)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.0f} ms)",
            extra={"status_code": response.status_code}
        )
        response.headers[CORRELATION_HEADER] = correlation_id
        return response
