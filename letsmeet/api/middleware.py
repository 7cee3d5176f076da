"""
Request logging middleware.

Tags each request with a short id (or the caller's X-Request-ID), logs the
operation that handled it with its outcome and duration, and echoes the id
back in the X-Request-ID header.
"""

import logging
import time
import uuid
from contextvars import ContextVar

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"
SLOW_REQUEST_SECONDS = 1.0

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")

logger = logging.getLogger(__name__)


def get_request_id() -> str:
    """Request id of the request being handled, or '' outside a request."""
    return request_id_ctx.get()


def operation_name(request: Request) -> str:
    """
    Name of the endpoint that served the request.

    Routing stores the matched route in the scope; unmatched requests fall
    back to the raw path.
    """
    route = request.scope.get("route")
    return getattr(route, "name", None) or request.url.path


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request by operation, status and duration."""

    async def dispatch(self, request: Request, call_next) -> Response:
        incoming = request.headers.get(REQUEST_ID_HEADER, "").strip()
        req_id = incoming[:64] if incoming else uuid.uuid4().hex[:8]
        request_id_ctx.set(req_id)

        logger.debug(
            f"[{req_id}] {request.method} {request.url.path}",
            extra={
                "request_id": req_id,
                "method": request.method,
                "path": request.url.path,
                "query": str(request.query_params),
            },
        )

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            elapsed = time.perf_counter() - start
            logger.error(
                f"[{req_id}] {operation_name(request)} failed after {elapsed:.2f}s: {e}",
                extra={"request_id": req_id, "elapsed_ms": elapsed * 1000},
                exc_info=True,
            )
            raise

        elapsed = time.perf_counter() - start
        operation = operation_name(request)
        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400 or elapsed >= SLOW_REQUEST_SECONDS:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(
            level,
            f"[{req_id}] {operation} -> {response.status_code} in {elapsed:.2f}s",
            extra={
                "request_id": req_id,
                "operation": operation,
                "status_code": response.status_code,
                "elapsed_ms": elapsed * 1000,
            },
        )

        response.headers[REQUEST_ID_HEADER] = req_id
        return response
