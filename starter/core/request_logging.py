"""
Request logging middleware for the generator API.

One structured line per request, tagged with the request id that every
engine log line of the same request also carries. Request bodies are
never logged; for archive downloads only the byte count is recorded.
"""
import logging
import time
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from starter.core.metrics import metrics
from starter.core.logging import bind_request_id

logger = logging.getLogger("starter.request")

REQUEST_ID_HEADER = "X-Request-Id"

# Probes and scrapes are not worth a log line each
QUIET_PATHS = frozenset({"/health", "/metrics"})


def client_address(request: Request) -> str:
    """First hop of X-Forwarded-For, else the socket peer."""
    forwarded: Optional[str] = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def record_status(status_code: int) -> None:
    metrics.inc("requests_total")
    status_class = f"requests_{status_code // 100}xx"
    if status_class in ("requests_2xx", "requests_4xx", "requests_5xx"):
        metrics.inc(status_class)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Assigns X-Request-Id, times the request, logs it and counts it."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = bind_request_id(request.headers.get(REQUEST_ID_HEADER))
        started = time.perf_counter()

        try:
            response: Response = await call_next(request)
        except Exception:
            record_status(500)
            logger.exception(
                "request_failed",
                extra={"method": request.method, "path": request.url.path},
            )
            raise

        duration_ms = int((time.perf_counter() - started) * 1000)
        response.headers[REQUEST_ID_HEADER] = request_id
        record_status(response.status_code)

        if request.url.path in QUIET_PATHS:
            return response

        extra = {
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
            "client_ip": client_address(request),
        }
        if response.headers.get("content-type") == "application/zip":
            extra["archive_bytes"] = int(response.headers.get("content-length", 0))
        logger.info("request", extra=extra)

        return response
