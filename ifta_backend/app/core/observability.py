"""
Observability Middleware.

Adds correlation IDs and structured logging context to requests.
"""

import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# Configure structured logger
logger = logging.getLogger("ifta.http")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure the root `ifta` logger once at startup."""
    root = logging.getLogger("ifta")
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(level.upper())


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """
    Tags each request with a correlation ID and logs one line per request.

    The ID is taken from `X-Correlation-ID` when the caller sends one and is
    exposed to handlers as `request.state.correlation_id`.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        request.state.correlation_id = correlation_id

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers["X-Correlation-ID"] = correlation_id
        response.headers["X-Process-Time"] = f"{elapsed_ms:.2f}"

        context = {
            "correlation_id": correlation_id,
            "actor": request.headers.get("X-Actor"),
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(elapsed_ms, 2),
        }
        message = "%s %s -> %d (%.2fms)"
        args = (request.method, request.url.path, response.status_code, elapsed_ms)

        if response.status_code >= 500:
            logger.error(message, *args, extra=context)
        elif response.status_code >= 400:
            logger.warning(message, *args, extra=context)
        else:
            logger.info(message, *args, extra=context)

        return response
