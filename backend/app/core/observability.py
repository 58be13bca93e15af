"""
Observability for the ingestion API.

Configures process logging and adds correlation IDs and a structured
log line to every request.
"""

import time
import uuid
import logging
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

logger = logging.getLogger("drivers_tracking.http")

CORRELATION_HEADER = "X-Correlation-ID"


def correlation_id_of(request: Request) -> Optional[str]:
    """Correlation ID assigned by the middleware, if it ran for this request."""
    return getattr(request.state, "correlation_id", None)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("drivers_tracking").setLevel(level)
    # pymongo is chatty at DEBUG (heartbeats, pool events)
    logging.getLogger("pymongo").setLevel(logging.WARNING)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """
    Tags each request with a correlation ID and logs one line per response.

    The ID is kept on ``request.state`` so the error handlers can put it on
    the log record of a failed ping.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id

        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - started) * 1000, 2)

        response.headers[CORRELATION_HEADER] = correlation_id
        response.headers["X-Process-Time"] = str(duration_ms)

        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(
            level,
            "%s %s -> %d in %.2fms [%s]",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            correlation_id,
            extra={
                "correlation_id": correlation_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "ip": request.client.host if request.client else "unknown",
            },
        )
        return response
