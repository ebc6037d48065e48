"""Request logging middleware with correlation IDs."""

import time
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from mapdash.core.logging_config import clear_request_id, get_logger, set_request_id

logger = get_logger(__name__)

# Liveness probes would drown out real traffic at INFO
QUIET_PATHS = frozenset({"/health"})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One log line per request, tagged with the request's correlation id.

    An incoming `X-Request-ID` is reused so a dashboard action can be traced
    from the browser through route planning and history writes.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = set_request_id(request.headers.get("X-Request-ID") or None)
        started = time.perf_counter()
        response: Optional[Response] = None

        try:
            response = await call_next(request)
            return response
        finally:
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            fields = {
                "method": request.method,
                "path": request.url.path,
                "duration_ms": elapsed_ms,
            }

            if response is None:
                logger.error("Request crashed", extra={"extra_fields": fields}, exc_info=True)
            else:
                fields["status_code"] = response.status_code
                response.headers["X-Request-ID"] = request_id
                response.headers["X-Response-Time"] = f"{elapsed_ms}ms"
                if request.url.path not in QUIET_PATHS:
                    level = "warning" if response.status_code >= 500 else "info"
                    getattr(logger, level)(
                        f"{request.method} {request.url.path} -> {response.status_code}",
                        extra={"extra_fields": fields},
                    )

            clear_request_id()
