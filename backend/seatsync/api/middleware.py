"""
Request middleware: request ids, timing, and trip context for log correlation.
"""

import re
import time
import uuid
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import structlog

from seatsync.core.logging import get_logger

logger = get_logger(__name__)

TRIP_PATH = re.compile(r"/trips/(?P<trip_id>[^/]+)(?:/seats/(?P<seat_id>[^/]+))?")


def trip_context(path: str) -> dict:
    """Pull trip_id / seat_id out of a seat route so every log line carries them."""
    match = TRIP_PATH.search(path)
    if not match:
        return {}
    context = {"trip_id": match.group("trip_id")}
    seat_id: Optional[str] = match.group("seat_id")
    if seat_id and seat_id != "reload":
        context["seat_id"] = seat_id
    return context


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Binds request_id, method, path and any trip/seat ids to structlog
    contextvars, then logs status and duration once the response is ready.
    An incoming X-Request-ID is reused so client and server logs line up.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        start_time = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            **trip_context(request.url.path),
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                error=str(e),
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        log = logger.warning if response.status_code >= 500 else logger.info
        log("request_completed", status_code=response.status_code, duration_ms=duration_ms)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms}ms"
        return response
