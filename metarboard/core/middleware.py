"""Request logging middleware with per-request ids.

Each request gets a short id, echoed back in ``X-Request-ID`` and used in the
error envelope. The access line carries the station selector (``ids``) of
report queries so provider failures can be traced to the stations asked for.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("metarboard.access")

_MAX_IDS_LOGGED = 60


def _station_context(request: Request) -> str:
    ids = request.query_params.get("ids")
    if not ids:
        return ""
    if len(ids) > _MAX_IDS_LOGGED:
        ids = ids[:_MAX_IDS_LOGGED] + "..."
    return f" ids={ids}"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = uuid.uuid4().hex[:12]
        request.state.request_id = request_id

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        response.headers["X-Request-ID"] = request_id

        # upstream and ledger failures surface as 5xx
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "%s %s%s %d %.1fms req=%s",
            request.method,
            request.url.path,
            _station_context(request),
            response.status_code,
            duration_ms,
            request_id,
        )

        return response
