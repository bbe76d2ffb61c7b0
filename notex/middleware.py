"""Request middleware: correlation ids and timing headers."""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from notex.structured_logging import set_correlation_id

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        cid = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        set_correlation_id(cid)
        start_time = time.perf_counter()

        response = await call_next(request)

        process_time_ms = (time.perf_counter() - start_time) * 1000
        response.headers[CORRELATION_HEADER] = cid
        response.headers["X-Process-Time-Ms"] = f"{process_time_ms:.2f}"
        # the stream returns as soon as headers are ready, so its timing says nothing
        if not request.url.path.endswith("/events"):
            logger.debug("%s %s completed in %.2fms", request.method, request.url.path, process_time_ms)
        return response
