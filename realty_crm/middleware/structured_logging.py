# realty_crm/middleware/structured_logging.py
from __future__ import annotations

import logging
import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

log = logging.getLogger("realty_crm.request")


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """One `http_request` line per request; request id and actor come from the request context."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        t0 = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            log.info(
                "http_request",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "query": str(request.url.query or ""),
                    "status_code": status_code,
                    "latency_ms": int((time.perf_counter() - t0) * 1000),
                },
            )
