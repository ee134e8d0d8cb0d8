"""
DarkMode Backend — Request Logging Middleware
===============================================

What:  One access log line per request on the `darkmode.access` logger.
How:   Measures wall time around the handler and picks the level from the
       status (5xx ERROR, 4xx WARNING, otherwise INFO). /health is skipped.

Request bodies and the Authorization / X-API-Key / Stripe-Signature headers
are never logged.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("darkmode.access")

QUIET_PATHS = {"/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        account_id = getattr(request.state, "account_id", None)
        logger.log(
            log_level,
            "%s %s %d %.1fms from %s%s",
            request.method,
            path,
            status,
            duration_ms,
            client_ip,
            f" account={account_id}" if account_id else "",
            extra={
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
