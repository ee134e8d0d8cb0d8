"""
DarkMode Backend — Rate Limiting Middleware
=============================================

What:  Per-IP sliding window rate limiter for the /api surface.
How:   Each (bucket, IP) pair keeps a list of request timestamps. Timestamps
       older than the window are dropped on every request; a full window is
       answered with 429 and a Retry-After header.

Buckets:
    webhook   /api/webhooks/*   WEBHOOK_RATE_LIMIT_REQUESTS per WEBHOOK_RATE_LIMIT_WINDOW
    api       /api/*            RATE_LIMIT_REQUESTS per RATE_LIMIT_WINDOW
Anything outside /api (health, docs) is never limited.

State is in-process. Multiple workers each keep their own counters.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.config import settings
from app.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

API_PREFIX = "/api/"
WEBHOOK_PREFIX = "/api/webhooks"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """In-memory sliding window limiter with a separate webhook bucket."""

    def __init__(
        self,
        app,
        requests: Optional[int] = None,
        window: Optional[int] = None,
        webhook_requests: Optional[int] = None,
        webhook_window: Optional[int] = None,
    ):
        super().__init__(app)
        self._limits: Dict[str, Tuple[int, int]] = {
            "api": (requests or settings.rate_limit_requests, window or settings.rate_limit_window),
            "webhook": (
                webhook_requests or settings.webhook_rate_limit_requests,
                webhook_window or settings.webhook_rate_limit_window,
            ),
        }
        self._requests: Dict[Tuple[str, str], List[float]] = defaultdict(list)
        self._seen = 0

    @staticmethod
    def bucket_for(path: str) -> Optional[str]:
        if path.startswith(WEBHOOK_PREFIX):
            return "webhook"
        if path.startswith(API_PREFIX):
            return "api"
        return None

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        bucket = self.bucket_for(request.url.path)
        if bucket is None:
            return await call_next(request)

        limit, window = self._limits[bucket]
        client_ip = request.client.host if request.client else "unknown"
        key = (bucket, client_ip)
        now = time.time()
        window_start = now - window

        timestamps = [ts for ts in self._requests[key] if ts > window_start]
        self._requests[key] = timestamps

        if len(timestamps) >= limit:
            retry_after = int(timestamps[0] + window - now) + 1
            logger.warning(
                "Rate limit exceeded for IP %s on %s: %d requests in %ds window",
                client_ip, bucket, len(timestamps), window,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "Too many requests, please try again later",
                    "code": "RATE_LIMITED",
                    "request_id": request_id_var.get(""),
                },
                headers={"Retry-After": str(retry_after)},
            )

        timestamps.append(now)

        self._seen += 1
        if self._seen % 1000 == 0:
            self._cleanup_inactive(now)

        return await call_next(request)

    def _cleanup_inactive(self, now: float) -> None:
        inactive = [
            key for key, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] < now - self._limits[key[0]][1]
        ]
        for key in inactive:
            del self._requests[key]
        if inactive:
            logger.debug("Cleaned up %d inactive rate limit entries", len(inactive))
