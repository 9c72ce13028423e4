"""
StackIt Backend — Rate Limiting Middleware
===========================================

What:  Per-client sliding window rate limiter for mutating requests.
Why:   Votes, accepts and deletes each open a transaction and may retry on
       conflict; a client hammering the vote button should be throttled
       before it reaches the database. Reads are not limited.
How:   Tracks request timestamps per client IP in memory. `X-User-Id` is an
       unauthenticated header, so it is never used as the key: rotating it
       must not open a fresh window.

Algorithm: Sliding Window Counter
    1. Each caller gets a list of request timestamps
    2. On each mutating request, drop timestamps older than the window
    3. If remaining count >= limit, reject with 429 and Retry-After
    4. Otherwise record the current timestamp and allow through

Single-process only: state lives in this worker's memory. Multi-worker
deployments need a shared store.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.config import settings
from app.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory sliding window rate limiter.

    Configuration (from settings unless passed explicitly):
        max_requests: RATE_LIMIT_REQUESTS per window (default: 120)
        window:       RATE_LIMIT_WINDOW in seconds (default: 60)
    """

    LIMITED_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

    def __init__(
        self,
        app,
        max_requests: Optional[int] = None,
        window: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(app, **kwargs)
        self.max_requests = max_requests or settings.rate_limit_requests
        self.window = window or settings.rate_limit_window
        self._requests: Dict[str, List[float]] = defaultdict(list)

    @staticmethod
    def caller_key(request: Request) -> str:
        client_ip = request.client.host if request.client else "unknown"
        return f"ip:{client_ip}"

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.method not in self.LIMITED_METHODS:
            return await call_next(request)

        key = self.caller_key(request)
        now = time.time()
        window_start = now - self.window

        self._requests[key] = [ts for ts in self._requests[key] if ts > window_start]

        if len(self._requests[key]) >= self.max_requests:
            oldest = self._requests[key][0]
            exc = RateLimitExceededError(retry_after=int(oldest + self.window - now) + 1)
            logger.warning(
                "Rate limit exceeded for %s: %d writes in %ds window",
                key,
                len(self._requests[key]),
                self.window,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": exc.message,
                    "details": exc.context,
                },
                headers={"Retry-After": str(exc.retry_after)},
            )

        self._requests[key].append(now)

        # Every 1000 tracked requests, forget callers with no recent writes
        if sum(len(v) for v in self._requests.values()) % 1000 == 0:
            self._cleanup_inactive(window_start)

        return await call_next(request)

    def _cleanup_inactive(self, window_start: float) -> None:
        inactive = [
            key for key, timestamps in self._requests.items()
            if not timestamps or max(timestamps) < window_start
        ]
        for key in inactive:
            del self._requests[key]

        if inactive:
            logger.debug("Cleaned up %d inactive rate limit entries", len(inactive))
