"""
School Admin Backend — Rate Limiting Middleware
=================================================

What:  Per-IP sliding window limits on the /api surface.
How:   Two buckets per client IP, both over ``rate_limit_window`` seconds:

           /api/*            → rate_limit_requests        (default 100 / 15 min)
           /api/user/login   → login_rate_limit_requests  (default 10 / 15 min)

       A login request counts against both. A rejected request gets a 429
       envelope and a Retry-After header.

Single-process only: the counters live in this worker's memory.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from school_admin.config import Settings, settings as default_settings
from school_admin.dispatch.responses import ResponseDispatcher

logger = logging.getLogger(__name__)

API_PREFIX = "/api/"
LOGIN_PATH = "/api/user/login"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, settings: Optional[Settings] = None, **kwargs):
        super().__init__(app, **kwargs)
        self.settings = settings or default_settings
        self.dispatcher = ResponseDispatcher()
        # (bucket, ip) → request timestamps inside the window
        self._requests: Dict[Tuple[str, str], List[float]] = defaultdict(list)
        self._seen = 0

    def _buckets(self, path: str) -> List[Tuple[str, int]]:
        if not path.startswith(API_PREFIX):
            return []
        buckets = [("api", self.settings.rate_limit_requests)]
        if path.rstrip("/") == LOGIN_PATH:
            buckets.append(("login", self.settings.login_rate_limit_requests))
        return buckets

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        buckets = self._buckets(request.url.path)
        if not buckets:
            return await call_next(request)

        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"
        now = time.time()
        window = self.settings.rate_limit_window
        window_start = now - window

        for bucket, limit in buckets:
            key = (bucket, client_ip)
            self._requests[key] = [ts for ts in self._requests[key] if ts > window_start]
            if len(self._requests[key]) >= limit:
                retry_after = int(self._requests[key][0] + window - now) + 1
                logger.warning(
                    "Rate limit (%s) exceeded for IP %s: %d requests in %ds window",
                    bucket, client_ip, len(self._requests[key]), window,
                )
                return self.dispatcher.error(
                    429,
                    f"too many requests, retry in {retry_after} seconds",
                    headers={"Retry-After": str(retry_after)},
                )

        for bucket, _ in buckets:
            self._requests[(bucket, client_ip)].append(now)

        self._seen += 1
        if self._seen % 1000 == 0:
            self._cleanup_inactive(window_start)

        return await call_next(request)

    def _cleanup_inactive(self, window_start: float) -> None:
        """Drops (bucket, ip) entries with no request inside the window."""
        inactive = [
            key for key, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] < window_start
        ]
        for key in inactive:
            del self._requests[key]
        if inactive:
            logger.debug("Cleaned up %d inactive rate-limit entries", len(inactive))
