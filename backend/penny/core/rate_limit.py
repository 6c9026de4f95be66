"""In-memory rate limiting middleware for single-instance deployments.

Limits (per forwarded user id):
  /agent/run       → 6 requests/hour
  /analysis/run    → 30 requests/hour

Only active in production; no Redis required.
"""

import time
from collections import defaultdict

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from penny.config import settings

# (path, max_requests, window_seconds)
_USER_RULES: list[tuple[str, int, int]] = [
    ("/agent/run", 6, 3600),
    ("/analysis/run", 30, 3600),
]


class SlidingWindow:
    """Per-key timestamp store."""

    def __init__(self, clock=time.monotonic) -> None:
        self._clock = clock
        self._hits: dict[str, list[float]] = defaultdict(list)

    def is_allowed(self, key: str, max_requests: int, window: int) -> bool:
        now = self._clock()
        cutoff = now - window
        self._hits[key] = hits = [t for t in self._hits[key] if t > cutoff]
        if len(hits) >= max_requests:
            return False
        hits.append(now)
        return True


_user_window = SlidingWindow()


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, enabled: bool | None = None, window: SlidingWindow | None = None):
        super().__init__(app)
        self._enabled = enabled
        self._window = window or _user_window

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        enabled = settings.is_production if self._enabled is None else self._enabled
        if not enabled or request.method != "POST":
            return await call_next(request)

        user = request.headers.get(settings.user_id_header)
        if user:
            path = request.url.path
            for prefix, max_req, window in _USER_RULES:
                if path.startswith(prefix):
                    key = f"user:{user}:{prefix}"
                    if not self._window.is_allowed(key, max_req, window):
                        return _rate_limit_response(request, window)

        return await call_next(request)


def _rate_limit_response(request: Request, window: int) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    return JSONResponse(
        status_code=429,
        content={
            "error": True,
            "status_code": 429,
            "detail": "Rate limit exceeded. Please try again later.",
            "request_id": request_id,
        },
        headers={"Retry-After": str(window)},
    )
