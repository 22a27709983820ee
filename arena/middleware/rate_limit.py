"""Rate limiting middleware.

Delegates counting to an injected RateLimiter.
"""

from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from arena.services.rate_limiter import RateLimiter

SKIP_PREFIXES = ("/health", "/docs", "/redoc", "/openapi.json")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rejects requests over their path's limit with 429."""

    def __init__(self, app: Callable, limiter: RateLimiter):
        super().__init__(app)
        self._limiter = limiter

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path.startswith(SKIP_PREFIXES):
            return await call_next(request)

        decision = await self._limiter.hit(self._get_client_ip(request), path)
        if decision is None:
            return await call_next(request)

        if not decision.allowed:
            return JSONResponse(
                status_code=429,
                content={
                    "error": {
                        "code": "RATE_LIMIT_EXCEEDED",
                        "kind": "transient",
                        "message": "Too many requests. Please try again later.",
                        "details": {
                            "limit": decision.limit,
                            "window": decision.window,
                            "retry_after": decision.window,
                        },
                    }
                },
                headers={"Retry-After": str(decision.window)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        response.headers["X-RateLimit-Reset"] = str(decision.window)
        return response

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP from request.

        Handles X-Forwarded-For header for reverse proxy setups.
        """
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            # Take first IP in chain (original client)
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else "unknown"
