"""Per-identity rate limiting for the search endpoints.

The limiter itself is injected (see integrations/resilience.py), so the
middleware works unchanged with the in-memory or the Redis backend.
"""
import hashlib

from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from vibe_search.integrations.resilience import RateLimiter
from vibe_search.middleware.error_handler import problem


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests over the limiter's budget with 429 and Retry-After."""

    def __init__(
        self,
        app: ASGIApp,
        limiter: RateLimiter,
        path_prefixes: tuple[str, ...] = ("/api/v1/search",),
    ):
        super().__init__(app)
        self.limiter = limiter
        self.path_prefixes = path_prefixes

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if not path.startswith(self.path_prefixes):
            return await call_next(request)

        identity = self._get_user_identifier(request)
        if not await self.limiter.check(identity):
            retry_after = str(int(self.limiter.window))
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content=problem(429, "Too Many Requests", "Rate limit exceeded. Please try again later."),
                headers={"Retry-After": retry_after},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.limiter.limit)
        response.headers["X-RateLimit-Window"] = f"{int(self.limiter.window)}s"
        return response

    def _get_user_identifier(self, request: Request) -> str:
        """Bearer token digest when present, client IP otherwise."""
        auth = request.headers.get("authorization", "")
        if auth.startswith("Bearer "):
            digest = hashlib.sha256(auth[7:].encode()).hexdigest()[:32]
            return f"token:{digest}"

        client = request.client
        ip = client.host if client else "unknown"
        return f"ip:{ip}"
