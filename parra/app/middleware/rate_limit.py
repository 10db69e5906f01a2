"""Rate limiting middleware for HTTP endpoints.

Applies named policies to path prefixes (e.g. ``/auth/login`` -> ``login``).
This is the server-side counterpart of the form-level checks: the client key
is derived from the caller's bearer token or IP address, never from the
request body.
"""

import hashlib
import inspect
import math
from typing import FrozenSet, Mapping, Optional, Tuple, Union

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from parra.app.core.logging import get_log_context, get_logger
from parra.app.exceptions import RateLimitError
from parra.app.ratelimit.fixed_window import FixedWindowRateLimiter
from parra.app.ratelimit.policies import get_policy
from parra.app.ratelimit.redis_backend import RedisRateLimiter
from parra.app.ratelimit.registry import get_rate_limiter, make_key

logger = get_logger(__name__)

MAX_API_KEY_LENGTH = 512


def rate_limit_response(reset_in: int) -> JSONResponse:
    """Build the 429 response sent when a request is rate limited.

    Args:
        reset_in: Time until the limit resets, in milliseconds
    """
    retry_after = max(1, math.ceil(reset_in / 1000))
    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "message": f"Too many requests. Please try again in {retry_after} seconds.",
            "retryAfter": retry_after,
        },
        headers={"Retry-After": str(retry_after)},
    )


async def rate_limit_exception_handler(request: Request, exc: RateLimitError) -> JSONResponse:
    """Handle RateLimitError raised by route handlers and return HTTP 429."""
    return rate_limit_response(exc.reset_in)


def parse_route(route: str) -> Tuple[Optional[FrozenSet[str]], str]:
    """Split ``"POST,PUT /notes"`` into its method set and path prefix.

    A route without methods matches any method (None).
    """
    methods, _, prefix = route.strip().rpartition(" ")
    prefix = prefix.rstrip("/") or "/"
    if not methods:
        return None, prefix
    return frozenset(m.strip().upper() for m in methods.split(",") if m.strip()), prefix


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce named rate limit policies on path prefixes.

    Prefixes match whole path segments, so ``/notes`` covers ``/notes`` and
    ``/notes/1`` but not ``/notesX``. The longest matching prefix wins.
    CORS preflight (OPTIONS) requests and requests matching no route pass
    through untouched.
    """

    def __init__(
        self,
        app,
        route_policies: Mapping[str, str],
        limiter: Optional[Union[FixedWindowRateLimiter, RedisRateLimiter]] = None,
    ):
        """Initialize middleware.

        Args:
            app: ASGI application
            route_policies: Route -> policy name from RATE_LIMITS. A route is a
                path prefix (``"/api"``), optionally preceded by a
                comma-separated method list (``"POST,PUT /notes"``)
            limiter: Limiter holding the state; the shared in-memory one if omitted
        """
        super().__init__(app)
        # Resolve policies up front so a typo fails at startup
        routes = []
        for route, name in route_policies.items():
            methods, prefix = parse_route(route)
            routes.append((methods, prefix, name, get_policy(name)))
        # Longest prefix first; method-specific routes before catch-alls
        self.routes = sorted(routes, key=lambda r: (-len(r[1]), r[0] is None))
        self.limiter = limiter if limiter is not None else get_rate_limiter()

    def _match_policy(self, method: str, path: str):
        if method == "OPTIONS":
            return None
        for methods, prefix, name, config in self.routes:
            if methods is not None and method not in methods:
                continue
            if prefix == "/" or path == prefix or path.startswith(prefix + "/"):
                return name, config
        return None

    def _get_client_key(self, request: Request) -> Optional[str]:
        """Get a hashed client identifier for the request.

        Uses the bearer token if present, otherwise the client IP. Both are
        hashed with SHA-256 so raw credentials never sit in limiter state.

        Returns:
            Identifier string, or None if the bearer token is oversized
        """
        auth = request.headers.get("Authorization", "")
        if auth.startswith("Bearer "):
            token = auth[7:].strip()
            if len(token) > MAX_API_KEY_LENGTH:
                return None
            return "token:" + hashlib.sha256(token.encode()).hexdigest()[:32]

        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            client_ip = forwarded.split(",")[0].strip()
        else:
            client_ip = request.client.host if request.client else "unknown"
        return "ip:" + hashlib.sha256(client_ip.encode()).hexdigest()[:32]

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request with rate limiting."""
        matched = self._match_policy(request.method, request.url.path)
        if matched is None:
            return await call_next(request)

        policy_name, config = matched
        client = self._get_client_key(request)
        if client is None:
            return JSONResponse(
                status_code=400,
                content={"error": "invalid_token", "message": "Bearer token too long"},
            )

        result = self.limiter.try_acquire(make_key(policy_name, client), config)
        if inspect.isawaitable(result):
            result = await result

        if not result.allowed:
            logger.info(
                "Request rate limited",
                extra=get_log_context(
                    policy=policy_name, path=request.url.path, reset_in_ms=result.reset_in
                ),
            )
            return rate_limit_response(result.reset_in)

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(config.max_attempts)
        response.headers["X-RateLimit-Remaining"] = str(max(0, result.remaining))
        response.headers["X-RateLimit-Reset"] = str(math.ceil(result.reset_in / 1000))
        return response
