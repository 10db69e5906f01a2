from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Mapping, Optional

from fastapi import FastAPI

from parra.app.core.config import settings
from parra.app.core.logging import get_logger, setup_logging
from parra.app.exceptions import RateLimitError
from parra.app.middleware.rate_limit import RateLimitMiddleware, rate_limit_exception_handler
from parra.app.ratelimit.policies import RATE_LIMITS
from parra.app.ratelimit.redis_backend import RedisRateLimiter
from parra.app.ratelimit.registry import get_rate_limiter, reset_rate_limiter

# Edge endpoints guarded by default, keyed by "[METHODS ]path prefix"
DEFAULT_ROUTE_POLICIES: dict[str, str] = {
    "POST /auth/login": "login",
    "POST /auth/signup": "signup",
    "POST /auth/password-reset": "password_reset",
    "POST /chat/messages": "chat_message",
    "POST /chat/sessions": "chat_session",
    "POST /notes": "note_create",
    "PUT,PATCH /profile": "profile_update",
    "/api": "api_call",
}


def create_app(route_policies: Optional[Mapping[str, str]] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        route_policies: Route -> policy name; DEFAULT_ROUTE_POLICIES if omitted

    Returns:
        Configured FastAPI application instance
    """
    setup_logging()
    logger = get_logger(__name__)

    limiter = RedisRateLimiter() if settings.redis_enabled else get_rate_limiter()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Stop the limiter sweep thread and Redis connection on shutdown."""
        logger.info(
            "Application startup complete",
            extra={"limiter_backend": type(limiter).__name__, "debug_mode": settings.debug},
        )
        yield
        if isinstance(limiter, RedisRateLimiter):
            await limiter.close()
        else:
            reset_rate_limiter()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Parra Connect Edge",
        description="Rate limited edge endpoints for Parra Connect",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        RateLimitMiddleware,
        route_policies=route_policies if route_policies is not None else DEFAULT_ROUTE_POLICIES,
        limiter=limiter,
    )
    app.add_exception_handler(RateLimitError, rate_limit_exception_handler)

    @app.get("/health")
    async def health_check() -> dict[str, Any]:
        """Health check endpoint."""
        return {
            "status": "ok",
            "limiter_backend": type(limiter).__name__,
            "policies": sorted(RATE_LIMITS),
        }

    return app
