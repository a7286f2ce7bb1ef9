"""
Rate Limiting Middleware

Per-organization rate limiting using Redis.

ARCHITECTURE: token bucket in Redis. Each organization has its own bucket;
requests outside an organization (signup, login, webhooks) are keyed by
client address instead.

If Redis can't be reached the limiter lets requests through.
"""
import time
from typing import Optional, Tuple

import redis
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from backoffice.config import get_settings
from backoffice.core.exceptions import RateLimitExceeded
from backoffice.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Token bucket rate limiter per organization.

    Reads request.state.organization_id, so OrganizationContextMiddleware
    must run before it.
    """

    def __init__(self, app, redis_client: Optional[redis.Redis] = None):
        super().__init__(app)
        self.enabled = settings.RATE_LIMIT_ENABLED
        self.redis_client = redis_client

        if self.enabled and self.redis_client is None:
            try:
                self.redis_client = redis.from_url(
                    settings.REDIS_URL,
                    decode_responses=True,
                    socket_connect_timeout=5
                )
                self.redis_client.ping()
                logger.info("Redis connection established for rate limiting")
            except (redis.ConnectionError, redis.TimeoutError) as e:
                logger.error(f"Redis connection failed: {e}")
                self.redis_client = None

        self.redis_available = self.redis_client is not None

        self.excluded_paths = [
            "/docs",
            "/redoc",
            "/openapi.json",
            "/health",
        ]

    async def dispatch(self, request: Request, call_next):
        if not self.enabled:
            return await call_next(request)

        if any(request.url.path.startswith(path) for path in self.excluded_paths):
            return await call_next(request)

        # Availability over strict limiting
        if not self.redis_available:
            logger.warning("Rate limiting disabled - Redis unavailable")
            return await call_next(request)

        identifier = self._get_client_identifier(request)
        allowed, retry_after = self._check_rate_limit(identifier)

        if not allowed:
            logger.warning(
                f"Rate limit exceeded for {identifier}",
                extra={"organization_id": getattr(request.state, "organization_id", None)}
            )
            # Middleware sits outside the app's exception handlers, so render here
            exc = RateLimitExceeded(retry_after)
            return JSONResponse(
                status_code=exc.status_code,
                content={"error": exc.detail},
                headers=exc.headers
            )

        return await call_next(request)

    def _check_rate_limit(self, identifier: str) -> Tuple[bool, int]:
        """
        Check if request is allowed under rate limit.

        Returns: (allowed, retry_after_seconds)

        Token bucket:
        - Bucket holds max tokens (burst capacity)
        - Tokens added at fixed rate
        - Each request consumes one token
        """
        rate_limit = settings.RATE_LIMIT_PER_MINUTE
        burst = settings.RATE_LIMIT_BURST

        key = f"rate_limit:{identifier}"
        key_timestamp = f"{key}:timestamp"

        try:
            current_tokens = self.redis_client.get(key)
            last_update = self.redis_client.get(key_timestamp)

            now = time.time()

            if current_tokens is None:
                # First request - start with a full bucket minus this one
                current_tokens = burst - 1
                self.redis_client.setex(key, 60, current_tokens)
                self.redis_client.setex(key_timestamp, 60, now)
                return True, 0

            current_tokens = float(current_tokens)
            last_update = float(last_update) if last_update else now

            elapsed = now - last_update
            tokens_to_add = elapsed * (rate_limit / 60.0)
            new_tokens = min(burst, current_tokens + tokens_to_add)

            if new_tokens >= 1:
                new_tokens -= 1
                self.redis_client.setex(key, 60, new_tokens)
                self.redis_client.setex(key_timestamp, 60, now)
                return True, 0

            tokens_needed = 1 - new_tokens
            retry_after = int((tokens_needed / (rate_limit / 60.0)) + 1)
            return False, retry_after

        except redis.RedisError as e:
            logger.error(f"Redis error in rate limiting: {e}")
            return True, 0

    def _get_client_identifier(self, request: Request) -> str:
        organization_id = getattr(request.state, "organization_id", None)
        if organization_id:
            return f"org:{organization_id}"
        client_host = request.client.host if request.client else "unknown"
        return f"ip:{client_host}"
