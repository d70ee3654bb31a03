"""
Rate Limiting Middleware

Per-tenant token bucket in Redis. Bucket size and refill rate come from
the tenant's override columns, then the tier table, then settings.

If Redis is unreachable requests are let through; availability of the
storefront matters more than strict limits.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from typing import Tuple
import redis
import time
import logging

from storefront_api.config import get_settings
from storefront_api.core.tiers import TIERS
from storefront_api.utils.logging import log_security_event

logger = logging.getLogger(__name__)
settings = get_settings()

BUCKET_TTL_SECONDS = 60


def resolve_limits(tenant) -> Tuple[int, int]:
    """(requests per minute, burst) for ``tenant``."""
    tier = TIERS.get(tenant.subscription_tier)
    per_minute = tenant.rate_limit_per_minute or (tier.rate_limit_per_minute if tier else settings.RATE_LIMIT_PER_MINUTE)
    burst = tenant.rate_limit_burst or (tier.rate_limit_burst if tier else settings.RATE_LIMIT_BURST)
    return per_minute, burst


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Token bucket rate limiter per tenant; requires TenantMiddleware to run first."""

    def __init__(self, app):
        super().__init__(app)
        self.redis_available = False
        self.redis_client = None

        if not settings.RATE_LIMIT_ENABLED:
            logger.info("Rate limiting disabled by configuration")
            return

        try:
            self.redis_client = redis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=5
            )
            self.redis_client.ping()
            self.redis_available = True
            logger.info("Redis connection established for rate limiting")
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.error(f"Redis connection failed, rate limiting disabled: {e}")

    async def dispatch(self, request: Request, call_next):
        if not self.redis_available:
            return await call_next(request)

        tenant = getattr(request.state, "tenant", None)
        if not tenant:
            return await call_next(request)

        allowed, retry_after = self._check_rate_limit(tenant)

        if not allowed:
            log_security_event(
                "rate_limit_exceeded",
                {"tenant_id": tenant.id, "path": request.url.path},
                logger
            )
            return JSONResponse(
                status_code=429,
                content={
                    "detail": "Rate limit exceeded",
                    "retry_after": retry_after
                },
                headers={"Retry-After": str(retry_after)}
            )

        return await call_next(request)

    def _check_rate_limit(self, tenant) -> Tuple[bool, int]:
        """
        Consume one token from the tenant's bucket.

        Returns (allowed, retry_after_seconds).
        """
        rate_limit, burst = resolve_limits(tenant)
        refill_per_second = rate_limit / 60.0

        key = f"rate_limit:{tenant.id}"
        key_timestamp = f"{key}:timestamp"

        try:
            current_tokens, last_update = self.redis_client.mget(key, key_timestamp)
            now = time.time()

            if current_tokens is None:
                tokens = float(burst)
            else:
                elapsed = now - (float(last_update) if last_update else now)
                tokens = min(float(burst), float(current_tokens) + elapsed * refill_per_second)

            if tokens < 1:
                retry_after = int((1 - tokens) / refill_per_second) + 1
                return False, retry_after

            pipe = self.redis_client.pipeline()
            pipe.setex(key, BUCKET_TTL_SECONDS, tokens - 1)
            pipe.setex(key_timestamp, BUCKET_TTL_SECONDS, now)
            pipe.execute()
            return True, 0

        except redis.RedisError as e:
            logger.error(f"Redis error in rate limiting: {e}")
            return True, 0
