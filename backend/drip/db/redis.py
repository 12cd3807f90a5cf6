"""Redis client for rate limiting"""
import logging
import redis
from drip.core.config import settings

logger = logging.getLogger(__name__)

# Lazy initialization - no connection at import time
_client = None


def get_redis_client():
    """Get or create Redis client (lazy initialization)

    This prevents connection attempts during import, allowing mocks to be applied first.
    """
    global _client
    if _client is None:
        _client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        logger.info("Redis client initialized")
    return _client


def increment_rate_limit(identifier: str, window: int) -> int:
    """Increment the request counter for identifier; the key expires after window seconds"""
    key = f"ratelimit:{identifier}"
    client = get_redis_client()
    count = int(client.incr(key))
    # Fixed window: the TTL is only set when the key is created
    if count == 1:
        client.expire(key, window)
    return count


def check_rate_limit(identifier: str, max_requests: int, window: int) -> bool:
    """Check if request is within rate limit using Redis. Returns True if allowed, False if rate limited."""
    return increment_rate_limit(identifier, window) <= max_requests


def get_rate_limit_count(identifier: str) -> int:
    """Get current rate limit count"""
    count = get_redis_client().get(f"ratelimit:{identifier}")
    return int(count) if count else 0
