# Shared Redis connection for coarse transition locks and rate limiting.
# Opt-in via REDIS_ENABLED; every caller must cope with get_redis() returning None.
import logging
import os
from typing import Optional

_logger = logging.getLogger("estatehub.redis")

_TRUTHY = {"1", "true", "t", "yes", "y", "on"}

# Cached client plus a one-shot guard: a failed connection attempt is not retried in this process
_client = None
_initialized = False


def _truthy(val: Optional[str]) -> bool:
    return val is not None and val.strip().lower() in _TRUTHY


def is_redis_enabled() -> bool:
    return _truthy(os.getenv("REDIS_ENABLED", "false"))


def redis_url() -> str:
    return os.getenv("REDIS_URL", "redis://localhost:6379/0")


def get_redis():
    """
    Return a connected Redis client, or None when Redis is disabled or unreachable.

    The first call connects and pings; errors are logged once and the process stays
    on the fail-open path afterwards.
    """
    global _client, _initialized
    if not is_redis_enabled():
        return None
    if _client is not None or _initialized:
        return _client

    _initialized = True
    url = redis_url()
    try:
        import redis

        client = redis.Redis.from_url(
            url,
            socket_timeout=0.25,
            socket_connect_timeout=0.25,
            retry_on_timeout=False,
            health_check_interval=0,
        )
        client.ping()
    except Exception as exc:
        _logger.warning("Redis unavailable (fail-open): %s", exc)
        return None

    _client = client
    _logger.info("Connected to Redis at %s", url)
    return _client


def reset_redis() -> None:
    """Forget the cached client so the next get_redis() reconnects (used by tests)."""
    global _client, _initialized
    _client = None
    _initialized = False
