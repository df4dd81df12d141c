# Redis-backed fixed-window rate limiter, applied per client IP and scope.
# Keys: rl:v1:ip:{ip}:{scope}. Disabled or unreachable Redis means no limiting.
import logging
import os
from typing import Callable, Dict, Literal, Optional

from fastapi import HTTPException, Request, status

from .redis_client import get_redis, is_redis_enabled

logger = logging.getLogger("estatehub.rate_limit")

Scope = Literal["login", "signup", "write"]

# scope -> (env var, default cap per window)
_SCOPE_LIMITS: Dict[str, tuple] = {
    "login": ("RATE_LIMIT_LOGIN_PER_WINDOW", 10),
    "signup": ("RATE_LIMIT_SIGNUP_PER_WINDOW", 5),
    "write": ("RATE_LIMIT_WRITE_PER_WINDOW", 30),
}


def _env_int(name: str, default: int) -> int:
    raw: Optional[str] = os.getenv(name)
    try:
        return int(raw) if raw is not None else default
    except ValueError:
        return default


def _client_ip(request: Request) -> str:
    # X-Forwarded-For is not trusted here
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit(scope: Scope) -> Callable[[Request], None]:
    """
    Build a FastAPI dependency enforcing the scope's cap per RATE_LIMIT_WINDOW_SECONDS window.

    The first hit in a window sets the key TTL; hits beyond the cap get a 429 with retry_after.
    """
    window = _env_int("RATE_LIMIT_WINDOW_SECONDS", 60)
    env_name, default_cap = _SCOPE_LIMITS[scope]
    limit = _env_int(env_name, default_cap)

    def _dependency(request: Request) -> None:
        if not is_redis_enabled():
            return
        r = get_redis()
        if r is None:
            return

        ip = _client_ip(request)
        key = f"rl:v1:ip:{ip}:{scope}"
        try:
            current = r.incr(key, amount=1)
            if current == 1:
                r.expire(key, window)
            over = current > limit
            ttl = r.ttl(key) if over else None
        except Exception as exc:
            logger.warning("Rate limit fail-open (scope=%s, ip=%s): %s", scope, ip, exc)
            return

        if over:
            retry_after = ttl if isinstance(ttl, int) and ttl > 0 else window
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={
                    "error": "rate_limited",
                    "scope": scope,
                    "limit": limit,
                    "window_seconds": window,
                    "retry_after": retry_after,
                },
            )

    return _dependency
