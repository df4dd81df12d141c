# Per-entity transition locks backed by Redis.
# A coarse cross-process guard in front of the conditional UPDATEs in stores.py; it fails open,
# so correctness never depends on Redis being up.
from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Iterator
from uuid import uuid4

from .errors import BusyError
from .redis_client import get_redis

logger = logging.getLogger("estatehub.locks")

LOCK_TTL_MS = int(os.getenv("LOCK_TTL_MS", "5000"))

_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
else
    return 0
end
"""


@contextmanager
def redis_try_lock(key: str, ttl_ms: int = LOCK_TTL_MS) -> Iterator[bool]:
    """
    Best-effort lock using SET NX PX.

    Yields True when acquired or when Redis is unavailable, False when another
    process holds the key. Release is token-checked so we never drop someone else's lock.
    """
    r = get_redis()
    if r is None:
        yield True
        return

    token = uuid4().hex
    acquired = False
    try:
        acquired = bool(r.set(key, token, nx=True, px=ttl_ms))
    except Exception as exc:
        logger.warning("redis_try_lock error (key=%s): %s", key, exc)
        yield True
        return

    try:
        yield acquired
    finally:
        if acquired:
            try:
                r.eval(_RELEASE_SCRIPT, 1, key, token)
            except Exception as exc:
                # the key expires by TTL anyway
                logger.debug("redis_try_lock release error (key=%s): %s", key, exc)


@contextmanager
def entity_lock(entity: str, entity_id: int) -> Iterator[None]:
    """
    Serialize transitions on one entity across processes.

        with entity_lock("property_request", request_id):
            ...  # read, check, conditional write

    Raises BusyError (HTTP 429) when another writer currently holds the lock.
    """
    key = f"lock:{entity}:{entity_id}"
    with redis_try_lock(key) as locked:
        if not locked:
            logger.info("lock.busy", extra={"lock_key": key})
            raise BusyError(f"{entity.replace('_', ' ').capitalize()} is being updated; retry shortly")
        yield
