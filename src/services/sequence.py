"""Atomic sequence counters with Redis primary and in-process fallback.

Complaint identifiers need a sequence value that is never handed out
twice.  Redis ``INCR`` gives that across processes; when Redis is not
configured or not reachable the provider degrades to a per-process
counter guarded by an :class:`asyncio.Lock`.  The store's uniqueness
check catches any overlap the degraded mode might produce.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Protocol, runtime_checkable

import structlog

logger = structlog.get_logger(__name__)

# Raise a counter to at least ARGV[1] without ever lowering it.
_SEED_SCRIPT = """
local current = tonumber(redis.call('GET', KEYS[1]) or '0')
local floor = tonumber(ARGV[1])
if current < floor then
    redis.call('SET', KEYS[1], floor)
    return floor
end
return current
"""


# ---------------------------------------------------------------------------
# Backend protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class SequenceBackend(Protocol):
    """Async atomic counter interface."""

    async def incr(self, key: str) -> int: ...

    async def seed(self, key: str, floor: int) -> int: ...

    async def current(self, key: str) -> int: ...


# ---------------------------------------------------------------------------
# Redis backend
# ---------------------------------------------------------------------------


class RedisSequenceBackend:
    """Redis-backed counters using ``redis.asyncio`` with connection pooling."""

    __slots__ = ("_pool", "_redis")

    def __init__(self, url: str = "redis://localhost:6379/0", *, max_connections: int = 10) -> None:
        import redis.asyncio as aioredis

        self._pool = aioredis.ConnectionPool.from_url(
            url,
            max_connections=max_connections,
            decode_responses=True,
        )
        self._redis = aioredis.Redis(connection_pool=self._pool)

    async def incr(self, key: str) -> int:
        return int(await self._redis.incr(key))

    async def seed(self, key: str, floor: int) -> int:
        return int(await self._redis.eval(_SEED_SCRIPT, 1, key, floor))

    async def current(self, key: str) -> int:
        raw = await self._redis.get(key)
        return int(raw) if raw is not None else 0

    async def close(self) -> None:
        await self._redis.aclose()
        await self._pool.aclose()

    async def ping(self) -> bool:
        """Return *True* if the Redis server is reachable."""
        try:
            return bool(await self._redis.ping())
        except Exception:
            return False


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class InMemorySequenceBackend:
    """Process-local counters.

    Safe for concurrent coroutines in one event loop; not shared across
    processes.
    """

    __slots__ = ("_counters", "_lock")

    def __init__(self) -> None:
        self._counters: dict[str, int] = {}
        self._lock = asyncio.Lock()

    async def incr(self, key: str) -> int:
        async with self._lock:
            value = self._counters.get(key, 0) + 1
            self._counters[key] = value
            return value

    async def seed(self, key: str, floor: int) -> int:
        async with self._lock:
            value = max(self._counters.get(key, 0), floor)
            self._counters[key] = value
            return value

    async def current(self, key: str) -> int:
        async with self._lock:
            return self._counters.get(key, 0)


# ---------------------------------------------------------------------------
# SequenceProvider  --  public API
# ---------------------------------------------------------------------------


class SequenceProvider:
    """Atomic counter facade with automatic Redis -> in-memory fallback.

    Parameters
    ----------
    redis_url:
        Redis connection string.  Pass *None* (or an empty string) to
        skip Redis entirely.
    namespace:
        Prefix prepended to every counter name.
    """

    __slots__ = (
        "_fallback",
        "_namespace",
        "_redis",
        "_redis_available",
        "_redis_checked",
    )

    def __init__(self, *, redis_url: str | None = None, namespace: str = "naiyaksetu:seq:") -> None:
        self._namespace = namespace
        self._fallback = InMemorySequenceBackend()
        self._redis: RedisSequenceBackend | None = None
        self._redis_available: bool = False
        self._redis_checked: bool = False

        if redis_url:
            try:
                self._redis = RedisSequenceBackend(url=redis_url)
            except Exception:
                logger.warning("sequence.redis_init_failed", redis_url=redis_url)
                self._redis = None

    def _make_key(self, name: str) -> str:
        return f"{self._namespace}{name}"

    async def _ensure_checked(self) -> None:
        """Check Redis reachability once, lazily."""
        if self._redis is not None and not self._redis_checked:
            self._redis_checked = True
            self._redis_available = await self._redis.ping()
            if self._redis_available:
                logger.info("sequence.redis_connected")
            else:
                logger.warning("sequence.redis_unavailable_using_inmemory")

    async def _call(self, method: str, key: str, *args: int) -> int:
        """Try Redis; on failure, flip to in-memory for this process.

        Every value Redis returns is mirrored into the in-memory counter
        as a floor, so after a failover the sequence continues upward
        instead of restarting.
        """
        await self._ensure_checked()
        if self._redis_available and self._redis is not None:
            try:
                value = await getattr(self._redis, method)(key, *args)
            except Exception:
                logger.warning("sequence.redis_op_failed", method=method, key=key)
                self._redis_available = False
            else:
                await self._fallback.seed(key, value)
                return value

        return await getattr(self._fallback, method)(key, *args)

    @property
    def using_redis(self) -> bool:
        return self._redis_available and self._redis is not None

    async def next_value(self, name: str) -> int:
        """Atomically increment counter *name* and return the new value."""
        return await self._call("incr", self._make_key(name))

    async def seed(self, name: str, floor: int) -> int:
        """Raise counter *name* to at least *floor*; never lowers it."""
        value = await self._call("seed", self._make_key(name), floor)
        logger.info("sequence.seeded", name=name, floor=floor, value=value)
        return value

    async def current(self, name: str) -> int:
        return await self._call("current", self._make_key(name))

    async def close(self) -> None:
        """Cleanly shut down the Redis connection pool (if any)."""
        if self._redis is not None:
            with contextlib.suppress(Exception):
                await self._redis.close()
