"""Lock services — Named, non-blocking mutual exclusion for cluster-wide operations.

``LocalLockService`` only excludes callers within one process.
``RedisLockService`` uses ``redis.asyncio`` locks so that every process
sharing the Redis instance observes the same lock.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from redis.exceptions import LockError, RedisError

if TYPE_CHECKING:
    from searchbind.config.settings import LockSettings

logger = logging.getLogger(__name__)


@runtime_checkable
class LockService(Protocol):
    """Named lock capability consumed by the index manager."""

    async def try_lock(self, name: str) -> bool:
        """Acquire ``name`` without waiting. Returns ``False`` if it is held elsewhere."""
        ...

    async def unlock(self, name: str) -> None:
        """Release ``name`` if this service holds it."""
        ...

    async def extend(self, name: str) -> bool:
        """Restart the expiry of a held ``name``. Returns ``False`` if it is no longer held."""
        ...


class LocalLockService:
    """In-process lock service."""

    def __init__(self) -> None:
        self._held: set[str] = set()

    async def try_lock(self, name: str) -> bool:
        if name in self._held:
            return False
        self._held.add(name)
        return True

    async def unlock(self, name: str) -> None:
        self._held.discard(name)

    async def extend(self, name: str) -> bool:
        return name in self._held

    def is_locked(self, name: str) -> bool:
        return name in self._held


class RedisLockService:
    """Lock service backed by Redis.

    Locks expire after ``timeout`` seconds so a crashed holder cannot block
    rebuilds forever. Holders of long operations call :meth:`extend` to
    restart the TTL; a holder that stops extending loses the lock.

    Args:
        client: A ``redis.asyncio.Redis`` client.
        timeout: Lock TTL in seconds.
        key_prefix: Prefix prepended to every lock name.
    """

    def __init__(self, client: Any, timeout: float = 3600.0, key_prefix: str = "searchbind:lock:") -> None:
        self._client = client
        self._timeout = timeout
        self._key_prefix = key_prefix
        self._locks: dict[str, Any] = {}

    @classmethod
    def from_settings(cls, settings: LockSettings) -> RedisLockService:
        import redis.asyncio as aioredis

        client = aioredis.from_url(settings.redis_url, decode_responses=True)
        return cls(client, timeout=settings.timeout, key_prefix=settings.key_prefix)

    async def try_lock(self, name: str) -> bool:
        lock = self._client.lock(f"{self._key_prefix}{name}", timeout=self._timeout)
        try:
            acquired = bool(await lock.acquire(blocking=False))
        except RedisError:
            logger.warning("Failed to acquire lock %s", name, exc_info=True)
            return False
        if acquired:
            self._locks[name] = lock
        return acquired

    async def unlock(self, name: str) -> None:
        lock = self._locks.pop(name, None)
        if lock is None:
            return
        try:
            await lock.release()
        except LockError:
            logger.warning("Lock %s expired before release", name)
        except RedisError:
            logger.warning("Failed to release lock %s", name, exc_info=True)

    async def extend(self, name: str) -> bool:
        lock = self._locks.get(name)
        if lock is None:
            return False
        try:
            await lock.reacquire()
        except LockError:
            self._locks.pop(name, None)
            logger.warning("Lock %s expired before it could be extended", name)
            return False
        except RedisError:
            logger.warning("Failed to extend lock %s", name, exc_info=True)
            return False
        return True

    async def close(self) -> None:
        await self._client.aclose()


def create_lock_service(settings: LockSettings) -> LockService:
    """Build the lock service selected by ``settings.backend``."""
    if settings.backend == "redis":
        logger.info("Using Redis lock service at %s", settings.redis_url)
        return RedisLockService.from_settings(settings)
    logger.info("Using in-process lock service")
    return LocalLockService()
