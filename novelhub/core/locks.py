"""Per-thread locks for the comment tree.

Every mutation of a comment thread (reply insert, cascading delete) runs
under the lock of the thread's top-level comment, so two writers never
interleave inside one subtree. Unrelated threads never contend.

With Redis configured the lock is distributed (``redis.asyncio`` Lock with
an expiry, so a crashed holder cannot wedge a thread forever). Without Redis
the lock is process-local.
"""

import asyncio
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from redis.exceptions import LockError, LockNotOwnedError


if TYPE_CHECKING:
    from redis.asyncio import Redis


logger = structlog.get_logger(__name__)


class SubtreeLocks:
    """Keyed async locks, one per comment thread."""

    def __init__(
        self,
        redis: "Redis | None" = None,
        timeout: float = 30.0,
        blocking_timeout: float = 10.0,
        prefix: str = "comments:lock",
    ):
        self.redis = redis
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout
        self.prefix = prefix
        self._local: weakref.WeakValueDictionary[UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _local_lock(self, key: UUID) -> asyncio.Lock:
        lock = self._local.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._local[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, key: UUID) -> AsyncIterator[None]:
        """Hold the lock for ``key`` for the duration of the block.

        A distributed lock that expired while held is logged on release, not
        raised.

        Raises:
            redis.exceptions.LockError: If the distributed lock cannot be
                acquired within ``blocking_timeout``.
        """
        if self.redis is not None:
            name = f"{self.prefix}:{key}"
            redis_lock = self.redis.lock(
                name,
                timeout=self.timeout,
                blocking_timeout=self.blocking_timeout,
            )
            if not await redis_lock.acquire():
                raise LockError("Unable to acquire lock within the time specified")
            try:
                yield
            finally:
                try:
                    await redis_lock.release()
                except LockNotOwnedError:
                    logger.warning(
                        "subtree_lock_expired_while_held",
                        lock=name,
                        timeout=self.timeout,
                    )
            return

        lock = self._local_lock(key)
        async with lock:
            yield
