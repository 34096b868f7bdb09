"""Tests for per-thread comment locks."""

import asyncio
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from redis.exceptions import LockError, LockNotOwnedError

from novelhub.core.locks import SubtreeLocks


@pytest.mark.asyncio
async def test_same_key_is_exclusive():
    locks = SubtreeLocks()
    key = uuid4()
    events = []

    async def worker(name):
        async with locks.hold(key):
            events.append(f"{name}:in")
            await asyncio.sleep(0)
            events.append(f"{name}:out")

    await asyncio.gather(worker("a"), worker("b"))

    assert events == ["a:in", "a:out", "b:in", "b:out"]


@pytest.mark.asyncio
async def test_different_keys_do_not_contend():
    locks = SubtreeLocks()
    first, second = uuid4(), uuid4()

    async with locks.hold(first):
        await asyncio.wait_for(_enter(locks, second), timeout=1)


async def _enter(locks, key):
    async with locks.hold(key):
        pass



def redis_with_lock(acquired=True, release_error=None):
    redis_lock = MagicMock()
    redis_lock.acquire = AsyncMock(return_value=acquired)
    redis_lock.release = AsyncMock(side_effect=release_error)
    redis = MagicMock()
    redis.lock = MagicMock(return_value=redis_lock)
    return redis, redis_lock


@pytest.mark.asyncio
async def test_redis_lock_is_used_when_configured():
    redis, redis_lock = redis_with_lock()
    key = uuid4()

    locks = SubtreeLocks(redis, timeout=5, blocking_timeout=2)
    async with locks.hold(key):
        pass

    redis.lock.assert_called_once_with(
        f"comments:lock:{key}", timeout=5, blocking_timeout=2
    )
    redis_lock.acquire.assert_awaited_once()
    redis_lock.release.assert_awaited_once()


@pytest.mark.asyncio
async def test_redis_lock_not_acquired_raises():
    redis, redis_lock = redis_with_lock(acquired=False)

    with pytest.raises(LockError):
        async with SubtreeLocks(redis).hold(uuid4()):
            pytest.fail("block must not run without the lock")

    redis_lock.release.assert_not_awaited()


@pytest.mark.asyncio
async def test_lock_expired_while_held_does_not_fail_the_block():
    redis, redis_lock = redis_with_lock(release_error=LockNotOwnedError("expired"))
    ran = []

    async with SubtreeLocks(redis).hold(uuid4()):
        ran.append(True)

    assert ran == [True]
    redis_lock.release.assert_awaited_once()


@pytest.mark.asyncio
async def test_redis_lock_is_released_when_block_raises():
    redis, redis_lock = redis_with_lock()

    with pytest.raises(RuntimeError):
        async with SubtreeLocks(redis).hold(uuid4()):
            raise RuntimeError("boom")

    redis_lock.release.assert_awaited_once()
