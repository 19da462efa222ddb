"""
Tests for the sync lock backends
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from reuse_analytics.ingestion.locks import DatabaseSyncLock, RedisSyncLock


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += timedelta(seconds=seconds)


START = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestDatabaseSyncLock:
    """Tests for DatabaseSyncLock"""

    async def test_acquire_and_release(self, session_factory):
        lock = DatabaseSyncLock(session_factory, ttl_seconds=300)

        token = await lock.acquire()
        assert token is not None

        holder = await lock.inspect()
        assert holder.owner == token

        assert await lock.release(token) is True
        assert await lock.inspect() is None

    async def test_second_acquire_is_refused(self, session_factory):
        first = DatabaseSyncLock(session_factory)
        second = DatabaseSyncLock(session_factory)

        token = await first.acquire()
        assert token is not None
        assert await second.acquire() is None

        await first.release(token)
        assert await second.acquire() is not None

    async def test_stale_lock_is_reacquired(self, session_factory):
        clock = FakeClock(START)
        lock = DatabaseSyncLock(session_factory, ttl_seconds=300, clock=clock)

        stale = await lock.acquire()
        clock.advance(299)
        assert await lock.acquire() is None

        clock.advance(2)
        fresh = await lock.acquire()
        assert fresh is not None
        assert fresh != stale

    async def test_release_by_non_owner_is_ignored(self, session_factory):
        lock = DatabaseSyncLock(session_factory)
        token = await lock.acquire()

        assert await lock.release("someone-else") is False
        assert (await lock.inspect()).owner == token

    async def test_locks_with_different_names_are_independent(self, session_factory):
        orders = DatabaseSyncLock(session_factory, name="orders-sync")
        other = DatabaseSyncLock(session_factory, name="other-sync")

        assert await orders.acquire() is not None
        assert await other.acquire() is not None


class TestRedisSyncLock:
    """Tests for RedisSyncLock against a mocked client"""

    async def test_acquire_uses_set_nx_px(self):
        redis = AsyncMock()
        redis.set.return_value = True
        lock = RedisSyncLock(redis, name="orders-sync", ttl_seconds=300)

        token = await lock.acquire()

        assert token is not None
        redis.set.assert_awaited_once_with("lock:orders-sync", token, nx=True, px=300000)

    async def test_acquire_refused_when_key_exists(self):
        redis = AsyncMock()
        redis.set.return_value = None
        lock = RedisSyncLock(redis)

        assert await lock.acquire() is None

    async def test_release_compares_owner(self):
        redis = AsyncMock()
        redis.eval.return_value = 1
        lock = RedisSyncLock(redis)

        assert await lock.release("token-1") is True
        args = redis.eval.await_args.args
        assert args[1:] == (1, "lock:orders-sync", "token-1")

    async def test_release_of_foreign_lock(self):
        redis = AsyncMock()
        redis.eval.return_value = 0
        assert await RedisSyncLock(redis).release("stale") is False

    async def test_inspect(self):
        redis = AsyncMock()
        redis.get.return_value = b"owner-token"
        redis.pttl.return_value = 120000
        holder = await RedisSyncLock(redis).inspect()

        assert holder.owner == "owner-token"
        assert holder.expires_at is not None

    async def test_inspect_free(self):
        redis = AsyncMock()
        redis.get.return_value = None
        assert await RedisSyncLock(redis).inspect() is None
