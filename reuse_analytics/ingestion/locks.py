"""
Sync Locks

Cross-process mutual exclusion for order ingestion. A lock is a named,
TTL-bounded record in a durable store; an expired record counts as absent.

Backends:
- DatabaseSyncLock: row in the sync_locks table
- RedisSyncLock: SET NX PX key, compare-and-delete on release
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reuse_analytics.database.models import SyncLockRecord

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class LockInfo:
    """Current holder of a lock"""
    name: str
    owner: str
    acquired_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class SyncLock(ABC):
    """Atomic check-and-set lock with a time-to-live"""

    def __init__(self, name: str, ttl_seconds: int):
        self.name = name
        self.ttl_seconds = ttl_seconds

    @abstractmethod
    async def acquire(self) -> Optional[str]:
        """Take the lock; returns an owner token, or None if it is held"""

    @abstractmethod
    async def release(self, token: str) -> bool:
        """Release the lock if still owned by token"""

    @abstractmethod
    async def inspect(self) -> Optional[LockInfo]:
        """Current unexpired holder, if any"""


class DatabaseSyncLock(SyncLock):
    """
    Lock backed by the sync_locks table.

    Acquisition runs in one transaction: drop the row if expired, insert a
    row owned by a fresh token unless one exists, then read the owner back.
    The lock is ours only if the stored owner is our token.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        name: str = "orders-sync",
        ttl_seconds: int = 300,
        clock: Clock = utc_now,
    ):
        super().__init__(name, ttl_seconds)
        self._session_factory = session_factory
        self._clock = clock

    def _insert_for(self, session: AsyncSession):
        if session.get_bind().dialect.name == "postgresql":
            return postgresql.insert
        return sqlite.insert

    async def acquire(self) -> Optional[str]:
        token = uuid.uuid4().hex
        now = self._clock()
        expires_at = now + timedelta(seconds=self.ttl_seconds)

        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(
                    delete(SyncLockRecord).where(
                        SyncLockRecord.name == self.name,
                        SyncLockRecord.expires_at <= now,
                    )
                )
                insert = self._insert_for(session)
                await session.execute(
                    insert(SyncLockRecord)
                    .values(name=self.name, owner=token, acquired_at=now, expires_at=expires_at)
                    .on_conflict_do_nothing(index_elements=[SyncLockRecord.name])
                )
                owner = (
                    await session.execute(
                        select(SyncLockRecord.owner).where(SyncLockRecord.name == self.name)
                    )
                ).scalar_one_or_none()

        if owner != token:
            logger.info("Sync lock held by another process", lock=self.name)
            return None

        logger.debug("Sync lock acquired", lock=self.name, ttl_seconds=self.ttl_seconds)
        return token

    async def release(self, token: str) -> bool:
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    delete(SyncLockRecord).where(
                        SyncLockRecord.name == self.name,
                        SyncLockRecord.owner == token,
                    )
                )
        released = (result.rowcount or 0) > 0
        if not released:
            logger.warning("Sync lock was not held by this owner at release", lock=self.name)
        return released

    async def inspect(self) -> Optional[LockInfo]:
        now = self._clock()
        async with self._session_factory() as session:
            record = (
                await session.execute(
                    select(SyncLockRecord).where(
                        SyncLockRecord.name == self.name,
                        SyncLockRecord.expires_at > now,
                    )
                )
            ).scalar_one_or_none()
        if record is None:
            return None
        return LockInfo(
            name=record.name,
            owner=record.owner,
            acquired_at=record.acquired_at,
            expires_at=record.expires_at,
        )


# KEYS[1] = lock key, ARGV[1] = owner token
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class RedisSyncLock(SyncLock):
    """Lock backed by a Redis key with a millisecond TTL"""

    def __init__(self, redis, name: str = "orders-sync", ttl_seconds: int = 300):
        super().__init__(name, ttl_seconds)
        self._redis = redis

    @property
    def key(self) -> str:
        return f"lock:{self.name}"

    async def acquire(self) -> Optional[str]:
        token = uuid.uuid4().hex
        acquired = await self._redis.set(self.key, token, nx=True, px=self.ttl_seconds * 1000)
        if not acquired:
            logger.info("Sync lock held by another process", lock=self.name)
            return None
        return token

    async def release(self, token: str) -> bool:
        deleted = await self._redis.eval(_RELEASE_SCRIPT, 1, self.key, token)
        return bool(deleted)

    async def inspect(self) -> Optional[LockInfo]:
        owner = await self._redis.get(self.key)
        if owner is None:
            return None
        if isinstance(owner, bytes):
            owner = owner.decode()
        ttl_ms = await self._redis.pttl(self.key)
        expires_at = utc_now() + timedelta(milliseconds=ttl_ms) if ttl_ms and ttl_ms > 0 else None
        return LockInfo(name=self.name, owner=owner, expires_at=expires_at)
