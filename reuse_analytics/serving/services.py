"""
Service Wiring

Builds the store, lock, fetcher, coordinator and aggregation engine from
settings. Shared by the API lifespan and the CLI.
"""

from dataclasses import dataclass
from typing import Optional

import httpx
import structlog
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reuse_analytics.analytics.aggregation import AggregationEngine, create_aggregation_engine
from reuse_analytics.config import get_settings
from reuse_analytics.database.repository import OrderStore
from reuse_analytics.ingestion.locks import DatabaseSyncLock, RedisSyncLock, SyncLock
from reuse_analytics.ingestion.remote_fetcher import RemoteOrderFetcher, create_remote_fetcher
from reuse_analytics.ingestion.sync_coordinator import SyncCoordinator, create_sync_coordinator

logger = structlog.get_logger(__name__)


@dataclass
class Services:
    """Long-lived pipeline components shared by requests"""
    session_factory: async_sessionmaker[AsyncSession]
    store: OrderStore
    lock: SyncLock
    fetcher: RemoteOrderFetcher
    coordinator: SyncCoordinator
    engine: AggregationEngine


def build_lock(
    session_factory: async_sessionmaker[AsyncSession],
    redis: Optional[Redis] = None,
) -> SyncLock:
    sync = get_settings().sync
    if sync.lock_backend == "redis":
        if redis is None:
            raise RuntimeError("Redis lock backend selected but Redis is not initialized")
        return RedisSyncLock(redis, name=sync.lock_name, ttl_seconds=sync.lock_ttl_seconds)
    return DatabaseSyncLock(session_factory, name=sync.lock_name, ttl_seconds=sync.lock_ttl_seconds)


def build_services(
    session_factory: async_sessionmaker[AsyncSession],
    redis: Optional[Redis] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Services:
    settings = get_settings()
    store = OrderStore(session_factory, batch_size=settings.sync.batch_size)
    lock = build_lock(session_factory, redis)
    fetcher = create_remote_fetcher(client=client)
    coordinator = create_sync_coordinator(fetcher, store, lock)
    engine = create_aggregation_engine(store)

    logger.info(
        "Pipeline services ready",
        lock_backend=settings.sync.lock_backend,
        remote_configured=fetcher.is_configured,
    )
    return Services(
        session_factory=session_factory,
        store=store,
        lock=lock,
        fetcher=fetcher,
        coordinator=coordinator,
        engine=engine,
    )
