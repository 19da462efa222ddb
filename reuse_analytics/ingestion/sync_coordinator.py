"""
Sync Coordinator

Orchestrates one order ingestion run:
- Takes the cross-process sync lock (held across the whole retry sequence)
- Chooses incremental or full retrieval from the stored watermark
- Falls back to full retrieval plus client-side id filtering when the
  remote rejects watermarks
- Reconciles each record and upserts in batches
- Retries retryable remote failures with bounded exponential backoff
"""

import asyncio
import random
import uuid
from datetime import datetime
from typing import Awaitable, Callable, Optional

import structlog
from prometheus_client import Counter

from reuse_analytics.config import get_settings
from reuse_analytics.database.repository import OrderStore
from reuse_analytics.exceptions import (
    FailureCategory,
    MaxRetriesExceededError,
    RemoteFetchError,
    SyncAbortedError,
    WatermarkUnsupportedError,
)
from reuse_analytics.ingestion.locks import SyncLock, utc_now
from reuse_analytics.ingestion.remote_fetcher import FetchMode, FetchResult, RemoteOrderFetcher
from reuse_analytics.ingestion import sync_state as transitions
from reuse_analytics.ingestion.sync_state import (
    RetryPolicy,
    SyncOptions,
    SyncResult,
    SyncStatus,
)
from reuse_analytics.transformation.cleaners import OrderCleaner, filter_newer_than

logger = structlog.get_logger(__name__)


# =============================================================================
# METRICS
# =============================================================================

SYNC_RUNS = Counter(
    "reuse_sync_runs_total",
    "Order sync runs by outcome",
    ["outcome"],
)

SYNC_ROWS = Counter(
    "reuse_sync_rows_total",
    "Order rows handled by sync",
    ["result"],
)


Sleep = Callable[[float], Awaitable[None]]


class SyncCoordinator:
    """
    Runs order ingestion with locking, retries and status reporting.

    Example:
        coordinator = SyncCoordinator(fetcher, store, lock)
        result = await coordinator.sync(SyncOptions(force_full=True))
        print(coordinator.status.state)
    """

    def __init__(
        self,
        fetcher: RemoteOrderFetcher,
        store: OrderStore,
        lock: SyncLock,
        cleaner: Optional[OrderCleaner] = None,
        policy: Optional[RetryPolicy] = None,
        sleep: Sleep = asyncio.sleep,
        rand: Callable[[], float] = random.random,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.fetcher = fetcher
        self.store = store
        self.lock = lock
        self.cleaner = cleaner or OrderCleaner()
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._rand = rand
        self._clock = clock
        self.status = SyncStatus()

    async def sync(self, options: Optional[SyncOptions] = None) -> SyncResult:
        """
        Run one sync.

        Returns:
            SyncResult for a completed or locked-out run

        Raises:
            ConfigurationError: Credentials or endpoint missing; nothing attempted
            SyncAbortedError: Fatal remote failure (lock released)
            MaxRetriesExceededError: Retry budget exhausted (lock released)
        """
        options = options or SyncOptions()
        self.fetcher.ensure_configured()

        token = await self.lock.acquire()
        if token is None:
            return await self._locked_out()

        run_id = uuid.uuid4().hex[:12]
        structlog.contextvars.bind_contextvars(sync_run_id=run_id)
        logger.info(
            "Sync started",
            force_full=options.force_full,
            trigger_remote_refresh=options.trigger_remote_refresh,
        )
        try:
            return await self._run_with_retries(options)
        except SyncAbortedError:
            raise
        except Exception as e:
            self.status = transitions.fail(self.status, str(e))
            SYNC_RUNS.labels(outcome="failed").inc()
            logger.error("Sync failed", error=str(e), error_type=type(e).__name__)
            raise
        finally:
            await self.lock.release(token)
            structlog.contextvars.unbind_contextvars("sync_run_id")

    async def _locked_out(self) -> SyncResult:
        local_count = await self.store.count()
        if not self.status.in_progress:
            self.status = transitions.lock_unavailable(self.status, local_count)
        SYNC_RUNS.labels(outcome="locked_out").inc()
        logger.info("Sync skipped, another sync holds the lock", local_count=local_count)
        return SyncResult(success=True, total_after=local_count, locked_out=True)

    async def _run_with_retries(self, options: SyncOptions) -> SyncResult:
        attempt = 0
        while True:
            self.status = transitions.begin_attempt(self.status, attempt)
            try:
                result = await self._attempt(options)
            except RemoteFetchError as e:
                if not e.retryable:
                    raise self._abort(e, attempt) from e
                if not self.policy.should_retry(attempt):
                    raise self._exhausted(e, attempt) from e

                delay_ms = self.policy.delay_ms(attempt, self._rand)
                self.status = transitions.schedule_retry(self.status, attempt + 1, delay_ms, str(e))
                SYNC_RUNS.labels(outcome="retry_scheduled").inc()
                logger.warning(
                    "Sync attempt failed, retry scheduled",
                    attempt=attempt + 1,
                    max_retries=self.policy.max_retries,
                    delay_ms=delay_ms,
                    category=e.category.value,
                    error=str(e),
                )
                await self._sleep(delay_ms / 1000)
                attempt += 1
                continue

            result.attempts = attempt + 1
            self.status = transitions.complete(self.status, result, self._clock())
            SYNC_RUNS.labels(outcome="success").inc()
            logger.info(
                "Sync completed",
                inserted=result.inserted,
                errors=result.errors,
                skipped=result.skipped,
                total_after=result.total_after,
                remote_count=result.remote_count,
                was_incremental=result.was_incremental,
                attempts=result.attempts,
            )
            return result

    def _abort(self, error: RemoteFetchError, attempt: int) -> SyncAbortedError:
        self.status = transitions.fail(self.status, str(error))
        SYNC_RUNS.labels(outcome=error.category.value).inc()
        logger.error("Sync aborted", category=error.category.value, error=str(error))
        result = SyncResult(
            success=False,
            retryable=False,
            attempts=attempt + 1,
            error=str(error),
        )
        return SyncAbortedError(str(error), error.category, result)

    def _exhausted(self, error: RemoteFetchError, attempt: int) -> MaxRetriesExceededError:
        message = f"{error} (max retries exceeded)"
        self.status = transitions.fail(self.status, message)
        SYNC_RUNS.labels(outcome=FailureCategory.MAX_RETRIES_EXCEEDED.value).inc()
        logger.error("Sync failed after retries", attempts=attempt + 1, error=str(error))
        result = SyncResult(
            success=False,
            retryable=False,
            attempts=attempt + 1,
            error=message,
        )
        return MaxRetriesExceededError(message, result)

    async def _fetch(self, options: SyncOptions, watermark: Optional[str]) -> FetchResult:
        if watermark is None:
            return await self.fetcher.fetch(FetchMode.FULL, refresh=options.trigger_remote_refresh)

        try:
            return await self.fetcher.fetch(FetchMode.INCREMENTAL, watermark=watermark)
        except WatermarkUnsupportedError:
            logger.warning(
                "Remote rejected incremental fetch, falling back to full fetch with id filtering",
                watermark=watermark,
            )

        fetched = await self.fetcher.fetch(FetchMode.FULL, refresh=options.trigger_remote_refresh)
        before = len(fetched.records)
        fetched.records = filter_newer_than(fetched.records, watermark)
        # Ids that are not monotonic with arrival order are skipped by this filter
        logger.info(
            "Client-side watermark filter applied",
            watermark=watermark,
            received=before,
            kept=len(fetched.records),
        )
        return fetched

    async def _attempt(self, options: SyncOptions) -> SyncResult:
        watermark = None if options.force_full else await self.store.highest_external_id()
        fetched = await self._fetch(options, watermark)

        records, stats = self.cleaner.clean_many(fetched.records)
        upserted = await self.store.upsert(records)
        total_after = await self.store.count()

        SYNC_ROWS.labels(result="upserted").inc(upserted.inserted)
        SYNC_ROWS.labels(result="errored").inc(upserted.errors)
        SYNC_ROWS.labels(result="skipped").inc(stats.skipped_rows)

        return SyncResult(
            success=True,
            inserted=upserted.inserted,
            errors=upserted.errors,
            skipped=stats.skipped_rows,
            total_after=total_after,
            remote_count=fetched.total_remote_count,
            was_incremental=watermark is not None,
        )


def create_sync_coordinator(
    fetcher: RemoteOrderFetcher,
    store: OrderStore,
    lock: SyncLock,
) -> SyncCoordinator:
    """Create a SyncCoordinator with the configured retry policy"""
    sync = get_settings().sync
    return SyncCoordinator(
        fetcher=fetcher,
        store=store,
        lock=lock,
        policy=RetryPolicy(
            max_retries=sync.max_retries,
            base_delay_ms=sync.base_delay_ms,
            max_delay_ms=sync.max_delay_ms,
            jitter_ratio=sync.jitter_ratio,
        ),
    )
