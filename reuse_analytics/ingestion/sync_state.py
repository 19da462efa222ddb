"""
Sync State Machine

Explicit state type for order ingestion plus pure transition and backoff
functions. Nothing here performs I/O or sleeps, so timing can be tested
without the coordinator.

    idle -> locked-out
    idle -> syncing -> online | retrying | error
    retrying -> syncing (after a delay, bounded attempts) | error
"""

import random
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel


class SyncState(str, Enum):
    """Sync lifecycle states"""
    IDLE = "idle"
    SYNCING = "syncing"
    RETRYING = "retrying"
    ONLINE = "online"
    ERROR = "error"
    LOCKED_OUT = "locked_out"


@dataclass(frozen=True)
class SyncOptions:
    """Per-run sync options"""
    force_full: bool = False
    trigger_remote_refresh: bool = True


class SyncResult(BaseModel):
    """Structured outcome of a sync run"""
    success: bool
    inserted: int = 0
    errors: int = 0
    skipped: int = 0
    total_after: int = 0
    remote_count: Optional[int] = None
    retryable: bool = False
    was_incremental: bool = False
    locked_out: bool = False
    attempts: int = 0
    error: Optional[str] = None


@dataclass(frozen=True)
class SyncStatus:
    """Observable sync status"""
    state: SyncState = SyncState.IDLE
    attempt: int = 0
    next_retry_in_ms: Optional[int] = None
    last_error: Optional[str] = None
    last_synced_at: Optional[datetime] = None
    remote_count: Optional[int] = None
    local_count: Optional[int] = None

    @property
    def in_progress(self) -> bool:
        return self.state in (SyncState.SYNCING, SyncState.RETRYING)

    def as_dict(self) -> dict:
        return {
            "state": self.state.value,
            "attempt": self.attempt,
            "next_retry_in_ms": self.next_retry_in_ms,
            "last_error": self.last_error,
            "last_synced_at": self.last_synced_at.isoformat() if self.last_synced_at else None,
            "remote_count": self.remote_count,
            "local_count": self.local_count,
        }


# =============================================================================
# BACKOFF
# =============================================================================

def backoff_delay_ms(attempt: int, base_ms: int, cap_ms: int) -> int:
    """delay = min(base * 2^attempt, cap)"""
    return min(base_ms * (2 ** attempt), cap_ms)


def apply_jitter(delay_ms: int, ratio: float, rand: Callable[[], float] = random.random) -> int:
    """Spread a delay uniformly by +/- ratio"""
    jitter = delay_ms * ratio * (rand() * 2 - 1)
    return max(0, round(delay_ms + jitter))


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff with jitter"""
    max_retries: int = 5
    base_delay_ms: int = 2000
    max_delay_ms: int = 60000
    jitter_ratio: float = 0.2

    def should_retry(self, attempt: int) -> bool:
        """attempt is zero-based; attempts 0..max_retries-1 may be retried"""
        return attempt < self.max_retries

    def delay_ms(self, attempt: int, rand: Callable[[], float] = random.random) -> int:
        base = backoff_delay_ms(attempt, self.base_delay_ms, self.max_delay_ms)
        return apply_jitter(base, self.jitter_ratio, rand)


# =============================================================================
# TRANSITIONS
# =============================================================================

def begin_attempt(status: SyncStatus, attempt: int) -> SyncStatus:
    state = SyncState.RETRYING if attempt > 0 else SyncState.SYNCING
    return replace(status, state=state, attempt=attempt, next_retry_in_ms=None, last_error=None)


def lock_unavailable(status: SyncStatus, local_count: int) -> SyncStatus:
    return replace(
        status,
        state=SyncState.LOCKED_OUT,
        attempt=0,
        next_retry_in_ms=None,
        local_count=local_count,
    )


def schedule_retry(status: SyncStatus, attempt: int, delay_ms: int, error: str) -> SyncStatus:
    """attempt is the number of the attempt about to be scheduled"""
    return replace(
        status,
        state=SyncState.RETRYING,
        attempt=attempt,
        next_retry_in_ms=delay_ms,
        last_error=error,
    )


def complete(status: SyncStatus, result: SyncResult, now: datetime) -> SyncStatus:
    return replace(
        status,
        state=SyncState.ONLINE,
        attempt=0,
        next_retry_in_ms=None,
        last_error=None,
        last_synced_at=now,
        remote_count=result.remote_count,
        local_count=result.total_after,
    )


def fail(status: SyncStatus, error: str) -> SyncStatus:
    return replace(
        status,
        state=SyncState.ERROR,
        next_retry_in_ms=None,
        last_error=error,
    )
