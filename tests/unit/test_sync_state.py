"""
Tests for sync state transitions and backoff
"""
from datetime import datetime, timezone

import pytest

from reuse_analytics.ingestion.sync_state import (
    RetryPolicy,
    SyncResult,
    SyncState,
    SyncStatus,
    apply_jitter,
    backoff_delay_ms,
    begin_attempt,
    complete,
    fail,
    lock_unavailable,
    schedule_retry,
)


class TestBackoff:
    def test_delays_double_from_base(self):
        delays = [backoff_delay_ms(attempt, 2000, 60000) for attempt in range(5)]
        assert delays == [2000, 4000, 8000, 16000, 32000]

    def test_delay_capped(self):
        assert backoff_delay_ms(5, 2000, 60000) == 60000
        assert backoff_delay_ms(12, 2000, 60000) == 60000

    @pytest.mark.parametrize("rand,expected", [(0.0, 8000), (0.5, 10000), (1.0, 12000)])
    def test_jitter_bounds(self, rand, expected):
        assert apply_jitter(10000, 0.2, lambda: rand) == expected

    def test_policy_delay_without_jitter(self):
        policy = RetryPolicy()
        assert [policy.delay_ms(a, lambda: 0.5) for a in range(5)] == [2000, 4000, 8000, 16000, 32000]

    def test_policy_retry_budget(self):
        policy = RetryPolicy(max_retries=5)
        assert all(policy.should_retry(a) for a in range(5))
        assert not policy.should_retry(5)


class TestTransitions:
    def test_first_attempt_is_syncing(self):
        status = begin_attempt(SyncStatus(), 0)
        assert status.state == SyncState.SYNCING
        assert status.in_progress

    def test_retry_schedules_countdown(self):
        status = schedule_retry(begin_attempt(SyncStatus(), 0), 1, 2000, "Order source returned 503")
        assert status.state == SyncState.RETRYING
        assert status.attempt == 1
        assert status.next_retry_in_ms == 2000
        assert status.last_error == "Order source returned 503"
        assert status.in_progress

    def test_later_attempt_stays_retrying(self):
        status = begin_attempt(SyncStatus(), 3)
        assert status.state == SyncState.RETRYING
        assert status.next_retry_in_ms is None

    def test_complete(self):
        now = datetime(2025, 6, 1, tzinfo=timezone.utc)
        result = SyncResult(success=True, inserted=4, total_after=10, remote_count=12)
        status = complete(begin_attempt(SyncStatus(), 2), result, now)

        assert status.state == SyncState.ONLINE
        assert status.attempt == 0
        assert status.last_synced_at == now
        assert status.local_count == 10
        assert status.remote_count == 12
        assert not status.in_progress

    def test_fail_keeps_last_sync_time(self):
        now = datetime(2025, 6, 1, tzinfo=timezone.utc)
        synced = complete(SyncStatus(), SyncResult(success=True), now)
        status = fail(synced, "Order source returned 401")

        assert status.state == SyncState.ERROR
        assert status.last_error == "Order source returned 401"
        assert status.last_synced_at == now

    def test_lock_unavailable(self):
        status = lock_unavailable(SyncStatus(), 42)
        assert status.state == SyncState.LOCKED_OUT
        assert status.local_count == 42

    def test_as_dict(self):
        data = schedule_retry(SyncStatus(), 1, 2400, "boom").as_dict()
        assert data["state"] == "retrying"
        assert data["next_retry_in_ms"] == 2400
        assert data["last_synced_at"] is None
