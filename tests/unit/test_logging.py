"""
Tests for logging processors
"""
from reuse_analytics.config.logging import add_service_context, order_correlation_ids


class TestOrderCorrelationIds:
    def test_event_then_correlation_ids_first(self):
        event = {
            "level": "info",
            "request_id": "req-1",
            "inserted": 3,
            "event": "Sync completed",
            "sync_run_id": "abc123",
        }

        ordered = order_correlation_ids(None, "info", event)

        assert list(ordered) == ["event", "sync_run_id", "request_id", "level", "inserted"]
        assert ordered["inserted"] == 3

    def test_without_correlation_ids_unchanged(self):
        event = {"event": "Logging configured", "level": "info"}
        assert order_correlation_ids(None, "info", dict(event)) == event


class TestServiceContext:
    def test_stamps_service_and_environment(self):
        processor = add_service_context("reuse-analytics", "production")

        stamped = processor(None, "info", {"event": "Sync started"})

        assert stamped["service"] == "reuse-analytics"
        assert stamped["environment"] == "production"

    def test_explicit_environment_kept(self):
        processor = add_service_context("reuse-analytics", "production")
        assert processor(None, "info", {"environment": "testing"})["environment"] == "testing"
