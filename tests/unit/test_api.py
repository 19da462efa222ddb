"""
Tests for the HTTP API
"""
from decimal import Decimal

import httpx
import pytest

from reuse_analytics.analytics.aggregation import AggregationEngine
from reuse_analytics.ingestion.locks import DatabaseSyncLock
from reuse_analytics.ingestion.remote_fetcher import RemoteOrderFetcher
from reuse_analytics.ingestion.sync_coordinator import SyncCoordinator
from reuse_analytics.main import create_app
from reuse_analytics.serving.services import Services

REMOTE_ORDERS = [
    {
        "id": "3001",
        "user_id": "green-basket.myshopify.com",
        "opt_in": True,
        "total_price": "55.00",
        "destination": '{"city":"Bristol","province":"England","country":"United Kingdom"}',
        "created_at": "2025-06-01T09:00:00Z",
    },
    {
        "id": "3002",
        "user_id": "green-basket.myshopify.com",
        "opt_in": False,
        "total_price": "15.00",
        "created_at": "2025-06-02T09:00:00Z",
    },
]


def build_services(session_factory, order_store, api_key="secret") -> Services:
    remote = httpx.MockTransport(lambda request: httpx.Response(200, json=REMOTE_ORDERS))
    fetcher = RemoteOrderFetcher(
        "https://orders.example.test/fetch-orders",
        api_key,
        client=httpx.AsyncClient(transport=remote),
    )
    lock = DatabaseSyncLock(session_factory)

    async def no_sleep(seconds):
        return None

    return Services(
        session_factory=session_factory,
        store=order_store,
        lock=lock,
        fetcher=fetcher,
        coordinator=SyncCoordinator(fetcher, order_store, lock, sleep=no_sleep),
        engine=AggregationEngine(order_store),
    )


@pytest.fixture
def services(session_factory, order_store) -> Services:
    return build_services(session_factory, order_store)


def client_for(services: Services) -> httpx.AsyncClient:
    app = create_app(services)
    app.state.services = services
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


class TestSyncEndpoints:
    async def test_status_starts_idle(self, services):
        async with client_for(services) as client:
            response = await client.get("/api/v1/sync/status")

        assert response.status_code == 200
        assert response.json()["state"] == "idle"
        assert response.json()["lock"] is None

    async def test_start_sync_runs_in_background(self, services):
        async with client_for(services) as client:
            response = await client.post("/api/v1/sync", json={"force_full": True})
            status = (await client.get("/api/v1/sync/status")).json()

        assert response.status_code == 202
        assert response.json()["accepted"] is True
        assert status["state"] == "online"
        assert status["local_count"] == 2
        assert status["last_synced_at"] is not None

    async def test_start_sync_without_body(self, services):
        async with client_for(services) as client:
            response = await client.post("/api/v1/sync")
        assert response.status_code == 202

    async def test_locked_sync_not_scheduled(self, services, session_factory):
        assert await DatabaseSyncLock(session_factory).acquire() is not None

        async with client_for(services) as client:
            response = await client.post("/api/v1/sync")

        body = response.json()
        assert response.status_code == 202
        assert body["accepted"] is False
        assert body["reason"] == "locked"
        assert body["status"]["lock"]["owner"]

    async def test_missing_credentials(self, session_factory, order_store):
        unconfigured = build_services(session_factory, order_store, api_key=None)

        async with client_for(unconfigured) as client:
            response = await client.post("/api/v1/sync")

        assert response.status_code == 500
        assert "API key" in response.json()["detail"]


class TestAnalyticsEndpoints:
    async def test_snapshot(self, services, order_store, make_record):
        await order_store.upsert([
            make_record("1", opt_in=True, total_price=Decimal("50.00")),
            make_record("2", opt_in=False, total_price=Decimal("10.00"), store_id="refill-co"),
        ])

        async with client_for(services) as client:
            response = await client.get("/api/v1/analytics/snapshot")

        body = response.json()
        assert response.status_code == 200
        assert body["summary"]["total"] == 2
        assert body["summary"]["opt_in_rate"] == 50.0
        assert len(body["temporal"]["by_day_of_week"]) == 7

    async def test_snapshot_store_filter(self, services, order_store, make_record):
        await order_store.upsert([make_record("1"), make_record("2", store_id="refill-co")])

        async with client_for(services) as client:
            response = await client.get("/api/v1/analytics/snapshot", params={"store": "refill-co"})

        assert response.json()["summary"]["total"] == 1
        assert response.json()["meta"]["filters"]["store_ids"] == ["refill-co"]

    async def test_invalid_date_range(self, services):
        async with client_for(services) as client:
            response = await client.get(
                "/api/v1/analytics/snapshot",
                params={"date_from": "2025-06-02", "date_to": "2025-06-01"},
            )
        assert response.status_code == 422

    async def test_summary_payload(self, services, order_store, make_record):
        await order_store.upsert([make_record("ord-77", opt_in=True)])

        async with client_for(services) as client:
            response = await client.get("/api/v1/analytics/summary-payload")

        assert response.status_code == 200
        assert response.json()["summary"]["opt_ins"] == 1
        assert "ord-77" not in response.text


class TestHealth:
    async def test_health(self, services):
        async with client_for(services) as client:
            response = await client.get("/api/v1/health")

        body = response.json()
        assert response.status_code == 200
        assert body["checks"]["database"]["status"] == "healthy"
        assert body["checks"]["order_source"]["configured"] is True

    async def test_security_headers(self, services):
        async with client_for(services) as client:
            response = await client.get("/api/v1/health/live")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "X-Request-ID" in response.headers
