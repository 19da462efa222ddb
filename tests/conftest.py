"""
Test Suite Configuration
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import AsyncGenerator, Callable

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from reuse_analytics.config import Settings
from reuse_analytics.database.connection import create_session_factory
from reuse_analytics.database.models import Base
from reuse_analytics.database.repository import OrderStore
from reuse_analytics.transformation.cleaners import OrderRecord


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
    )


@pytest.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine; StaticPool keeps one shared connection"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(test_engine)


@pytest.fixture
def order_store(session_factory) -> OrderStore:
    return OrderStore(session_factory, batch_size=500)


@pytest.fixture
def make_record() -> Callable[..., OrderRecord]:
    """Build an OrderRecord with sensible defaults"""
    def factory(external_id: str, **overrides) -> OrderRecord:
        fields = {
            "external_id": external_id,
            "store_id": "green-basket.myshopify.com",
            "opt_in": False,
            "total_price": Decimal("40.00"),
            "city": "Manchester",
            "province": "England",
            "country": "United Kingdom",
            "payment_status": "paid",
            "created_at": datetime(2025, 3, 2, 12, 0, tzinfo=timezone.utc),
        }
        fields.update(overrides)
        return OrderRecord(**fields)

    return factory


@pytest.fixture
def raw_orders() -> list:
    """Raw records as the order source returns them"""
    return [
        {
            "id": 1001,
            "user_id": "green-basket.myshopify.com",
            "opt_in": True,
            "payment_status": "paid",
            "total_price": "62.50",
            "destination": '{"city":"Manchester","province":"England","country":"United Kingdom","zip":"M1 1AA"}',
            "shopify_created_at": "2025-03-02T12:00:00Z",
        },
        {
            "id": "1002",
            "user_id": "refill-co.myshopify.com",
            "opt_in": "false",
            "payment_status": "paid",
            "total_price": 18.0,
            "city": "Austin",
            "province": "Texas",
            "country": "US",
            "created_at": "2025-03-03T09:30:00+00:00",
        },
        {
            "id": "1003",
            "user_id": "refill-co.myshopify.com",
            "opt_in": 1,
            "total_price": "$120.00",
            "city": "14 Lilley Court, Smith Close",
            "province": None,
            "country": "Wakanda",
            "created_at": "2025-04-10T18:45:00Z",
        },
    ]
