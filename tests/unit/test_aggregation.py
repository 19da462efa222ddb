"""
Tests for the aggregation engine
"""
import json
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from reuse_analytics.analytics.aggregation import (
    AggregationEngine,
    day_of_week,
    percentage,
    to_summarizer_payload,
    value_range_for,
)
from reuse_analytics.analytics.schemas import InsightImpact
from reuse_analytics.database.repository import OrderFilters

STORE_A = "green-basket.myshopify.com"
STORE_B = "refill-co.myshopify.com"


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
async def seeded_store(order_store, make_record):
    await order_store.upsert([
        make_record("ord-1", store_id=STORE_A, opt_in=True, total_price=Decimal("80.00"),
                    city="Manchester", province="England", country="United Kingdom",
                    created_at=utc(2025, 3, 2, 10)),
        make_record("ord-2", store_id=STORE_A, opt_in=True, total_price=Decimal("120.00"),
                    city="Manchester", province="England", country="United Kingdom",
                    created_at=utc(2025, 3, 3, 10)),
        make_record("ord-3", store_id=STORE_A, opt_in=False, total_price=Decimal("20.00"),
                    city="Leeds", province="England", country="United Kingdom",
                    created_at=utc(2025, 3, 3, 15)),
        make_record("ord-4", store_id=STORE_B, opt_in=False, total_price=Decimal("30.00"),
                    city="Austin", province="Texas", country="United States",
                    created_at=utc(2025, 4, 5, 9)),
        # Stored before the vocabulary rejected these values
        make_record("ord-5", store_id=STORE_B, opt_in=True, total_price=Decimal("600.00"),
                    city=None, province=None, country="Wakanda",
                    created_at=utc(2025, 4, 6, 9)),
        make_record("ord-6", store_id=STORE_B, opt_in=False, total_price=Decimal("10.00"),
                    city="14 Lilley Court, Smith Close", province=None, country="United Kingdom",
                    created_at=None),
    ])
    return order_store


@pytest.fixture
def engine(seeded_store) -> AggregationEngine:
    return AggregationEngine(seeded_store, page_size=2, min_city_orders=2, min_store_orders=2)


def all_metrics(snapshot):
    yield snapshot.summary
    yield from snapshot.stores
    geo = snapshot.geographic
    yield from geo.top_cities
    yield from geo.best_cities_by_opt_in
    yield from geo.top_countries
    yield from geo.top_provinces
    for country in geo.hierarchy:
        yield country
        for city in country.children:
            yield city
            yield from city.children
    yield from snapshot.temporal.by_day_of_week
    yield from snapshot.temporal.by_month
    yield from snapshot.order_value_analysis


class TestHelpers:
    def test_percentage(self):
        assert percentage(1, 3) == 33.33
        assert percentage(2, 3) == 66.67
        assert percentage(0, 0) == 0.0

    @pytest.mark.parametrize("price,expected", [
        ("0", "$0-25"),
        ("24.99", "$0-25"),
        ("25", "$25-50"),
        ("99.99", "$50-100"),
        ("100", "$100-200"),
        ("499.99", "$200-500"),
        ("500", "$500+"),
        ("12000", "$500+"),
    ])
    def test_value_ranges_first_match(self, price, expected):
        assert value_range_for(Decimal(price)) == expected

    def test_day_of_week_starts_sunday(self):
        assert day_of_week(utc(2025, 3, 2)) == 0
        assert day_of_week(utc(2025, 3, 3)) == 1
        assert day_of_week(utc(2025, 3, 8)) == 6


class TestAggregate:
    """Tests for AggregationEngine.aggregate"""

    async def test_summary(self, engine):
        summary = (await engine.aggregate()).summary

        assert summary.total == 6
        assert summary.opt_ins == 3
        assert summary.opt_outs == 3
        assert summary.opt_in_rate == 50.0
        assert summary.avg_opt_in_order_value == 266.67
        assert summary.avg_opt_out_order_value == 20.0
        assert summary.value_difference == 246.67

    async def test_conservation_at_every_level(self, engine):
        snapshot = await engine.aggregate()
        for metric in all_metrics(snapshot):
            assert metric.total == metric.opt_ins + metric.opt_outs

    async def test_stores(self, engine):
        stores = {s.store_id: s for s in (await engine.aggregate()).stores}

        assert stores[STORE_A].total == 3
        assert stores[STORE_A].opt_in_rate == 66.67
        assert stores[STORE_A].total_revenue == 220.0
        assert stores[STORE_A].avg_order_value == 73.33
        assert stores[STORE_B].total == 3
        assert stores[STORE_B].opt_in_rate == 33.33

    async def test_unvalidated_geography_excluded_but_counted(self, engine):
        snapshot = await engine.aggregate()
        countries = {c.name: c.total for c in snapshot.geographic.top_countries}
        cities = [c.name for c in snapshot.geographic.top_cities]

        assert "Wakanda" not in countries
        assert countries == {"United Kingdom": 4, "United States": 1}
        assert "14 Lilley Court, Smith Close" not in cities
        assert snapshot.summary.total == 6
        assert sum(s.total for s in snapshot.stores) == 6

    async def test_cities_and_provinces_by_volume(self, engine):
        geo = (await engine.aggregate()).geographic

        assert [c.name for c in geo.top_cities] == ["Manchester", "Austin", "Leeds"]
        assert [(p.name, p.total) for p in geo.top_provinces] == [("England", 3), ("Texas", 1)]
        assert [c.name for c in geo.best_cities_by_opt_in] == ["Manchester"]

    async def test_hierarchy(self, engine):
        hierarchy = (await engine.aggregate()).geographic.hierarchy

        uk, us = hierarchy
        assert (uk.name, uk.total) == ("United Kingdom", 4)
        assert [(c.name, c.total) for c in uk.children] == [("Manchester", 2), ("Leeds", 1)]
        assert [(r.name, r.total, r.opt_ins) for r in uk.children[0].children] == [("England", 2, 2)]
        assert us.children[0].name == "Austin"
        assert us.children[0].children[0].name == "Texas"

    async def test_hierarchy_caps(self, seeded_store):
        engine = AggregationEngine(seeded_store, hierarchy_countries=1, hierarchy_cities=1)
        hierarchy = (await engine.aggregate()).geographic.hierarchy

        assert [c.name for c in hierarchy] == ["United Kingdom"]
        assert [c.name for c in hierarchy[0].children] == ["Manchester"]

    async def test_temporal_buckets(self, engine):
        temporal = (await engine.aggregate()).temporal
        days = {d.day_num: d for d in temporal.by_day_of_week}

        assert len(temporal.by_day_of_week) == 7
        assert days[0].day == "Sunday"
        assert (days[0].total, days[0].opt_ins) == (2, 2)
        assert (days[1].total, days[1].opt_ins) == (2, 1)
        assert days[6].total == 1
        assert days[3].total == 0
        assert days[3].opt_in_rate == 0.0
        assert [(m.month, m.total) for m in temporal.by_month] == [("2025-03", 3), ("2025-04", 2)]

    async def test_value_range_buckets(self, engine):
        buckets = {b.range: b for b in (await engine.aggregate()).order_value_analysis}

        assert list(buckets) == ["$0-25", "$25-50", "$50-100", "$100-200", "$200-500", "$500+"]
        assert buckets["$0-25"].total == 2
        assert buckets["$0-25"].opt_in_rate == 0.0
        assert buckets["$200-500"].total == 0
        assert (buckets["$500+"].total, buckets["$500+"].opt_ins) == (1, 1)
        assert sum(b.total for b in buckets.values()) == 6

    async def test_insights(self, engine):
        insights = (await engine.aggregate()).insights

        assert [i.type for i in insights] == ["store", "value", "geographic"]
        assert [i.impact for i in insights] == [InsightImpact.HIGH, InsightImpact.HIGH, InsightImpact.MEDIUM]
        assert insights[0].description == "green-basket leads with 66.67% opt-in rate"
        assert insights[1].description == "Opt-in customers spend $246.67 more on average"
        assert insights[2].description == "Manchester has 100.00% opt-in rate with 2 orders"

    async def test_low_volume_store_not_ranked(self, seeded_store):
        engine = AggregationEngine(seeded_store, min_store_orders=10, min_city_orders=10)
        insights = (await engine.aggregate()).insights
        assert [i.type for i in insights] == ["value"]

    async def test_meta(self, engine):
        meta = (await engine.aggregate()).meta
        assert meta.orders_analyzed == 6
        assert meta.pages_scanned == 3
        assert meta.filters.store_ids == []

    async def test_store_filter(self, engine):
        snapshot = await engine.aggregate(OrderFilters(store_ids=[STORE_B]))
        assert snapshot.summary.total == 3
        assert [s.store_id for s in snapshot.stores] == [STORE_B]
        assert snapshot.meta.filters.store_ids == [STORE_B]

    async def test_date_filter(self, engine):
        snapshot = await engine.aggregate(OrderFilters(date_from=date(2025, 4, 1)))
        assert snapshot.summary.total == 2

    async def test_empty_store(self, order_store):
        snapshot = await AggregationEngine(order_store).aggregate()

        assert snapshot.summary.total == 0
        assert snapshot.summary.opt_in_rate == 0.0
        assert snapshot.stores == []
        assert snapshot.insights == []
        assert len(snapshot.temporal.by_day_of_week) == 7
        assert all(b.total == 0 for b in snapshot.order_value_analysis)
        assert snapshot.meta.pages_scanned == 0


class TestSummarizerPayload:
    async def test_only_aggregates_leave(self, engine):
        payload = to_summarizer_payload(await engine.aggregate())
        serialized = json.dumps(payload)

        assert "ord-" not in serialized
        assert "external_id" not in serialized
        assert "payment_status" not in serialized
        assert payload["summary"]["total"] == 6
        assert payload["orders_analyzed"] == 6
        assert {s["store"] for s in payload["stores"]} == {"green-basket", "refill-co"}
