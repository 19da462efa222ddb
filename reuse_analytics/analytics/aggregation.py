"""
Aggregation Engine

Builds the analytics snapshot from a paginated, read-only scan of the order
store. Each page is folded into running accumulators in a single pass:
- Summary totals and revenue split by opt-in state
- Per-store, per-city, per-province and per-country tallies
- Country -> city -> region hierarchy
- Day-of-week, month and order-value buckets

Geography is re-validated against the reference vocabularies here, so rows
stored before a vocabulary update never leak unknown names into the
snapshot.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

import structlog

from reuse_analytics.analytics.schemas import (
    AnalyticsSnapshot,
    DayOfWeekBucket,
    GeoMetric,
    GeographicBreakdown,
    HierarchyNode,
    Insight,
    InsightImpact,
    MonthBucket,
    SnapshotFilters,
    SnapshotMeta,
    StoreMetric,
    Summary,
    TemporalBreakdown,
    ValueRangeBucket,
)
from reuse_analytics.config import get_settings
from reuse_analytics.database.models import ImportedOrder
from reuse_analytics.database.repository import OrderFilters, OrderStore
from reuse_analytics.transformation.geography import validate_triple
from reuse_analytics.transformation.reference_data import REFERENCE_DATA_VERSION

logger = structlog.get_logger(__name__)

# Sunday first, matching day_num 0..6
DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

# (label, lower inclusive, upper exclusive); first match wins
VALUE_RANGES: Tuple[Tuple[str, Decimal, Optional[Decimal]], ...] = (
    ("$0-25", Decimal("0"), Decimal("25")),
    ("$25-50", Decimal("25"), Decimal("50")),
    ("$50-100", Decimal("50"), Decimal("100")),
    ("$100-200", Decimal("100"), Decimal("200")),
    ("$200-500", Decimal("200"), Decimal("500")),
    ("$500+", Decimal("500"), None),
)

_IMPACT_RANK = {InsightImpact.HIGH: 0, InsightImpact.MEDIUM: 1, InsightImpact.LOW: 2}


def percentage(part: int, total: int) -> float:
    """part / total * 100 rounded to two decimals; 0.0 for an empty total"""
    if total <= 0:
        return 0.0
    return round(part / total * 100, 2)


def average(amount: Decimal, count: int) -> float:
    if count <= 0:
        return 0.0
    return round(float(amount / count), 2)


def value_range_for(price: Decimal) -> str:
    for label, lower, upper in VALUE_RANGES:
        if price >= lower and (upper is None or price < upper):
            return label
    # Negative prices are clamped at ingestion; anything else lands in the first band
    return VALUE_RANGES[0][0]


def day_of_week(moment: datetime) -> int:
    """Sunday = 0 ... Saturday = 6"""
    return (moment.weekday() + 1) % 7


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def store_display_name(store_id: str) -> str:
    return store_id.replace(".myshopify.com", "")


@dataclass
class Tally:
    """Running opt-in counts and revenue for one aggregation key"""
    total: int = 0
    opt_ins: int = 0
    revenue: Decimal = Decimal("0")

    @property
    def opt_outs(self) -> int:
        return self.total - self.opt_ins

    @property
    def opt_in_rate(self) -> float:
        return percentage(self.opt_ins, self.total)

    def add(self, opt_in: bool, price: Decimal) -> None:
        self.total += 1
        if opt_in:
            self.opt_ins += 1
        self.revenue += price

    def counts(self) -> dict:
        return {
            "total": self.total,
            "opt_ins": self.opt_ins,
            "opt_outs": self.opt_outs,
            "opt_in_rate": self.opt_in_rate,
        }


@dataclass
class _CityNode:
    tally: Tally = field(default_factory=Tally)
    regions: Dict[str, Tally] = field(default_factory=dict)


def _by_volume(items: Iterable[Tuple[str, Tally]]) -> List[Tuple[str, Tally]]:
    return sorted(items, key=lambda item: (-item[1].total, item[0]))


@dataclass
class SnapshotAccumulator:
    """Single-pass accumulators fed one order at a time"""
    total: Tally = field(default_factory=Tally)
    opt_in_revenue: Decimal = Decimal("0")
    opt_out_revenue: Decimal = Decimal("0")
    stores: Dict[str, Tally] = field(default_factory=dict)
    cities: Dict[str, Tally] = field(default_factory=dict)
    provinces: Dict[str, Tally] = field(default_factory=dict)
    countries: Dict[str, Tally] = field(default_factory=dict)
    hierarchy: Dict[str, Dict[str, _CityNode]] = field(default_factory=dict)
    days: Dict[int, Tally] = field(default_factory=lambda: {day: Tally() for day in range(7)})
    months: Dict[str, Tally] = field(default_factory=dict)
    value_ranges: Dict[str, Tally] = field(
        default_factory=lambda: {label: Tally() for label, _, _ in VALUE_RANGES}
    )

    def add(self, order: ImportedOrder) -> None:
        opt_in = bool(order.opt_in)
        price = Decimal(order.total_price if order.total_price is not None else 0)

        self.total.add(opt_in, price)
        if opt_in:
            self.opt_in_revenue += price
        else:
            self.opt_out_revenue += price

        self.stores.setdefault(order.store_id or "unknown", Tally()).add(opt_in, price)

        geo = validate_triple(order.city, order.province, order.country)
        if geo.city:
            self.cities.setdefault(geo.city, Tally()).add(opt_in, price)
        if geo.province:
            self.provinces.setdefault(geo.province, Tally()).add(opt_in, price)
        if geo.country:
            self.countries.setdefault(geo.country, Tally()).add(opt_in, price)
            if geo.city:
                city_node = self.hierarchy.setdefault(geo.country, {}).setdefault(
                    geo.city, _CityNode()
                )
                city_node.tally.add(opt_in, price)
                if geo.province:
                    city_node.regions.setdefault(geo.province, Tally()).add(opt_in, price)

        if order.created_at is not None:
            created = _as_utc(order.created_at)
            self.days[day_of_week(created)].add(opt_in, price)
            self.months.setdefault(created.strftime("%Y-%m"), Tally()).add(opt_in, price)

        self.value_ranges[value_range_for(price)].add(opt_in, price)


class AggregationEngine:
    """
    Computes analytics snapshots from the order store.

    Example:
        engine = AggregationEngine(store)
        snapshot = await engine.aggregate(OrderFilters(store_ids=["shop-a"]))
        print(snapshot.summary.opt_in_rate)
    """

    def __init__(
        self,
        store: OrderStore,
        page_size: int = 1000,
        top_cities: int = 15,
        top_provinces: int = 10,
        hierarchy_countries: int = 20,
        hierarchy_cities: int = 15,
        hierarchy_regions: int = 10,
        best_cities_limit: int = 10,
        min_city_orders: int = 10,
        min_store_orders: int = 10,
    ):
        self.store = store
        self.page_size = page_size
        self.top_cities = top_cities
        self.top_provinces = top_provinces
        self.hierarchy_countries = hierarchy_countries
        self.hierarchy_cities = hierarchy_cities
        self.hierarchy_regions = hierarchy_regions
        self.best_cities_limit = best_cities_limit
        self.min_city_orders = min_city_orders
        self.min_store_orders = min_store_orders

    async def aggregate(self, filters: Optional[OrderFilters] = None) -> AnalyticsSnapshot:
        """Scan every matching order page by page and build the snapshot"""
        filters = filters or OrderFilters()
        acc = SnapshotAccumulator()
        pages = 0

        async for page in self.store.iter_pages(self.page_size, filters):
            pages += 1
            for order in page:
                acc.add(order)

        snapshot = self.build_snapshot(acc, filters, pages)
        logger.info(
            "Snapshot aggregated",
            orders=snapshot.summary.total,
            pages=pages,
            stores=len(snapshot.stores),
            countries=len(snapshot.geographic.top_countries),
            insights=len(snapshot.insights),
        )
        return snapshot

    def build_snapshot(
        self,
        acc: SnapshotAccumulator,
        filters: OrderFilters,
        pages: int,
    ) -> AnalyticsSnapshot:
        summary = self._summary(acc)
        stores = self._stores(acc)
        cities = [self._geo(name, tally) for name, tally in _by_volume(acc.cities.items())]
        best_cities = sorted(
            (city for city in cities if city.total >= self.min_city_orders),
            key=lambda city: (-city.opt_in_rate, -city.total, city.name),
        )[: self.best_cities_limit]

        geographic = GeographicBreakdown(
            top_cities=cities[: self.top_cities],
            best_cities_by_opt_in=best_cities,
            top_countries=[
                self._geo(name, tally) for name, tally in _by_volume(acc.countries.items())
            ],
            top_provinces=[
                GeoMetric(name=name, **tally.counts())
                for name, tally in _by_volume(acc.provinces.items())[: self.top_provinces]
            ],
            hierarchy=self._hierarchy(acc),
        )

        temporal = TemporalBreakdown(
            by_day_of_week=[
                DayOfWeekBucket(day_num=day, day=DAY_NAMES[day], **acc.days[day].counts())
                for day in range(7)
            ],
            by_month=[
                MonthBucket(month=month, **acc.months[month].counts())
                for month in sorted(acc.months)
            ],
        )

        value_ranges = [
            ValueRangeBucket(range=label, **acc.value_ranges[label].counts())
            for label, _, _ in VALUE_RANGES
        ]

        return AnalyticsSnapshot(
            summary=summary,
            stores=stores,
            geographic=geographic,
            temporal=temporal,
            order_value_analysis=value_ranges,
            insights=self._insights(summary, stores, best_cities),
            meta=SnapshotMeta(
                analyzed_at=datetime.now(timezone.utc),
                orders_analyzed=summary.total,
                pages_scanned=pages,
                filters=SnapshotFilters(
                    store_ids=list(filters.store_ids),
                    date_from=filters.date_from,
                    date_to=filters.date_to,
                ),
                reference_data_version=REFERENCE_DATA_VERSION,
            ),
        )

    @staticmethod
    def _summary(acc: SnapshotAccumulator) -> Summary:
        avg_in = average(acc.opt_in_revenue, acc.total.opt_ins)
        avg_out = average(acc.opt_out_revenue, acc.total.opt_outs)
        return Summary(
            **acc.total.counts(),
            avg_opt_in_order_value=avg_in,
            avg_opt_out_order_value=avg_out,
            value_difference=round(avg_in - avg_out, 2),
            total_revenue=round(float(acc.total.revenue), 2),
        )

    @staticmethod
    def _stores(acc: SnapshotAccumulator) -> List[StoreMetric]:
        return [
            StoreMetric(
                store_id=store_id,
                **tally.counts(),
                avg_order_value=average(tally.revenue, tally.total),
                total_revenue=round(float(tally.revenue), 2),
            )
            for store_id, tally in _by_volume(acc.stores.items())
        ]

    @staticmethod
    def _geo(name: str, tally: Tally) -> GeoMetric:
        return GeoMetric(
            name=name,
            **tally.counts(),
            avg_order_value=average(tally.revenue, tally.total),
        )

    def _hierarchy(self, acc: SnapshotAccumulator) -> List[HierarchyNode]:
        nodes = []
        countries = _by_volume(acc.countries.items())[: self.hierarchy_countries]
        for country, country_tally in countries:
            city_nodes = acc.hierarchy.get(country, {})
            cities = sorted(
                city_nodes.items(), key=lambda item: (-item[1].tally.total, item[0])
            )[: self.hierarchy_cities]
            children = [
                HierarchyNode(
                    name=city,
                    **node.tally.counts(),
                    children=[
                        HierarchyNode(name=region, **region_tally.counts())
                        for region, region_tally in _by_volume(node.regions.items())[
                            : self.hierarchy_regions
                        ]
                    ],
                )
                for city, node in cities
            ]
            nodes.append(HierarchyNode(name=country, **country_tally.counts(), children=children))
        return nodes

    def _insights(
        self,
        summary: Summary,
        stores: List[StoreMetric],
        best_cities: List[GeoMetric],
    ) -> List[Insight]:
        insights = []

        ranked_stores = sorted(
            (store for store in stores if store.total >= self.min_store_orders),
            key=lambda store: (-store.opt_in_rate, -store.total, store.store_id),
        )
        if ranked_stores and ranked_stores[0].opt_in_rate > 0:
            best = ranked_stores[0]
            insights.append(Insight(
                type="store",
                title="Top Performing Store",
                description=(
                    f"{store_display_name(best.store_id)} leads with "
                    f"{best.opt_in_rate:.2f}% opt-in rate"
                ),
                value=best.opt_in_rate,
                impact=InsightImpact.HIGH,
            ))

        if summary.value_difference > 0:
            insights.append(Insight(
                type="value",
                title="Opt-In Customers Spend More",
                description=(
                    f"Opt-in customers spend ${summary.value_difference:.2f} more on average"
                ),
                value=summary.value_difference,
                impact=InsightImpact.HIGH,
            ))

        if best_cities:
            city = best_cities[0]
            insights.append(Insight(
                type="geographic",
                title="Best Performing City",
                description=(
                    f"{city.name} has {city.opt_in_rate:.2f}% opt-in rate "
                    f"with {city.total} orders"
                ),
                value=city.opt_in_rate,
                impact=InsightImpact.MEDIUM,
            ))

        return sorted(insights, key=lambda insight: _IMPACT_RANK[insight.impact])


def to_summarizer_payload(snapshot: AnalyticsSnapshot) -> dict:
    """
    Aggregate-only view handed to the external summarizer.

    Only counts, rates and group names leave the process; no per-order or
    customer fields are ever included.
    """
    def metric(item) -> dict:
        return {
            "total": item.total,
            "opt_ins": item.opt_ins,
            "opt_outs": item.opt_outs,
            "opt_in_rate": item.opt_in_rate,
        }

    summary = snapshot.summary
    return {
        "summary": {
            **metric(summary),
            "avg_opt_in_order_value": summary.avg_opt_in_order_value,
            "avg_opt_out_order_value": summary.avg_opt_out_order_value,
            "value_difference": summary.value_difference,
        },
        "stores": [
            {"store": store_display_name(store.store_id), **metric(store)}
            for store in snapshot.stores
        ],
        "top_cities": [
            {"name": city.name, **metric(city)} for city in snapshot.geographic.top_cities
        ],
        "top_countries": [
            {"name": country.name, **metric(country)}
            for country in snapshot.geographic.top_countries
        ],
        "top_provinces": [
            {"name": province.name, **metric(province)}
            for province in snapshot.geographic.top_provinces
        ],
        "by_day_of_week": [
            {"day": bucket.day, **metric(bucket)} for bucket in snapshot.temporal.by_day_of_week
        ],
        "by_month": [
            {"month": bucket.month, **metric(bucket)} for bucket in snapshot.temporal.by_month
        ],
        "order_value_analysis": [
            {"range": bucket.range, **metric(bucket)} for bucket in snapshot.order_value_analysis
        ],
        "insights": [
            {"title": insight.title, "description": insight.description, "impact": insight.impact.value}
            for insight in snapshot.insights
        ],
        "orders_analyzed": snapshot.meta.orders_analyzed,
    }


def create_aggregation_engine(store: OrderStore) -> AggregationEngine:
    """Create an AggregationEngine with the configured limits"""
    analytics = get_settings().analytics
    return AggregationEngine(
        store=store,
        page_size=analytics.page_size,
        top_cities=analytics.top_cities,
        top_provinces=analytics.top_provinces,
        hierarchy_countries=analytics.hierarchy_countries,
        hierarchy_cities=analytics.hierarchy_cities,
        hierarchy_regions=analytics.hierarchy_regions,
        best_cities_limit=analytics.best_cities_limit,
        min_city_orders=analytics.min_city_orders,
        min_store_orders=analytics.min_store_orders,
    )
