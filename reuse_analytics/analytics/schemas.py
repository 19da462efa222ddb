"""
Analytics Snapshot Schemas

Response models for the aggregate snapshot. Every metric carries both
opt_ins and opt_outs so that total == opt_ins + opt_outs can be checked
at each level.
"""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class OptInMetric(BaseModel):
    """Counts shared by every aggregation level"""
    total: int = 0
    opt_ins: int = 0
    opt_outs: int = 0
    opt_in_rate: float = 0.0


class Summary(OptInMetric):
    """Snapshot-wide totals"""
    avg_opt_in_order_value: float = 0.0
    avg_opt_out_order_value: float = 0.0
    value_difference: float = 0.0
    total_revenue: float = 0.0


class StoreMetric(OptInMetric):
    store_id: str
    avg_order_value: float = 0.0
    total_revenue: float = 0.0


class GeoMetric(OptInMetric):
    """City, province or country aggregate"""
    name: str
    avg_order_value: Optional[float] = None


class HierarchyNode(OptInMetric):
    """One level of the country -> city -> region tree"""
    name: str
    children: List["HierarchyNode"] = Field(default_factory=list)


class DayOfWeekBucket(OptInMetric):
    day_num: int
    day: str


class MonthBucket(OptInMetric):
    month: str


class ValueRangeBucket(OptInMetric):
    range: str


class InsightImpact(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Insight(BaseModel):
    type: str
    title: str
    description: str
    value: float
    impact: InsightImpact


class GeographicBreakdown(BaseModel):
    top_cities: List[GeoMetric] = Field(default_factory=list)
    best_cities_by_opt_in: List[GeoMetric] = Field(default_factory=list)
    top_countries: List[GeoMetric] = Field(default_factory=list)
    top_provinces: List[GeoMetric] = Field(default_factory=list)
    hierarchy: List[HierarchyNode] = Field(default_factory=list)


class TemporalBreakdown(BaseModel):
    by_day_of_week: List[DayOfWeekBucket] = Field(default_factory=list)
    by_month: List[MonthBucket] = Field(default_factory=list)


class SnapshotFilters(BaseModel):
    store_ids: List[str] = Field(default_factory=list)
    date_from: Optional[date] = None
    date_to: Optional[date] = None


class SnapshotMeta(BaseModel):
    analyzed_at: datetime
    orders_analyzed: int
    pages_scanned: int
    filters: SnapshotFilters
    reference_data_version: str


class AnalyticsSnapshot(BaseModel):
    """Full aggregate snapshot, recomputed on each request"""
    summary: Summary
    stores: List[StoreMetric] = Field(default_factory=list)
    geographic: GeographicBreakdown
    temporal: TemporalBreakdown
    order_value_analysis: List[ValueRangeBucket] = Field(default_factory=list)
    insights: List[Insight] = Field(default_factory=list)
    meta: SnapshotMeta
