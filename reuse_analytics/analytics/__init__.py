"""
Analytics Layer

Aggregate snapshot computation over stored orders.
"""

from reuse_analytics.analytics.aggregation import (
    AggregationEngine,
    create_aggregation_engine,
    to_summarizer_payload,
)
from reuse_analytics.analytics.schemas import AnalyticsSnapshot

__all__ = [
    "AggregationEngine",
    "AnalyticsSnapshot",
    "create_aggregation_engine",
    "to_summarizer_payload",
]
