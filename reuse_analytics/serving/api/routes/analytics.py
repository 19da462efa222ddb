"""
Analytics API Endpoints

Aggregate snapshot of opt-in behaviour, recomputed on every request.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
import structlog

from reuse_analytics.analytics.aggregation import to_summarizer_payload
from reuse_analytics.analytics.schemas import AnalyticsSnapshot
from reuse_analytics.database.repository import OrderFilters
from reuse_analytics.serving.api.dependencies import get_services
from reuse_analytics.serving.services import Services

router = APIRouter()
logger = structlog.get_logger(__name__)


def snapshot_filters(
    store: Optional[List[str]] = Query(default=None, description="Store ids to include"),
    date_from: Optional[date] = Query(default=None, description="First order date, inclusive"),
    date_to: Optional[date] = Query(default=None, description="Last order date, inclusive"),
) -> OrderFilters:
    if date_from and date_to and date_from > date_to:
        raise HTTPException(status_code=422, detail="date_from must not be after date_to")
    return OrderFilters(store_ids=store or [], date_from=date_from, date_to=date_to)


@router.get("/snapshot", response_model=AnalyticsSnapshot)
async def get_snapshot(
    filters: OrderFilters = Depends(snapshot_filters),
    services: Services = Depends(get_services),
) -> AnalyticsSnapshot:
    """
    Full analytics snapshot: summary, stores, geography, temporal and
    order-value breakdowns, and ranked insights.
    """
    logger.info(
        "get_snapshot called",
        stores=filters.store_ids,
        date_from=str(filters.date_from),
        date_to=str(filters.date_to),
    )
    return await services.engine.aggregate(filters)


@router.get("/summary-payload")
async def get_summarizer_payload(
    filters: OrderFilters = Depends(snapshot_filters),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """Aggregate-only payload for the external summarizer"""
    snapshot = await services.engine.aggregate(filters)
    return to_summarizer_payload(snapshot)
