"""
Sync API Endpoints

Starts order ingestion in the background and reports its status.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel
import structlog

from reuse_analytics.exceptions import SyncAbortedError
from reuse_analytics.ingestion.sync_coordinator import SyncCoordinator
from reuse_analytics.ingestion.sync_state import SyncOptions
from reuse_analytics.serving.api.dependencies import get_services
from reuse_analytics.serving.services import Services

router = APIRouter()
logger = structlog.get_logger(__name__)


class SyncRequest(BaseModel):
    """Options for a sync run"""
    force_full: bool = False
    trigger_remote_refresh: bool = True


class LockHolder(BaseModel):
    owner: str
    expires_at: Optional[str] = None


class SyncStatusResponse(BaseModel):
    """Observable sync status"""
    state: str
    attempt: int
    next_retry_in_ms: Optional[int] = None
    last_error: Optional[str] = None
    last_synced_at: Optional[str] = None
    remote_count: Optional[int] = None
    local_count: Optional[int] = None
    lock: Optional[LockHolder] = None


class SyncAccepted(BaseModel):
    accepted: bool
    reason: Optional[str] = None
    status: SyncStatusResponse


async def run_sync(coordinator: SyncCoordinator, options: SyncOptions) -> None:
    """Background entry point; failures are already recorded in the coordinator status"""
    try:
        await coordinator.sync(options)
    except SyncAbortedError as e:
        logger.error(
            "Background sync ended with error",
            category=e.category.value,
            error=str(e),
        )


async def _status(services: Services) -> SyncStatusResponse:
    payload: Dict[str, Any] = services.coordinator.status.as_dict()
    holder = await services.lock.inspect()
    if holder is not None:
        payload["lock"] = LockHolder(
            owner=holder.owner,
            expires_at=holder.expires_at.isoformat() if holder.expires_at else None,
        )
    return SyncStatusResponse(**payload)


@router.post("", response_model=SyncAccepted, status_code=202)
async def start_sync(
    background_tasks: BackgroundTasks,
    body: Optional[SyncRequest] = None,
    services: Services = Depends(get_services),
) -> SyncAccepted:
    """
    Start a sync in the background.

    Missing order-source credentials fail the request before anything is
    scheduled. When another sync holds the lock nothing is scheduled.
    """
    body = body or SyncRequest()
    services.fetcher.ensure_configured()

    if await services.lock.inspect() is not None:
        logger.info("Sync request skipped, lock already held")
        return SyncAccepted(accepted=False, reason="locked", status=await _status(services))

    options = SyncOptions(
        force_full=body.force_full,
        trigger_remote_refresh=body.trigger_remote_refresh,
    )
    background_tasks.add_task(run_sync, services.coordinator, options)
    logger.info("Sync scheduled", force_full=options.force_full)
    return SyncAccepted(accepted=True, status=await _status(services))


@router.get("/status", response_model=SyncStatusResponse)
async def get_sync_status(services: Services = Depends(get_services)) -> SyncStatusResponse:
    """Current sync state, including retry countdown while retrying"""
    return await _status(services)
