"""Analytics router - triggers collection runs and serves sync state, hotspots and run history."""

from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel

from middleware.auth import verify_api_key
from middleware.rate_limit import limiter
from schemas.analytics import (
    AnalyticsRunOptions,
    AnalyticsRunResult,
    HistoricalSyncResult,
    HotspotBatchResult,
    RunLogEntry,
    SmartSyncOptions,
    SyncRecommendation,
    SyncResult,
    SyncStatus,
)
from services.container import AnalyticsServices
from services.exceptions import AccountNotFoundError

router = APIRouter(
    prefix="/analytics",
    tags=["analytics"],
    dependencies=[Depends(verify_api_key)],
)


def get_services(request: Request) -> AnalyticsServices:
    return request.app.state.services


Services = Annotated[AnalyticsServices, Depends(get_services)]


def not_found(e: AccountNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)


# ============== Response Models ==============

class HotspotCell(BaseModel):
    day_of_week: int
    hour_of_day: int
    score: float
    updated_at: datetime


class PostAnalyticsSnapshot(BaseModel):
    id: str
    likes: int
    comments: int
    shares: int
    saves: int
    clicks: int
    reach: int
    impressions: int
    views: int
    engagement: float
    content_format: Optional[str]
    raw_insights: Optional[dict]
    recorded_at: datetime


class PostAnalyticsView(BaseModel):
    """Latest reading, plus the latest one that carries a raw provider payload."""
    published_post_id: str
    latest: Optional[PostAnalyticsSnapshot] = None
    richest: Optional[PostAnalyticsSnapshot] = None


# ============== Runs ==============

@router.post("/run", response_model=AnalyticsRunResult)
@limiter.limit("10/minute")
async def run_analytics(
    request: Request,  # Required for rate limiting - must be named 'request'
    options: AnalyticsRunOptions,
    services: Services,
):
    """Run a complete analytics collection for one account, one team or everything."""
    try:
        return await services.master.run_complete_analytics(options)
    except AccountNotFoundError as e:
        raise not_found(e)


@router.post("/smart-sync", response_model=SyncResult)
@limiter.limit("10/minute")
async def smart_sync(
    request: Request,
    options: SmartSyncOptions,
    services: Services,
):
    """Sync one account with the best strategy for its current state."""
    return await services.smart_sync.perform_smart_sync(options)


@router.post("/hotspots/run", response_model=HotspotBatchResult)
@limiter.limit("5/minute")
async def run_hotspots(request: Request, services: Services):
    return await services.hotspots.run_hotspot_analysis_for_all_accounts()


@router.get("/runs", response_model=list[RunLogEntry])
async def run_history(
    services: Services,
    hours: int = Query(24, ge=1, le=24 * 30),
):
    """Recent complete analytics runs, newest first."""
    return await services.master.get_analytics_run_history(hours)


# ============== Accounts ==============

@router.get("/accounts/{account_id}/sync-recommendations", response_model=SyncRecommendation)
async def sync_recommendations(account_id: str, services: Services):
    try:
        return await services.smart_sync.get_sync_recommendations(account_id)
    except AccountNotFoundError as e:
        raise not_found(e)


@router.get("/accounts/{account_id}/sync-status", response_model=SyncStatus)
async def sync_status(account_id: str, services: Services):
    if await services.store.get_account(account_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Social account not found")
    return await services.master.get_sync_status(account_id)


@router.post("/accounts/{account_id}/historical-sync", response_model=HistoricalSyncResult)
@limiter.limit("5/minute")
async def historical_sync(
    request: Request,
    account_id: str,
    services: Services,
    max_days_back: int = Query(90, ge=1, le=90),
    force_full_sync: bool = False,
):
    if await services.store.get_account(account_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Social account not found")
    return await services.master.sync_historical_data(account_id, max_days_back, force_full_sync)


@router.get("/accounts/{account_id}/hotspots", response_model=list[HotspotCell])
async def account_hotspots(account_id: str, services: Services):
    hotspots = await services.store.list_hotspots(account_id)
    return [
        HotspotCell(
            day_of_week=h.day_of_week,
            hour_of_day=h.hour_of_day,
            score=h.score,
            updated_at=h.updated_at,
        )
        for h in hotspots
    ]


# ============== Posts ==============

@router.get("/posts/{post_id}/analytics", response_model=PostAnalyticsView)
async def post_analytics(post_id: str, services: Services):
    latest = await services.store.latest_post_analytics(post_id)
    if latest is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No analytics for this post")
    richest = await services.store.richest_post_analytics(post_id)
    return PostAnalyticsView(
        published_post_id=post_id,
        latest=PostAnalyticsSnapshot.model_validate(latest, from_attributes=True),
        richest=PostAnalyticsSnapshot.model_validate(richest, from_attributes=True) if richest else None,
    )
