"""Strategy selection for smart sync.

The selection, urgency and estimate functions are pure; ``SyncPlanner``
derives their input from stored timestamps.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Optional

from schemas.analytics import SyncContext, SyncRecommendation, SyncStrategy, Urgency
from services.analytics_store import AnalyticsStore, as_utc

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)

# Rough data point estimates per strategy. Heuristics, not measurements.
INCREMENTAL_DAILY_ESTIMATE = 10
ADAPTIVE_POINTS_PER_DAY = 15
FULL_HISTORICAL_ESTIMATE = 450
GAP_FILL_POINTS_PER_DAY = 12
GAP_FILL_MAX_DAYS = 7

# Recommend the next sync this long after any run
NEXT_SYNC_INTERVAL = timedelta(hours=24)


def determine_optimal_strategy(context: SyncContext) -> SyncStrategy:
    if context.is_new_account and context.needs_historical_data:
        return SyncStrategy.FULL_HISTORICAL
    if context.days_since_last_collection <= 1:
        return SyncStrategy.INCREMENTAL_DAILY
    if context.days_since_last_collection <= 7:
        return SyncStrategy.SMART_ADAPTIVE
    return SyncStrategy.GAP_FILLING


def calculate_urgency(context: SyncContext) -> Urgency:
    """How pressing a sync is. Informational only."""
    if context.is_new_account:
        return Urgency.HIGH
    days = context.days_since_last_collection
    if days <= 1:
        return Urgency.LOW
    if days <= 3:
        return Urgency.MEDIUM
    if days <= 7:
        return Urgency.HIGH
    return Urgency.CRITICAL


def estimate_data_points(context: SyncContext, strategy: SyncStrategy) -> int:
    if strategy == SyncStrategy.INCREMENTAL_DAILY:
        return INCREMENTAL_DAILY_ESTIMATE
    if strategy == SyncStrategy.SMART_ADAPTIVE:
        return context.days_since_last_collection * ADAPTIVE_POINTS_PER_DAY
    if strategy == SyncStrategy.FULL_HISTORICAL:
        return FULL_HISTORICAL_ESTIMATE
    return min(context.days_since_last_collection, GAP_FILL_MAX_DAYS) * GAP_FILL_POINTS_PER_DAY


def build_sync_context(
    social_account_id: str,
    created_at: datetime,
    last_collection: Optional[datetime],
    now: Optional[datetime] = None,
) -> SyncContext:
    """Whole days since creation and since the last collection.

    A never-collected account is new and needs a historical backfill; its
    staleness is its age.
    """
    now = now or datetime.now(timezone.utc)
    days_since_creation = math.floor((now - as_utc(created_at)) / ONE_DAY)
    if last_collection is not None:
        days_since_last_collection = math.floor((now - as_utc(last_collection)) / ONE_DAY)
    else:
        days_since_last_collection = days_since_creation

    is_new_account = last_collection is None
    return SyncContext(
        social_account_id=social_account_id,
        is_new_account=is_new_account,
        days_since_creation=days_since_creation,
        days_since_last_collection=days_since_last_collection,
        needs_historical_data=is_new_account,
        last_collection=as_utc(last_collection),
    )


def next_recommended_sync(now: Optional[datetime] = None) -> datetime:
    return (now or datetime.now(timezone.utc)) + NEXT_SYNC_INTERVAL


class SyncPlanner:
    """Builds sync contexts and recommendations from the store."""

    def __init__(self, store: AnalyticsStore):
        self.store = store

    async def get_sync_context(self, social_account_id: str) -> SyncContext:
        account = await self.store.require_account(social_account_id)
        last_collection = await self.store.last_collection_time(social_account_id)
        return build_sync_context(social_account_id, account.created_at, last_collection)

    async def get_sync_recommendations(self, social_account_id: str) -> SyncRecommendation:
        context = await self.get_sync_context(social_account_id)
        strategy = determine_optimal_strategy(context)
        return SyncRecommendation(
            social_account_id=social_account_id,
            current_status="synced" if context.last_collection else "never_synced",
            last_collection=context.last_collection,
            days_since_last_collection=context.days_since_last_collection,
            recommended_strategy=strategy,
            estimated_data_to_collect=estimate_data_points(context, strategy),
            urgency=calculate_urgency(context),
        )
