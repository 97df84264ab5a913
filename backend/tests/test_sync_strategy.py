"""Strategy selection, urgency and estimates for smart sync."""

from datetime import datetime, timedelta, timezone

import pytest

from schemas.analytics import SyncContext, SyncStrategy, Urgency
from schemas.platform import AccountSnapshot
from services.sync_strategy import (
    SyncPlanner,
    build_sync_context,
    calculate_urgency,
    determine_optimal_strategy,
    estimate_data_points,
)

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def context(days_since_last_collection: int, is_new_account: bool = False) -> SyncContext:
    return SyncContext(
        social_account_id="acct-1",
        is_new_account=is_new_account,
        days_since_creation=max(days_since_last_collection, 30),
        days_since_last_collection=days_since_last_collection,
        needs_historical_data=is_new_account,
    )


class TestDetermineOptimalStrategy:
    @pytest.mark.parametrize(
        "days, expected",
        [
            (0, SyncStrategy.INCREMENTAL_DAILY),
            (1, SyncStrategy.INCREMENTAL_DAILY),
            (2, SyncStrategy.SMART_ADAPTIVE),
            (7, SyncStrategy.SMART_ADAPTIVE),
            (8, SyncStrategy.GAP_FILLING),
            (45, SyncStrategy.GAP_FILLING),
        ],
    )
    def test_strategy_by_staleness(self, days, expected):
        assert determine_optimal_strategy(context(days)) == expected

    def test_new_account_needing_history_gets_full_historical(self):
        assert determine_optimal_strategy(context(0, is_new_account=True)) == SyncStrategy.FULL_HISTORICAL

    def test_new_account_without_history_need_falls_through(self):
        ctx = context(0, is_new_account=True).model_copy(update={"needs_historical_data": False})

        assert determine_optimal_strategy(ctx) == SyncStrategy.INCREMENTAL_DAILY


class TestCalculateUrgency:
    @pytest.mark.parametrize(
        "days, expected",
        [
            (0, Urgency.LOW),
            (1, Urgency.LOW),
            (2, Urgency.MEDIUM),
            (3, Urgency.MEDIUM),
            (4, Urgency.HIGH),
            (7, Urgency.HIGH),
            (8, Urgency.CRITICAL),
        ],
    )
    def test_urgency_by_staleness(self, days, expected):
        assert calculate_urgency(context(days)) == expected

    def test_new_account_is_high(self):
        assert calculate_urgency(context(0, is_new_account=True)) == Urgency.HIGH


class TestEstimateDataPoints:
    def test_estimates_per_strategy(self):
        ctx = context(10)

        assert estimate_data_points(ctx, SyncStrategy.INCREMENTAL_DAILY) == 10
        assert estimate_data_points(ctx, SyncStrategy.SMART_ADAPTIVE) == 150
        assert estimate_data_points(ctx, SyncStrategy.FULL_HISTORICAL) == 450
        assert estimate_data_points(ctx, SyncStrategy.GAP_FILLING) == 84


class TestBuildSyncContext:
    def test_never_collected_account_is_new(self):
        ctx = build_sync_context("acct-1", created_at=NOW - timedelta(days=3, hours=5), last_collection=None, now=NOW)

        assert ctx.is_new_account is True
        assert ctx.needs_historical_data is True
        assert ctx.days_since_creation == 3
        assert ctx.days_since_last_collection == 3
        assert ctx.last_collection is None

    def test_days_are_floored(self):
        ctx = build_sync_context(
            "acct-1",
            created_at=NOW - timedelta(days=100),
            last_collection=NOW - timedelta(hours=47),
            now=NOW,
        )

        assert ctx.is_new_account is False
        assert ctx.days_since_last_collection == 1

    def test_naive_timestamps_are_read_as_utc(self):
        ctx = build_sync_context(
            "acct-1",
            created_at=(NOW - timedelta(days=10)).replace(tzinfo=None),
            last_collection=(NOW - timedelta(days=2)).replace(tzinfo=None),
            now=NOW,
        )

        assert ctx.days_since_creation == 10
        assert ctx.days_since_last_collection == 2


class TestSyncPlanner:
    async def test_fresh_account_needs_full_historical(self, store, make_account):
        account = await make_account()

        recommendation = await SyncPlanner(store).get_sync_recommendations(account.id)

        assert recommendation.current_status == "never_synced"
        assert recommendation.recommended_strategy == SyncStrategy.FULL_HISTORICAL
        assert recommendation.urgency == Urgency.HIGH
        assert recommendation.estimated_data_to_collect == 450

    async def test_just_collected_account_gets_incremental(self, store, make_account):
        account = await make_account(created_at=datetime.now(timezone.utc) - timedelta(days=60))
        await store.save_account_analytics_safely(account.id, AccountSnapshot(followers_count=10))

        recommendation = await SyncPlanner(store).get_sync_recommendations(account.id)

        assert recommendation.current_status == "synced"
        assert recommendation.days_since_last_collection == 0
        assert recommendation.recommended_strategy == SyncStrategy.INCREMENTAL_DAILY
        assert recommendation.urgency == Urgency.LOW

    async def test_ten_days_stale_needs_gap_filling(self, store, make_account):
        account = await make_account(created_at=datetime.now(timezone.utc) - timedelta(days=60))
        stale_day = (datetime.now(timezone.utc) - timedelta(days=10)).date()
        await store.save_account_analytics_safely(
            account.id, AccountSnapshot(followers_count=10), target_date=stale_day
        )

        recommendation = await SyncPlanner(store).get_sync_recommendations(account.id)

        assert recommendation.recommended_strategy == SyncStrategy.GAP_FILLING
        assert recommendation.urgency == Urgency.CRITICAL
