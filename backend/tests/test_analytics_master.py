"""Analytics master service: complete runs, run history and historical sync."""

import json
from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from models.sync_run_log import RunStatus
from schemas.analytics import (
    AccountPlan,
    AnalyticsRunOptions,
    AnalyticsRunResult,
    CoverageGap,
    CoverageReport,
    SyncStrategy,
)
from schemas.platform import AccountSnapshot, PostInsights
from services.analytics_master import (
    RUN_LOG_NAME,
    needs_sync,
    plan_for_strategy,
    run_status,
    sync_recommendation,
)
from services.exceptions import AccountNotFoundError

INSIGHTS_ONLY = dict(include_hotspots=False, include_analytics=False, use_smart_sync=False)


def recent_since() -> datetime:
    return datetime.now(timezone.utc) - timedelta(minutes=5)


class TestPlanForStrategy:
    @pytest.mark.parametrize(
        "strategy, days, expected_days, skip_hotspots",
        [
            (SyncStrategy.INCREMENTAL_DAILY, 0, 1, True),
            (SyncStrategy.SMART_ADAPTIVE, 3, 4, False),
            (SyncStrategy.SMART_ADAPTIVE, 9, 7, False),
            (SyncStrategy.FULL_HISTORICAL, 0, 30, False),
            (SyncStrategy.GAP_FILLING, 12, 7, False),
            (SyncStrategy.GAP_FILLING, 0, 1, False),
        ],
    )
    def test_scope_per_strategy(self, strategy, days, expected_days, skip_hotspots):
        plan = plan_for_strategy(strategy, days, historical_days=30)

        assert plan.days_back == expected_days
        assert plan.skip_hotspots is skip_hotspots


class TestRunStatus:
    def test_status_mapping(self):
        assert run_status(AnalyticsRunResult(success=3)) == RunStatus.SUCCESS
        assert run_status(AnalyticsRunResult(success=2, failed=1)) == RunStatus.PARTIAL
        assert run_status(AnalyticsRunResult(success=3, errors=["phase failed"])) == RunStatus.ERROR


class TestCompleteRun:
    async def test_failing_account_is_counted_and_skipped(self, services, fake_client, store, make_account):
        accounts = [await make_account(name=f"Account {i}") for i in range(3)]
        fake_client.failing_profiles = {accounts[1].profile_id}

        result = await services.master.run_complete_analytics(AnalyticsRunOptions(**INSIGHTS_ONLY))

        assert (result.success, result.failed, result.total) == (2, 1, 3)
        assert result.details.insights.model_dump() == {"success": 2, "failed": 1, "total": 3}
        assert result.details.post_analytics.total == 0
        assert result.errors == []
        assert await store.latest_account_analytics(accounts[2].id) is not None
        assert await store.find_recent_run_log(RUN_LOG_NAME, RunStatus.PARTIAL, recent_since()) is not None

    async def test_account_scope_only_touches_that_account(self, services, fake_client, make_account):
        target = await make_account(name="Target")
        other = await make_account(name="Other")

        result = await services.master.run_complete_analytics(
            AnalyticsRunOptions(social_account_id=target.id, **INSIGHTS_ONLY)
        )

        assert result.total == 1
        assert ("basics", target.profile_id) in fake_client.calls
        assert ("basics", other.profile_id) not in fake_client.calls

    async def test_team_scope(self, services, make_account):
        await make_account(team_id="team-a")
        await make_account(team_id="team-a")
        await make_account(team_id="team-b")

        result = await services.master.run_analytics_for_team("team-a", AnalyticsRunOptions(**INSIGHTS_ONLY))

        assert result.total == 2
        assert result.success == 2

    async def test_unknown_account_raises_and_is_logged(self, services, store):
        with pytest.raises(AccountNotFoundError):
            await services.master.run_complete_analytics(AnalyticsRunOptions(social_account_id="missing"))

        log = await store.find_recent_run_log(RUN_LOG_NAME, RunStatus.ERROR, recent_since())
        assert log is not None
        assert "missing" in json.loads(log.message)["errors"][0]

    async def test_failing_phase_does_not_stop_later_phases(self, services, store, make_account):
        account = await make_account()
        services.master.post_analytics.run = AsyncMock(side_effect=RuntimeError("queue down"))

        result = await services.master.run_complete_analytics(
            AnalyticsRunOptions(include_hotspots=False, use_smart_sync=False)
        )

        assert result.details.insights.success == 1
        assert result.details.analytics.success == 1
        assert result.errors == ["Post analytics collection failed: queue down"]
        assert await store.find_recent_run_log(RUN_LOG_NAME, RunStatus.ERROR, recent_since()) is not None
        assert (await store.latest_account_analytics(account.id)).engagement_rate == 5.0

    async def test_hotspots_phase_skips_incremental_accounts(self, services, make_account):
        fresh = await make_account(name="Fresh")
        synced = await make_account(name="Synced", created_at=datetime.now(timezone.utc) - timedelta(days=30))
        await services.store.save_account_analytics_safely(synced.id, AccountSnapshot(followers_count=5))
        services.hotspots.refresh_hotspots = AsyncMock(return_value=168)

        result = await services.master.run_complete_analytics(AnalyticsRunOptions(include_analytics=False))

        services.hotspots.refresh_hotspots.assert_awaited_once_with(fresh.id)
        assert result.details.hotspots.total == 1

    async def test_smart_sync_plan_sets_the_analytics_window(self, services, fake_client, make_account):
        account = await make_account()

        await services.master.run_complete_analytics(
            AnalyticsRunOptions(social_account_id=account.id, include_hotspots=False)
        )

        assert ("account_insights", account.profile_id, 30) in fake_client.calls

    async def test_post_analytics_phase_records_readings(
        self, services, fake_client, store, make_account, make_post
    ):
        account = await make_account()
        post = await make_post(account, published_at=datetime.now(timezone.utc), platform_post_id="media-1")
        missing = await make_post(account, published_at=datetime.now(timezone.utc), platform_post_id="media-2")
        fake_client.insights = {"media-1": PostInsights(likes=12, reach=100, raw={"data": []})}

        result = await services.master.run_complete_analytics(
            AnalyticsRunOptions(social_account_id=account.id, include_insights=False, **INSIGHTS_ONLY)
        )

        assert result.details.post_analytics.model_dump() == {"success": 1, "failed": 1, "total": 2}
        assert (await store.latest_post_analytics(post.id)).likes == 12
        assert await store.latest_post_analytics(missing.id) is None


class TestRunHistory:
    async def test_should_run_is_false_after_a_recent_success(self, services, make_account):
        account = await make_account()
        other = await make_account()

        await services.master.run_complete_analytics(
            AnalyticsRunOptions(social_account_id=account.id, **INSIGHTS_ONLY)
        )

        assert await services.master.should_run_analytics(account.id) is False
        assert await services.master.should_run_analytics(other.id) is True
        assert await services.master.should_run_analytics() is False

    async def test_scheduled_run_is_skipped_when_recent(self, services, make_account):
        await make_account()
        await services.master.run_complete_analytics(AnalyticsRunOptions(**INSIGHTS_ONLY))

        assert await services.master.run_scheduled_analytics() is None

    async def test_history_lists_recent_runs(self, services, make_account):
        await make_account()
        await services.master.run_complete_analytics(AnalyticsRunOptions(**INSIGHTS_ONLY))

        history = await services.master.get_analytics_run_history(hours=1)

        assert len(history) == 1
        assert history[0].status == "SUCCESS"
        assert history[0].message["result"]["success"] == 1


class TestHistoricalSync:
    async def test_full_backfill_runs_in_weekly_chunks(self, services, make_account):
        account = await make_account()
        services.master.collect_for_account = AsyncMock(return_value=AnalyticsRunResult(success=1, total=1))

        result = await services.master.sync_historical_data(account.id, max_days_back=30)

        assert result.strategy == "full_backfill"
        assert services.master.collect_for_account.await_count == 5
        assert result.days_backfilled == 35
        assert result.success is True

    async def test_backfill_is_capped_at_twelve_runs(self, services, make_account):
        account = await make_account()
        services.master.collect_for_account = AsyncMock(return_value=AnalyticsRunResult(success=1, total=1))

        await services.master.sync_historical_data(account.id, max_days_back=90, force_full_sync=True)

        assert services.master.collect_for_account.await_count == 12

    async def test_failed_chunks_are_reported(self, services, make_account):
        account = await make_account()
        services.master.collect_for_account = AsyncMock(
            side_effect=[AnalyticsRunResult(success=1), AnalyticsRunResult(failed=2)]
        )

        result = await services.master.sync_historical_data(account.id, max_days_back=14)

        assert result.success is False
        assert result.days_backfilled == 7
        assert result.errors == ["Backfill 2: 2 collection steps failed"]

    async def test_stale_data_gets_an_incremental_update(self, services, store, make_account):
        account = await make_account()
        stale_day = (datetime.now(timezone.utc) - timedelta(days=4)).date()
        await store.save_account_analytics_safely(account.id, AccountSnapshot(followers_count=1), target_date=stale_day)
        services.master.collect_for_account = AsyncMock(return_value=AnalyticsRunResult(success=1))

        result = await services.master.sync_historical_data(account.id)

        assert result.strategy == "incremental_update"
        plan = services.master.collect_for_account.await_args.args[1]
        assert plan.days_back == 1

    async def test_gaps_are_filled(self, services, store, make_account):
        account = await make_account()
        today = datetime.now(timezone.utc).date()
        for offset in (6, 5, 2, 1, 0):
            await store.save_account_analytics_safely(
                account.id, AccountSnapshot(followers_count=1), target_date=today - timedelta(days=offset)
            )
        services.master.collect_for_account = AsyncMock(return_value=AnalyticsRunResult(success=1))

        result = await services.master.sync_historical_data(account.id)

        assert result.strategy == "gap_filling"
        assert result.gaps_filled == 2

    async def test_unknown_account_is_reported_not_raised(self, services):
        result = await services.master.sync_historical_data("missing")

        assert result.success is False
        assert "not found" in result.errors[0]

    async def test_fill_gaps_takes_at_most_five(self, services, make_account):
        account = await make_account()
        services.master.collect_for_account = AsyncMock(return_value=AnalyticsRunResult(success=1))
        gaps = [CoverageGap(start=date(2025, 1, d), end=date(2025, 1, d), days=1) for d in range(1, 15, 2)]

        result = await services.master.fill_gaps(account.id, gaps)

        assert services.master.collect_for_account.await_count == 5
        assert result.gaps_filled == 5

    async def test_batch_sync_counts_each_account(self, services, make_account):
        account = await make_account()
        services.master.collect_for_account = AsyncMock(return_value=AnalyticsRunResult(success=1))

        batch = await services.master.batch_historical_sync([account.id, "missing"])

        assert (batch.success, batch.failed) == (1, 1)
        assert batch.results[1].result.success is False


class TestSyncStatus:
    async def test_account_without_data_needs_sync(self, services, make_account):
        account = await make_account()

        status = await services.master.get_sync_status(account.id)

        assert status.has_data is False
        assert status.needs_sync is True
        assert status.recommendation.startswith("Full backfill")

    async def test_up_to_date_account(self, services, store, make_account):
        account = await make_account()
        await store.save_account_analytics_safely(account.id, AccountSnapshot(followers_count=1))

        status = await services.master.get_sync_status(account.id)

        assert status.has_data is True
        assert status.needs_sync is False
        assert status.recommendation == "Data is up to date"

    def test_many_gaps_need_sync(self):
        gaps = [CoverageGap(start=date(2025, 1, d), end=date(2025, 1, d), days=1) for d in range(2, 14, 2)]
        coverage = CoverageReport(
            has_data=True,
            total_days=12,
            gaps=gaps,
            oldest_data=datetime.now(timezone.utc) - timedelta(days=12),
            newest_data=datetime.now(timezone.utc),
        )

        assert needs_sync(coverage) is True
        assert sync_recommendation(coverage).startswith("Gap filling")


class TestCollectForAccount:
    async def test_bypasses_smart_sync_with_a_fixed_scope(self, services, fake_client, make_account):
        account = await make_account()

        result = await services.master.collect_for_account(account.id, AccountPlan(days_back=3, skip_hotspots=True))

        assert result.total == 1
        assert ("account_insights", account.profile_id, 3) in fake_client.calls
        assert result.details.hotspots.total == 0
