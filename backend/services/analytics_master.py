"""Analytics master service: the single entry point for collection runs.

A complete run goes through four phases in order (insights, hotspots,
account analytics, post analytics). Accounts are processed one at a time
inside each phase. A failing account is counted and skipped, and a failing
phase is recorded without stopping the next one. Every run is written to the
run log, which also backs ``should_run_analytics``.
"""

import asyncio
import json
import logging
import math
import time
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from config import Settings
from models.social_account import SocialAccount
from models.sync_run_log import RunStatus
from schemas.analytics import (
    AccountHistoricalSync,
    AccountPlan,
    AnalyticsRunOptions,
    AnalyticsRunResult,
    BatchHistoricalSyncResult,
    CoverageGap,
    CoverageReport,
    HistoricalSyncResult,
    PhaseCounts,
    RunLogEntry,
    SyncStatus,
    SyncStrategy,
)
from services.analytics_store import AnalyticsStore, as_utc
from services.coverage import CoverageAnalyzer
from services.exceptions import AccountNotFoundError
from services.hotspot_analyzer import HotspotAnalyzer
from services.insights_collector import InsightsCollector
from services.platform_client import PlatformClientRegistry, require_credentials
from services.post_analytics_collector import PostAnalyticsCollector
from services.sync_executors import MAX_GAPS_PER_RUN, run_succeeded
from services.sync_strategy import SyncPlanner

logger = logging.getLogger(__name__)

RUN_LOG_NAME = "analytics_master_run"
RUN_HISTORY_LIMIT = 50

ONE_DAY = timedelta(days=1)
DAYS_PER_BACKFILL_RUN = 7
MAX_BACKFILL_RUNS = 12
SIGNIFICANT_GAP_DAYS = 2

AccountStep = Callable[[SocialAccount], Awaitable[object]]


def plan_for_strategy(
    strategy: SyncStrategy,
    days_since_last_collection: int,
    historical_days: int = 30,
) -> AccountPlan:
    """Collection scope for one account under the given strategy."""
    if strategy == SyncStrategy.INCREMENTAL_DAILY:
        return AccountPlan(strategy=strategy, skip_hotspots=True, days_back=1)
    if strategy == SyncStrategy.SMART_ADAPTIVE:
        return AccountPlan(
            strategy=strategy,
            skip_hotspots=False,
            days_back=min(days_since_last_collection + 1, 7),
        )
    if strategy == SyncStrategy.FULL_HISTORICAL:
        return AccountPlan(strategy=strategy, skip_hotspots=False, days_back=historical_days)
    return AccountPlan(
        strategy=strategy,
        skip_hotspots=False,
        days_back=max(1, min(days_since_last_collection, 7)),
    )


def run_status(result: AnalyticsRunResult) -> RunStatus:
    if result.failed == 0 and not result.errors:
        return RunStatus.SUCCESS
    if result.errors:
        return RunStatus.ERROR
    return RunStatus.PARTIAL


def days_since(moment: datetime, now: Optional[datetime] = None) -> int:
    """Whole days since ``moment``, rounded up."""
    now = now or datetime.now(timezone.utc)
    return math.ceil((now - as_utc(moment)) / ONE_DAY)


def sync_recommendation(coverage: CoverageReport) -> str:
    if not coverage.has_data:
        return "Full backfill needed: no historical data yet"
    if len(coverage.gaps) > 5:
        return "Gap filling needed: too many missing days"
    if days_since(coverage.newest_data) > 3:
        return "Incremental update needed: data is stale"
    return "Data is up to date"


def needs_sync(coverage: CoverageReport) -> bool:
    if not coverage.has_data:
        return True
    if len(coverage.gaps) > 3:
        return True
    return days_since(coverage.newest_data) > 1


class AnalyticsMasterService:
    def __init__(
        self,
        store: AnalyticsStore,
        settings: Settings,
        clients: PlatformClientRegistry,
        planner: SyncPlanner,
        coverage: CoverageAnalyzer,
        insights: InsightsCollector,
        hotspots: HotspotAnalyzer,
        post_analytics: PostAnalyticsCollector,
    ):
        self.store = store
        self.settings = settings
        self.clients = clients
        self.planner = planner
        self.coverage = coverage
        self.insights = insights
        self.hotspots = hotspots
        self.post_analytics = post_analytics

    # ============== Complete runs ==============

    async def run_complete_analytics(
        self, options: Optional[AnalyticsRunOptions] = None
    ) -> AnalyticsRunResult:
        options = options or AnalyticsRunOptions()
        started = time.monotonic()
        result = AnalyticsRunResult()

        logger.info(
            f"Starting complete analytics run: insights={options.include_insights}, "
            f"hotspots={options.include_hotspots}, analytics={options.include_analytics}, "
            f"smart_sync={options.use_smart_sync}"
        )

        try:
            accounts = await self.store.list_accounts(options.social_account_id, options.team_id)
            if options.social_account_id and not accounts:
                raise AccountNotFoundError(
                    f"Social account {options.social_account_id} not found",
                    {"social_account_id": options.social_account_id},
                )
            result.total = len(accounts)
            logger.info(f"Processing {len(accounts)} social accounts")

            plans = await self._plan_accounts(accounts, options)

            if options.include_insights:
                try:
                    result.details.insights = await self._run_phase(
                        "insights", accounts, self.insights.collect_account_insights
                    )
                except Exception as e:
                    self._phase_failed(result, "Insights collection", e)

            if options.include_hotspots:
                try:
                    hotspot_accounts = [a for a in accounts if not plans[a.id].skip_hotspots]
                    result.details.hotspots = await self._run_phase(
                        "hotspots",
                        hotspot_accounts,
                        lambda account: self.hotspots.refresh_hotspots(account.id),
                    )
                except Exception as e:
                    self._phase_failed(result, "Hotspots analysis", e)

            if options.include_analytics:
                try:
                    result.details.analytics = await self._run_phase(
                        "analytics",
                        accounts,
                        lambda account: self._collect_account_analytics(account, plans[account.id]),
                    )
                except Exception as e:
                    self._phase_failed(result, "Analytics collection", e)

            try:
                result.details.post_analytics = await self.post_analytics.run(
                    options.social_account_id, options.team_id
                )
            except Exception as e:
                self._phase_failed(result, "Post analytics collection", e)

            phases = (
                result.details.insights,
                result.details.hotspots,
                result.details.analytics,
                result.details.post_analytics,
            )
            result.success = sum(p.success for p in phases)
            result.failed = sum(p.failed for p in phases)
            result.execution_time_ms = int((time.monotonic() - started) * 1000)

            await self._log_run(result, options)
            logger.info(
                f"Complete analytics run finished: {result.success} successful, "
                f"{result.failed} failed in {result.execution_time_ms}ms"
            )
            return result

        except Exception as e:
            result.execution_time_ms = int((time.monotonic() - started) * 1000)
            result.errors.append(f"Complete analytics run failed: {e}")
            logger.error(f"Complete analytics run failed: {e}")
            await self._log_run(result, options)
            raise

    async def run_analytics_for_account(
        self, social_account_id: str, options: Optional[AnalyticsRunOptions] = None
    ) -> AnalyticsRunResult:
        options = (options or AnalyticsRunOptions()).model_copy(
            update={"social_account_id": social_account_id}
        )
        return await self.run_complete_analytics(options)

    async def run_analytics_for_team(
        self, team_id: str, options: Optional[AnalyticsRunOptions] = None
    ) -> AnalyticsRunResult:
        options = (options or AnalyticsRunOptions()).model_copy(update={"team_id": team_id})
        return await self.run_complete_analytics(options)

    async def run_quick_analytics(self, social_account_id: Optional[str] = None) -> AnalyticsRunResult:
        """Insights and hotspots only."""
        return await self.run_complete_analytics(
            AnalyticsRunOptions(
                include_insights=True,
                include_hotspots=True,
                include_analytics=False,
                social_account_id=social_account_id,
            )
        )

    async def run_full_analytics(self, social_account_id: Optional[str] = None) -> AnalyticsRunResult:
        return await self.run_complete_analytics(
            AnalyticsRunOptions(social_account_id=social_account_id)
        )

    async def run_scheduled_analytics(self) -> Optional[AnalyticsRunResult]:
        """Full run for every account unless one already succeeded recently."""
        if not await self.should_run_analytics(min_interval_hours=self.settings.min_run_interval_hours):
            logger.info("Skipping scheduled analytics run: a successful run is recent enough")
            return None
        return await self.run_complete_analytics(AnalyticsRunOptions())

    async def collect_for_account(self, social_account_id: str, plan: AccountPlan) -> AnalyticsRunResult:
        """Run the phases for one account with a fixed scope, bypassing smart sync."""
        return await self.run_complete_analytics(
            AnalyticsRunOptions(
                social_account_id=social_account_id,
                include_hotspots=not plan.skip_hotspots,
                use_smart_sync=False,
                days_back=plan.days_back,
            )
        )

    async def _plan_accounts(
        self, accounts: list[SocialAccount], options: AnalyticsRunOptions
    ) -> dict[str, AccountPlan]:
        plans = {account.id: AccountPlan(days_back=options.days_back) for account in accounts}
        if not options.use_smart_sync:
            return plans

        for account in accounts:
            try:
                recommendation = await self.planner.get_sync_recommendations(account.id)
                strategy = options.sync_strategy or recommendation.recommended_strategy
                plans[account.id] = plan_for_strategy(
                    strategy,
                    recommendation.days_since_last_collection,
                    self.settings.full_historical_days,
                )
                logger.info(
                    f"{account.name or account.id}: using {strategy.value} strategy "
                    f"({recommendation.urgency.value} urgency)"
                )
            except Exception as e:
                logger.warning(
                    f"Smart sync analysis failed for {account.name or account.id}: {e}. Using default scope."
                )
        return plans

    async def _run_phase(self, phase: str, accounts: list[SocialAccount], step: AccountStep) -> PhaseCounts:
        counts = PhaseCounts(total=len(accounts))
        for account in accounts:
            try:
                await asyncio.wait_for(step(account), timeout=self.settings.account_timeout_seconds)
                counts.success += 1
            except Exception as e:
                counts.failed += 1
                logger.warning(f"{phase} failed for {account.name or account.id}: {e}")
        logger.info(f"Phase {phase}: {counts.success}/{counts.total} successful")
        return counts

    @staticmethod
    def _phase_failed(result: AnalyticsRunResult, phase: str, error: Exception) -> None:
        message = f"{phase} failed: {error}"
        result.errors.append(message)
        logger.error(message)

    async def _collect_account_analytics(self, account: SocialAccount, plan: AccountPlan):
        client = self.clients.get(account.platform)
        profile_id, token = require_credentials(account)
        payload = await client.collect_account_insights(profile_id, token, days_back=plan.days_back)
        return await self.store.save_account_analytics_safely(account.id, payload.to_snapshot())

    async def _log_run(self, result: AnalyticsRunResult, options: AnalyticsRunOptions) -> None:
        try:
            await self.store.add_run_log(
                RUN_LOG_NAME,
                run_status(result),
                {
                    "options": options.model_dump(mode="json"),
                    "result": result.model_dump(mode="json", exclude={"errors"}),
                    "errors": result.errors,
                },
            )
        except Exception as e:
            logger.error(f"Failed to log analytics run: {e}")

    # ============== Run history ==============

    async def should_run_analytics(
        self, social_account_id: Optional[str] = None, min_interval_hours: int = 1
    ) -> bool:
        """False when a successful run (for this account, if given) is inside the interval."""
        since = datetime.now(timezone.utc) - timedelta(hours=min_interval_hours)
        recent = await self.store.find_recent_run_log(
            RUN_LOG_NAME, RunStatus.SUCCESS, since, message_contains=social_account_id
        )
        return recent is None

    async def get_analytics_run_history(self, hours: int = 24) -> list[RunLogEntry]:
        since = datetime.now(timezone.utc) - timedelta(hours=hours)
        logs = await self.store.list_run_logs([RUN_LOG_NAME], since, limit=RUN_HISTORY_LIMIT)
        return [
            RunLogEntry(
                id=log.id,
                name=log.name,
                status=log.status.value,
                executed_at=as_utc(log.executed_at),
                message=json.loads(log.message) if log.message else None,
            )
            for log in logs
        ]

    # ============== Historical sync ==============

    async def sync_historical_data(
        self,
        social_account_id: str,
        max_days_back: int = 90,
        force_full_sync: bool = False,
    ) -> HistoricalSyncResult:
        """Bring an account's history up to date based on its coverage."""
        result = HistoricalSyncResult()
        try:
            account = await self.store.require_account(social_account_id)
            coverage = await self.coverage.analyze_coverage(social_account_id)
            logger.info(
                f"Historical sync for {account.name or account.id} ({account.platform.value}): "
                f"{coverage.total_days} days covered, {len(coverage.gaps)} gaps"
            )

            if force_full_sync or not coverage.has_data:
                result.strategy = "full_backfill"
                await self._full_backfill(social_account_id, max_days_back, result)
            elif days_since(coverage.newest_data) > 1:
                result.strategy = "incremental_update"
                run = await self.collect_for_account(social_account_id, AccountPlan(days_back=1))
                if not run_succeeded(run):
                    result.errors.append(f"Incremental update: {self._describe_failure(run)}")
            elif any(gap.days >= SIGNIFICANT_GAP_DAYS for gap in coverage.gaps):
                result.strategy = "gap_filling"
                filled = await self.fill_gaps(social_account_id, coverage.gaps)
                result.gaps_filled = filled.gaps_filled
                result.errors.extend(filled.errors)
            else:
                result.strategy = "up_to_date"

        except Exception as e:
            logger.error(f"Historical sync failed for {social_account_id}: {e}")
            result.errors.append(str(e))

        result.success = not result.errors
        return result

    async def _full_backfill(self, social_account_id: str, days_back: int, result: HistoricalSyncResult) -> None:
        runs = min(math.ceil(days_back / DAYS_PER_BACKFILL_RUN), MAX_BACKFILL_RUNS)
        logger.info(f"Full backfill for {social_account_id}: {days_back} days in {runs} runs")

        for i in range(runs):
            try:
                run = await self.collect_for_account(
                    social_account_id, AccountPlan(days_back=DAYS_PER_BACKFILL_RUN)
                )
                if run_succeeded(run):
                    result.days_backfilled += DAYS_PER_BACKFILL_RUN
                else:
                    result.errors.append(f"Backfill {i + 1}: {self._describe_failure(run)}")
            except Exception as e:
                logger.error(f"Backfill run {i + 1} failed for {social_account_id}: {e}")
                result.errors.append(f"Backfill {i + 1}: {e}")

            if i < runs - 1:
                await asyncio.sleep(self.settings.backfill_batch_delay)

    async def fill_gaps(self, social_account_id: str, gaps: list[CoverageGap]) -> HistoricalSyncResult:
        """One paced collection pass per gap, at most five gaps."""
        result = HistoricalSyncResult(strategy="gap_filling")
        targets = gaps[:MAX_GAPS_PER_RUN]

        for i, gap in enumerate(targets):
            logger.info(f"Filling gap {gap.start} to {gap.end} for {social_account_id}")
            try:
                run = await self.collect_for_account(
                    social_account_id, AccountPlan(days_back=max(1, min(gap.days, 7)))
                )
                if run_succeeded(run):
                    result.gaps_filled += gap.days
                else:
                    result.errors.append(f"Gap fill {gap.start}: {self._describe_failure(run)}")
            except Exception as e:
                logger.error(f"Gap fill failed for {social_account_id}: {e}")
                result.errors.append(f"Gap fill {gap.start}: {e}")

            if i < len(targets) - 1:
                await asyncio.sleep(self.settings.gap_fill_delay)

        result.success = not result.errors
        return result

    @staticmethod
    def _describe_failure(run: AnalyticsRunResult) -> str:
        if run.errors:
            return "; ".join(run.errors)
        return f"{run.failed} collection steps failed"

    async def get_sync_status(self, social_account_id: str) -> SyncStatus:
        try:
            coverage = await self.coverage.analyze_coverage(social_account_id)
            return SyncStatus(
                has_data=coverage.has_data,
                total_days=coverage.total_days,
                gaps=len(coverage.gaps),
                last_sync=coverage.newest_data,
                needs_sync=needs_sync(coverage),
                recommendation=sync_recommendation(coverage),
                coverage=coverage,
            )
        except Exception as e:
            logger.error(f"Failed to get sync status for {social_account_id}: {e}")
            return SyncStatus(recommendation="Error getting sync status")

    async def batch_historical_sync(self, social_account_ids: list[str]) -> BatchHistoricalSyncResult:
        logger.info(f"Starting batch historical sync for {len(social_account_ids)} accounts")
        batch = BatchHistoricalSyncResult()

        for i, account_id in enumerate(social_account_ids):
            try:
                sync = await self.sync_historical_data(account_id)
                batch.results.append(AccountHistoricalSync(social_account_id=account_id, result=sync))
                if sync.success:
                    batch.success += 1
                else:
                    batch.failed += 1
            except Exception as e:
                logger.error(f"Historical sync failed for {account_id}: {e}")
                batch.results.append(AccountHistoricalSync(social_account_id=account_id, error=str(e)))
                batch.failed += 1

            if i < len(social_account_ids) - 1:
                await asyncio.sleep(self.settings.account_batch_delay)

        logger.info(f"Batch historical sync completed: {batch.success} success, {batch.failed} failed")
        return batch
