"""One collection executor per sync strategy.

Executors bound the collection window for their strategy and delegate the
actual fetching to an ``AnalyticsCollector`` (the analytics master service),
so they never import it directly.
"""

import logging
from abc import ABC, abstractmethod
from typing import Protocol

from schemas.analytics import (
    AccountPlan,
    AnalyticsRunResult,
    CoverageGap,
    HistoricalSyncResult,
    SyncContext,
    SyncResult,
    SyncStrategy,
)
from services.coverage import CoverageAnalyzer
from services.sync_strategy import (
    ADAPTIVE_POINTS_PER_DAY,
    GAP_FILL_MAX_DAYS,
    GAP_FILL_POINTS_PER_DAY,
    INCREMENTAL_DAILY_ESTIMATE,
    next_recommended_sync,
)

logger = logging.getLogger(__name__)

ADAPTIVE_MAX_DAYS = 7
MAX_GAPS_PER_RUN = 5


class AnalyticsCollector(Protocol):
    """Collection operations the executors depend on."""

    async def collect_for_account(self, social_account_id: str, plan: AccountPlan) -> AnalyticsRunResult:
        ...

    async def sync_historical_data(
        self, social_account_id: str, max_days_back: int = 30, force_full_sync: bool = False
    ) -> HistoricalSyncResult:
        ...

    async def fill_gaps(self, social_account_id: str, gaps: list[CoverageGap]) -> HistoricalSyncResult:
        ...


def run_succeeded(run: AnalyticsRunResult) -> bool:
    return run.failed == 0 and not run.errors


def _joined_errors(errors: list[str]) -> str | None:
    return "; ".join(errors) if errors else None


class SyncExecutor(ABC):
    """Runs one strategy for one account and reports a ``SyncResult``."""

    strategy: SyncStrategy

    def __init__(self, collector: AnalyticsCollector):
        self.collector = collector

    async def execute(self, context: SyncContext) -> SyncResult:
        try:
            return await self._execute(context)
        except Exception as e:
            logger.error(
                f"{self.strategy.value} sync failed for {context.social_account_id}: {e}"
            )
            return SyncResult(
                success=False,
                strategy=self.strategy,
                next_recommended_sync=next_recommended_sync(),
                error=str(e),
            )

    @abstractmethod
    async def _execute(self, context: SyncContext) -> SyncResult:
        ...


class IncrementalDailyExecutor(SyncExecutor):
    """Today's delta only. Hotspots are left for a fuller run."""

    strategy = SyncStrategy.INCREMENTAL_DAILY

    async def _execute(self, context: SyncContext) -> SyncResult:
        run = await self.collector.collect_for_account(
            context.social_account_id, AccountPlan(strategy=self.strategy, skip_hotspots=True, days_back=1)
        )
        return SyncResult(
            success=run_succeeded(run),
            strategy=self.strategy,
            days_collected=1,
            data_points_collected=INCREMENTAL_DAILY_ESTIMATE,
            next_recommended_sync=next_recommended_sync(),
            error=_joined_errors(run.errors),
        )


class SmartAdaptiveExecutor(SyncExecutor):
    strategy = SyncStrategy.SMART_ADAPTIVE

    async def _execute(self, context: SyncContext) -> SyncResult:
        days = min(context.days_since_last_collection + 1, ADAPTIVE_MAX_DAYS)
        run = await self.collector.collect_for_account(
            context.social_account_id, AccountPlan(strategy=self.strategy, skip_hotspots=False, days_back=days)
        )
        return SyncResult(
            success=run_succeeded(run),
            strategy=self.strategy,
            days_collected=days,
            data_points_collected=days * ADAPTIVE_POINTS_PER_DAY,
            next_recommended_sync=next_recommended_sync(),
            error=_joined_errors(run.errors),
        )


class FullHistoricalExecutor(SyncExecutor):
    """Paced deep backfill for accounts that have never been collected."""

    strategy = SyncStrategy.FULL_HISTORICAL

    def __init__(self, collector: AnalyticsCollector, historical_days: int = 30):
        super().__init__(collector)
        self.historical_days = historical_days

    async def _execute(self, context: SyncContext) -> SyncResult:
        days = self.historical_days
        backfill = await self.collector.sync_historical_data(
            context.social_account_id, max_days_back=days, force_full_sync=True
        )
        return SyncResult(
            success=backfill.success,
            strategy=self.strategy,
            days_collected=days,
            data_points_collected=days * ADAPTIVE_POINTS_PER_DAY,
            next_recommended_sync=next_recommended_sync(),
            error=_joined_errors(backfill.errors),
        )


class GapFillingExecutor(SyncExecutor):
    """Recent window first, then one collection pass per discovered gap."""

    strategy = SyncStrategy.GAP_FILLING

    def __init__(self, collector: AnalyticsCollector, coverage: CoverageAnalyzer):
        super().__init__(collector)
        self.coverage = coverage

    async def _execute(self, context: SyncContext) -> SyncResult:
        days = max(1, min(context.days_since_last_collection, GAP_FILL_MAX_DAYS))
        run = await self.collector.collect_for_account(
            context.social_account_id, AccountPlan(strategy=self.strategy, skip_hotspots=False, days_back=days)
        )
        errors = list(run.errors)
        success = run_succeeded(run)

        report = await self.coverage.analyze_coverage(context.social_account_id)
        gaps = report.gaps[:MAX_GAPS_PER_RUN]
        if gaps:
            filled = await self.collector.fill_gaps(context.social_account_id, gaps)
            errors.extend(filled.errors)
            success = success and filled.success
            logger.info(
                f"Filled {filled.gaps_filled}/{len(gaps)} gaps for {context.social_account_id}"
            )

        return SyncResult(
            success=success,
            strategy=self.strategy,
            days_collected=days,
            data_points_collected=days * GAP_FILL_POINTS_PER_DAY,
            next_recommended_sync=next_recommended_sync(),
            error=_joined_errors(errors),
        )


def build_executors(
    collector: AnalyticsCollector,
    coverage: CoverageAnalyzer,
    historical_days: int = 30,
) -> dict[SyncStrategy, SyncExecutor]:
    executors: list[SyncExecutor] = [
        IncrementalDailyExecutor(collector),
        SmartAdaptiveExecutor(collector),
        FullHistoricalExecutor(collector, historical_days),
        GapFillingExecutor(collector, coverage),
    ]
    return {executor.strategy: executor for executor in executors}
