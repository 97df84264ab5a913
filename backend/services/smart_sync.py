"""Smart sync: pick a collection strategy per account and run it.

There is no stored sync state. Each call derives the account's state from its
latest analytics timestamps, so back-to-back calls settle on
``incremental_daily``.
"""

import logging
import time

from models.sync_run_log import RunStatus
from schemas.analytics import (
    SmartSyncOptions,
    SyncRecommendation,
    SyncResult,
    SyncStrategy,
)
from services.analytics_store import AnalyticsStore
from services.sync_executors import SyncExecutor
from services.sync_strategy import SyncPlanner, determine_optimal_strategy, next_recommended_sync

logger = logging.getLogger(__name__)

RUN_LOG_NAME = "smart_analytics_sync"


class SmartSyncManager:
    def __init__(
        self,
        planner: SyncPlanner,
        executors: dict[SyncStrategy, SyncExecutor],
        store: AnalyticsStore,
    ):
        self.planner = planner
        self.executors = executors
        self.store = store

    async def perform_smart_sync(self, options: SmartSyncOptions) -> SyncResult:
        """Run the chosen strategy for one account. Never raises."""
        started = time.monotonic()
        account_id = options.social_account_id
        strategy = options.strategy or SyncStrategy.INCREMENTAL_DAILY

        try:
            context = await self.planner.get_sync_context(account_id)
            if options.force_strategy and options.strategy:
                strategy = options.strategy
            else:
                strategy = determine_optimal_strategy(context)

            logger.info(
                f"Smart sync for {account_id}: {strategy.value} "
                f"({context.days_since_last_collection} days since last collection)"
            )
            result = await self.executors[strategy].execute(context)
        except Exception as e:
            logger.error(f"Smart sync failed for {account_id}: {e}")
            result = SyncResult(
                success=False,
                strategy=strategy,
                next_recommended_sync=next_recommended_sync(),
                error=str(e),
            )

        await self._log_run(options, result, started)
        return result

    async def get_sync_recommendations(self, social_account_id: str) -> SyncRecommendation:
        return await self.planner.get_sync_recommendations(social_account_id)

    async def _log_run(self, options: SmartSyncOptions, result: SyncResult, started: float) -> None:
        message = {
            "social_account_id": options.social_account_id,
            "options": options.model_dump(mode="json"),
            "result": result.model_dump(mode="json"),
            "execution_time_ms": int((time.monotonic() - started) * 1000),
        }
        try:
            await self.store.add_run_log(
                RUN_LOG_NAME,
                RunStatus.SUCCESS if result.success else RunStatus.FAILED,
                message,
            )
        except Exception as e:
            logger.error(f"Failed to record smart sync run for {options.social_account_id}: {e}")
