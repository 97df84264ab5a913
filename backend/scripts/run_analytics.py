"""Run analytics collection from the command line.

Examples:
    cd backend && python -m scripts.run_analytics
    cd backend && python -m scripts.run_analytics --account <id> --strategy gap_filling
    cd backend && python -m scripts.run_analytics --smart-sync <id>
    cd backend && python -m scripts.run_analytics --hotspots
    cd backend && python -m scripts.run_analytics --historical <id> <id>
"""

import argparse
import asyncio
import logging

from config import get_settings
from database import build_engine, build_session_factory
from logging_config import setup_logging
from schemas.analytics import AnalyticsRunOptions, SmartSyncOptions, SyncStrategy
from services.container import build_services

logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Collect social account analytics")
    parser.add_argument("--account", help="Only this social account id")
    parser.add_argument("--team", help="Only accounts of this team")
    parser.add_argument("--quick", action="store_true", help="Insights and hotspots only")
    parser.add_argument("--no-smart-sync", action="store_true", help="Do not adapt scope per account")
    parser.add_argument("--strategy", choices=[s.value for s in SyncStrategy], help="Force a sync strategy")
    parser.add_argument("--smart-sync", metavar="ACCOUNT_ID", help="Run smart sync for one account")
    parser.add_argument("--hotspots", action="store_true", help="Rebuild hotspots for all accounts")
    parser.add_argument("--historical", nargs="+", metavar="ACCOUNT_ID", help="Historical sync for accounts")
    return parser.parse_args()


async def main():
    args = parse_args()
    settings = get_settings()
    setup_logging(settings.log_level)

    engine = build_engine(settings.database_url)
    services = build_services(settings, build_session_factory(engine))

    try:
        if args.smart_sync:
            strategy = SyncStrategy(args.strategy) if args.strategy else None
            result = await services.smart_sync.perform_smart_sync(
                SmartSyncOptions(
                    social_account_id=args.smart_sync,
                    strategy=strategy,
                    force_strategy=strategy is not None,
                )
            )
        elif args.hotspots:
            result = await services.hotspots.run_hotspot_analysis_for_all_accounts()
        elif args.historical:
            result = await services.master.batch_historical_sync(args.historical)
        else:
            result = await services.master.run_complete_analytics(
                AnalyticsRunOptions(
                    include_analytics=not args.quick,
                    social_account_id=args.account,
                    team_id=args.team,
                    use_smart_sync=not args.no_smart_sync,
                    sync_strategy=SyncStrategy(args.strategy) if args.strategy else None,
                )
            )
        logger.info(result.model_dump_json(indent=2))
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
