"""Background scheduler for periodic analytics collection.

Uses APScheduler to run the complete analytics run and the batch hotspot
analysis in the background.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import Settings
from services.analytics_master import AnalyticsMasterService
from services.container import AnalyticsServices
from services.hotspot_analyzer import HotspotAnalyzer

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def run_scheduled_analytics(master: AnalyticsMasterService):
    """Background task for the complete analytics run.

    Skips itself when a successful run is already inside the minimum interval.
    """
    logger.info("Starting scheduled analytics run...")
    try:
        result = await master.run_scheduled_analytics()
        if result is not None:
            logger.info(
                f"Scheduled analytics run done: {result.success} successful, "
                f"{result.failed} failed, {len(result.errors)} errors"
            )
    except Exception as e:
        logger.error(f"Scheduled analytics run failed: {e}")


async def run_hotspot_analysis(hotspots: HotspotAnalyzer):
    """Background task rebuilding every account's hotspot grid."""
    logger.info("Starting scheduled hotspot analysis...")
    try:
        result = await hotspots.run_hotspot_analysis_for_all_accounts()
        logger.info(f"Hotspot analysis done: {result.success}/{result.total} accounts")
    except Exception as e:
        logger.error(f"Scheduled hotspot analysis failed: {e}")


def start_scheduler(services: AnalyticsServices, settings: Settings):
    """Start the background scheduler with all jobs."""
    if scheduler.running:
        logger.info("Scheduler already running")
        return

    scheduler.add_job(
        run_scheduled_analytics,
        trigger=IntervalTrigger(hours=settings.analytics_interval_hours),
        args=[services.master],
        id="complete_analytics_run",
        name="Collect insights, hotspots and analytics for all accounts",
        replace_existing=True,
    )

    scheduler.add_job(
        run_hotspot_analysis,
        trigger=IntervalTrigger(hours=settings.hotspot_interval_hours),
        args=[services.hotspots],
        id="hotspot_batch_analysis",
        name="Rebuild engagement hotspots for all accounts",
        replace_existing=True,
    )

    scheduler.start()
    logger.info(
        f"Background scheduler started (analytics every {settings.analytics_interval_hours}h, "
        f"hotspots every {settings.hotspot_interval_hours}h)"
    )


def stop_scheduler():
    """Stop the background scheduler."""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Background scheduler stopped")
