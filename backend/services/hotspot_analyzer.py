"""Engagement hotspots: which weekday/hour slots perform best for an account.

Scores come from stored post analytics (last 90 days), or for accounts with
nothing stored yet, straight from the platform's recent posts.
"""

import asyncio
import logging
import math
import time
from datetime import datetime, timedelta, timezone
from typing import Iterable, Protocol

from config import Settings
from models.sync_run_log import RunStatus
from schemas.analytics import (
    DailyEngagement,
    HotspotBatchResult,
    HourlyEngagement,
    InitialHeatmap,
    PeakHour,
    PostingTime,
)
from schemas.platform import PostInsights
from services.analytics_store import AnalyticsStore, as_utc
from services.exceptions import PlatformAPIError
from services.platform_client import PlatformClientRegistry, require_credentials

logger = logging.getLogger(__name__)

DAYS = 7
HOURS = 24
DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

# Practical ceiling for a raw engagement score
MAX_RAW_SCORE = 200.0

ANALYSIS_LOG_NAME = "smart_scheduler_analysis"
BATCH_LOG_NAME = "smart_scheduler_batch_analysis"


class EngagementMetrics(Protocol):
    likes: int
    comments: int
    shares: int
    reach: int
    impressions: int
    clicks: int
    engagement: float


def calculate_engagement_score(metrics: EngagementMetrics) -> float:
    """Raw score: engagement rate, weighted interactions per reach, click-through."""
    score = (metrics.engagement or 0) * 100
    if metrics.reach and metrics.reach > 0:
        weighted = metrics.likes + 2 * metrics.comments + 3 * metrics.shares
        score += weighted / metrics.reach * 100
    if metrics.impressions and metrics.impressions > 0:
        score += metrics.clicks / metrics.impressions * 100
    return score


def normalize_score(score: float, min_score: float = 0.0, max_score: float = MAX_RAW_SCORE) -> float:
    """Scale into 0..100, clamped."""
    if max_score <= min_score:
        return 0.0
    normalized = (score - min_score) / (max_score - min_score) * 100
    return max(0.0, min(100.0, normalized))


def day_of_week(moment: datetime) -> int:
    """UTC weekday with 0 = Sunday."""
    return (as_utc(moment).weekday() + 1) % 7


def average_grid(samples: Iterable[tuple[datetime, float]]) -> list[list[float]]:
    """7x24 grid of mean score per UTC weekday/hour; empty cells are 0."""
    totals = [[0.0] * HOURS for _ in range(DAYS)]
    counts = [[0] * HOURS for _ in range(DAYS)]
    for moment, score in samples:
        moment = as_utc(moment)
        day, hour = day_of_week(moment), moment.hour
        totals[day][hour] += score
        counts[day][hour] += 1
    return [
        [totals[d][h] / counts[d][h] if counts[d][h] else 0.0 for h in range(HOURS)]
        for d in range(DAYS)
    ]


def grid_cells(grid: list[list[float]], max_score: float = MAX_RAW_SCORE) -> list[tuple[int, int, float]]:
    return [
        (day, hour, normalize_score(grid[day][hour], 0.0, max_score))
        for day in range(DAYS)
        for hour in range(HOURS)
    ]


def summarize_engagement(samples: list[tuple[datetime, float]]) -> InitialHeatmap:
    """Hourly and weekly averages, top hours and the best weekday/hour pairs."""
    hourly = [HourlyEngagement(hour=h) for h in range(HOURS)]
    weekly = [DailyEngagement(day=DAY_NAMES[d], day_index=d) for d in range(DAYS)]

    for moment, engagement in samples:
        moment = as_utc(moment)
        hour_bucket = hourly[moment.hour]
        day_bucket = weekly[day_of_week(moment)]
        hour_bucket.total_engagement += engagement
        hour_bucket.post_count += 1
        day_bucket.total_engagement += engagement
        day_bucket.post_count += 1

    for bucket in [*hourly, *weekly]:
        if bucket.post_count:
            bucket.avg_engagement = bucket.total_engagement / bucket.post_count

    peak_hours = [
        PeakHour(
            hour=h.hour,
            time_label=f"{h.hour:02d}:00",
            avg_engagement=round(h.avg_engagement),
            post_count=h.post_count,
        )
        for h in sorted(
            (h for h in hourly if h.post_count > 0),
            key=lambda h: h.avg_engagement,
            reverse=True,
        )[:3]
    ]

    # Ignore slots backed by fewer than ~5% of the posts
    threshold = max(1, math.ceil(len(samples) / 20))
    best_times = [
        PostingTime(
            day=d.day,
            hour=h.hour,
            time_label=f"{d.day} {h.hour:02d}:00",
            score=round((h.avg_engagement + d.avg_engagement) / 2),
            hour_engagement=round(h.avg_engagement),
            day_engagement=round(d.avg_engagement),
        )
        for h in hourly
        if h.post_count >= threshold and h.avg_engagement > 0
        for d in weekly
        if d.post_count >= threshold and d.avg_engagement > 0
    ]
    best_times.sort(key=lambda t: t.score, reverse=True)

    return InitialHeatmap(
        total_posts=len(samples),
        hourly_data=hourly,
        weekly_data=weekly,
        peak_hours=peak_hours,
        best_posting_times=best_times[:10],
    )


class HotspotAnalyzer:
    def __init__(self, store: AnalyticsStore, clients: PlatformClientRegistry, settings: Settings):
        self.store = store
        self.clients = clients
        self.settings = settings

    async def analyze_and_store_hotspots(self, social_account_id: str) -> int:
        """Rebuild the account's 168-cell grid from stored post analytics."""
        started = time.monotonic()
        try:
            account = await self.store.require_account(social_account_id)
            since = datetime.now(timezone.utc) - timedelta(days=self.settings.hotspot_lookback_days)
            pairs = await self.store.posts_with_latest_analytics(social_account_id, since)

            samples = [
                (post.published_at, calculate_engagement_score(analytics))
                for post, analytics in pairs
                if post.published_at is not None
            ]
            cells = grid_cells(average_grid(samples))
            created = await self.store.replace_hotspots(social_account_id, account.team_id, cells)

            execution_time_ms = int((time.monotonic() - started) * 1000)
            await self.store.add_run_log(
                ANALYSIS_LOG_NAME,
                RunStatus.SUCCESS,
                {
                    "social_account_id": social_account_id,
                    "posts_analyzed": len(samples),
                    "hotspots_created": created,
                    "execution_time_ms": execution_time_ms,
                },
            )
            logger.info(
                f"Hotspots rebuilt for {social_account_id}: {len(samples)} posts, "
                f"{created} slots in {execution_time_ms}ms"
            )
            return created
        except Exception as e:
            execution_time_ms = int((time.monotonic() - started) * 1000)
            logger.error(f"Hotspot analysis failed for {social_account_id}: {e}")
            await self.store.add_run_log(
                ANALYSIS_LOG_NAME,
                RunStatus.ERROR,
                {
                    "social_account_id": social_account_id,
                    "error": str(e),
                    "execution_time_ms": execution_time_ms,
                },
            )
            raise

    async def fetch_initial_heatmap_data(self, social_account_id: str) -> InitialHeatmap:
        """Build a first grid for an account with no stored post analytics.

        Stored cells are normalized against the account's own best slot since
        raw interaction counts have no fixed ceiling.
        """
        account = await self.store.require_account(social_account_id)
        client = self.clients.get(account.platform)
        profile_id, token = require_credentials(account)

        end = datetime.now(timezone.utc)
        start = end - timedelta(days=self.settings.initial_heatmap_days)
        posts = await client.get_recent_posts(
            profile_id, token, limit=self.settings.initial_heatmap_post_limit, since=start
        )

        samples: list[tuple[datetime, float]] = []
        for post in posts:
            try:
                insights = await client.get_post_insights(post.id, token)
            except PlatformAPIError as e:
                logger.debug(f"Falling back to list counters for post {post.id}: {e}")
                insights = PostInsights(
                    likes=post.like_count, comments=post.comment_count, shares=post.share_count
                )
            samples.append((post.timestamp, float(insights.interactions)))
            await asyncio.sleep(self.settings.insight_call_delay)

        heatmap = summarize_engagement(samples)
        grid = average_grid(samples)
        peak = max(max(row) for row in grid)
        cells = grid_cells(grid, max_score=peak) if peak > 0 else grid_cells(grid)

        heatmap.hotspots_created = await self.store.replace_hotspots(
            social_account_id, account.team_id, cells
        )
        heatmap.start, heatmap.end = start, end
        logger.info(
            f"Initial heatmap for {social_account_id}: {heatmap.total_posts} posts, "
            f"peak hour {heatmap.peak_hours[0].time_label if heatmap.peak_hours else 'n/a'}"
        )
        return heatmap

    async def refresh_hotspots(self, social_account_id: str) -> int:
        """Use stored analytics when there are any, otherwise the platform."""
        since = datetime.now(timezone.utc) - timedelta(days=self.settings.hotspot_lookback_days)
        if await self.store.count_post_analytics_since(social_account_id, since) > 0:
            return await self.analyze_and_store_hotspots(social_account_id)
        heatmap = await self.fetch_initial_heatmap_data(social_account_id)
        return heatmap.hotspots_created

    async def run_hotspot_analysis_for_all_accounts(self) -> HotspotBatchResult:
        """Analyze every account in small concurrent batches, pausing between batches."""
        started = time.monotonic()
        result = HotspotBatchResult()
        batch_size = max(1, self.settings.hotspot_batch_size)

        try:
            accounts = await self.store.list_accounts()
            result.total = len(accounts)

            for offset in range(0, len(accounts), batch_size):
                batch = accounts[offset:offset + batch_size]
                outcomes = await asyncio.gather(
                    *(self.analyze_and_store_hotspots(account.id) for account in batch),
                    return_exceptions=True,
                )
                for account, outcome in zip(batch, outcomes):
                    if isinstance(outcome, BaseException):
                        result.failed += 1
                        logger.warning(f"Hotspot analysis failed for {account.id}: {outcome}")
                    else:
                        result.success += 1

                if offset + batch_size < len(accounts):
                    await asyncio.sleep(self.settings.hotspot_batch_delay)

            result.execution_time_ms = int((time.monotonic() - started) * 1000)
            await self.store.add_run_log(
                BATCH_LOG_NAME,
                RunStatus.SUCCESS if result.failed == 0 else RunStatus.PARTIAL,
                result.model_dump(),
            )
            logger.info(
                f"Hotspot batch analysis: {result.success}/{result.total} accounts "
                f"in {result.execution_time_ms}ms"
            )
            return result
        except Exception as e:
            logger.error(f"Hotspot batch analysis failed: {e}")
            await self.store.add_run_log(
                BATCH_LOG_NAME,
                RunStatus.ERROR,
                {"error": str(e), "total": 0},
            )
            raise
