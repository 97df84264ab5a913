"""Persistence for accounts, analytics time series, hotspots and run logs.

``AnalyticsStore`` is the single store handle threaded through every service.
Each method opens its own short-lived session from the injected factory.
"""

import json
import logging
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.account_analytics import METRIC_FIELDS, AccountAnalytics
from models.engagement_hotspot import EngagementHotspot
from models.post_analytics import PostAnalytics
from models.published_post import PostStatus, PublishedPost
from models.social_account import SocialAccount
from models.sync_run_log import RunStatus, SyncRunLog
from schemas.platform import AccountSnapshot, PostInsights
from schemas.analytics import SafeWriteResult
from services.exceptions import AccountNotFoundError, AnalyticsError

logger = logging.getLogger(__name__)

# (current column, previous column, growth column)
COMPARISON_FIELDS = (
    ("followers_count", "previous_followers_count", "followers_growth_percent"),
    ("media_count", "previous_media_count", "media_growth_percent"),
    ("engagement_rate", "previous_engagement_rate", "engagement_growth_percent"),
    ("avg_reach_per_post", "previous_avg_reach", "reach_growth_percent"),
)


class DateTimeEncoder(json.JSONEncoder):
    """JSON encoder that handles datetime, date and enum values."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        return super().default(obj)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from backends without tz support."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def growth_percent(current: Optional[float], previous: Optional[float]) -> Optional[float]:
    """Percentage change, rounded to 2 places. 100 when growing from zero."""
    if current is None or previous is None:
        return None
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 2)


def comparison_values(metrics: dict, previous: Optional[AccountAnalytics]) -> dict:
    """Previous-day values and growth percentages for the comparison columns."""
    values: dict = {}
    if previous is None:
        return values
    for field, previous_field, growth_field in COMPARISON_FIELDS:
        prior = getattr(previous, field)
        values[previous_field] = prior
        values[growth_field] = growth_percent(metrics.get(field), prior)
    return values


class AnalyticsStore:
    """Repository over the analytics tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    # ============== Accounts ==============

    async def get_account(self, social_account_id: str) -> Optional[SocialAccount]:
        async with self.session_factory() as session:
            return await session.get(SocialAccount, social_account_id)

    async def require_account(self, social_account_id: str) -> SocialAccount:
        account = await self.get_account(social_account_id)
        if account is None:
            raise AccountNotFoundError(
                f"Social account {social_account_id} not found",
                {"social_account_id": social_account_id},
            )
        return account

    async def list_accounts(
        self,
        social_account_id: Optional[str] = None,
        team_id: Optional[str] = None,
    ) -> list[SocialAccount]:
        """Accounts filtered by id and/or team, oldest first."""
        query = select(SocialAccount).order_by(SocialAccount.created_at, SocialAccount.id)
        if social_account_id:
            query = query.where(SocialAccount.id == social_account_id)
        if team_id:
            query = query.where(SocialAccount.team_id == team_id)
        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    # ============== Account analytics ==============

    async def earliest_account_analytics(self, social_account_id: str) -> Optional[AccountAnalytics]:
        return await self._edge_account_analytics(social_account_id, AccountAnalytics.recorded_at.asc())

    async def latest_account_analytics(self, social_account_id: str) -> Optional[AccountAnalytics]:
        return await self._edge_account_analytics(social_account_id, AccountAnalytics.recorded_at.desc())

    async def _edge_account_analytics(self, social_account_id: str, ordering) -> Optional[AccountAnalytics]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(AccountAnalytics)
                .where(AccountAnalytics.social_account_id == social_account_id)
                .order_by(ordering)
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def account_analytics_times(
        self,
        social_account_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[datetime]:
        """``recorded_at`` of every account analytics row in the range, ascending."""
        query = select(AccountAnalytics.recorded_at).where(
            AccountAnalytics.social_account_id == social_account_id
        )
        if start is not None:
            query = query.where(AccountAnalytics.recorded_at >= start)
        if end is not None:
            query = query.where(AccountAnalytics.recorded_at <= end)
        async with self.session_factory() as session:
            result = await session.execute(query.order_by(AccountAnalytics.recorded_at))
            return [as_utc(value) for value in result.scalars().all()]

    async def latest_post_analytics_time(self, social_account_id: str) -> Optional[datetime]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.max(PostAnalytics.recorded_at))
                .join(PublishedPost, PublishedPost.id == PostAnalytics.published_post_id)
                .where(PublishedPost.social_account_id == social_account_id)
            )
            return as_utc(result.scalar_one_or_none())

    async def last_collection_time(self, social_account_id: str) -> Optional[datetime]:
        """Most recent analytics write of either kind for the account."""
        latest_account = await self.latest_account_analytics(social_account_id)
        latest_post = await self.latest_post_analytics_time(social_account_id)
        candidates = [
            value
            for value in (as_utc(latest_account.recorded_at) if latest_account else None, latest_post)
            if value is not None
        ]
        return max(candidates) if candidates else None

    async def save_account_analytics_safely(
        self,
        social_account_id: str,
        snapshot: AccountSnapshot,
        allow_same_day_update: bool = True,
        merge_with_existing: bool = True,
        target_date: Optional[date] = None,
    ) -> SafeWriteResult:
        """Write one day's account metrics without ever creating a second row for that day.

        The insert is conditional on the (account, day) unique key, so two
        concurrent runs cannot both create a row. When the day already has a
        row it is updated (merged field by field, or replaced when
        ``merge_with_existing`` is false) or left alone when same-day updates
        are not allowed.
        """
        now = datetime.now(timezone.utc)
        day = target_date or now.date()
        if day != now.date():
            # Backfilled days are stamped at midnight UTC of that day
            now = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
        metrics = snapshot.collected_metrics()

        async with self.session_factory() as session:
            previous = (
                await session.execute(
                    select(AccountAnalytics)
                    .where(
                        AccountAnalytics.social_account_id == social_account_id,
                        AccountAnalytics.recorded_on < day,
                    )
                    .order_by(AccountAnalytics.recorded_on.desc())
                    .limit(1)
                )
            ).scalar_one_or_none()

            record_id = str(uuid4())
            values = {
                "id": record_id,
                "social_account_id": social_account_id,
                "recorded_on": day,
                "recorded_at": now,
                **metrics,
                **comparison_values(metrics, previous),
            }
            insert = self._insert_for(session)
            result = await session.execute(
                insert(AccountAnalytics)
                .values(**values)
                .on_conflict_do_nothing(index_elements=["social_account_id", "recorded_on"])
            )
            if result.rowcount == 1:
                await session.commit()
                logger.info(f"Account analytics created for {social_account_id} on {day}")
                return SafeWriteResult(action="created", record_id=record_id)

            existing = (
                await session.execute(
                    select(AccountAnalytics).where(
                        AccountAnalytics.social_account_id == social_account_id,
                        AccountAnalytics.recorded_on == day,
                    )
                )
            ).scalar_one()

            if not allow_same_day_update:
                existing_id = existing.id
                await session.rollback()
                logger.info(f"Account analytics for {social_account_id} on {day} already exists, skipping")
                return SafeWriteResult(action="skipped", record_id=existing_id)

            if merge_with_existing:
                merged = {field: getattr(existing, field) for field in METRIC_FIELDS}
                merged.update(metrics)
            else:
                merged = {field: metrics.get(field) for field in METRIC_FIELDS}

            await session.execute(
                update(AccountAnalytics)
                .where(AccountAnalytics.id == existing.id)
                .values(recorded_at=now, **merged, **comparison_values(merged, previous))
            )
            await session.commit()
            logger.info(f"Account analytics updated for {social_account_id} on {day}")
            return SafeWriteResult(action="updated", record_id=existing.id)

    @staticmethod
    def _insert_for(session: AsyncSession):
        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert
        if dialect == "sqlite":
            return sqlite_insert
        raise AnalyticsError(f"Conditional insert not supported on {dialect}")

    # ============== Posts & post analytics ==============

    async def list_published_posts(
        self,
        social_account_id: Optional[str] = None,
        team_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[PublishedPost]:
        """Published posts, newest first."""
        query = (
            select(PublishedPost)
            .where(PublishedPost.status == PostStatus.PUBLISHED)
            .order_by(PublishedPost.published_at.desc())
        )
        if social_account_id:
            query = query.where(PublishedPost.social_account_id == social_account_id)
        if team_id:
            query = query.where(PublishedPost.team_id == team_id)
        if since is not None:
            query = query.where(PublishedPost.published_at >= since)
        if limit is not None:
            query = query.limit(limit)
        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def add_post_analytics(
        self,
        published_post_id: str,
        insights: PostInsights,
        content_format: Optional[str] = None,
    ) -> PostAnalytics:
        record = PostAnalytics(
            published_post_id=published_post_id,
            likes=insights.likes,
            comments=insights.comments,
            shares=insights.shares,
            saves=insights.saved,
            clicks=insights.clicks,
            reach=insights.reach,
            impressions=insights.impressions,
            views=insights.views,
            engagement=insights.engagement,
            content_format=content_format,
            raw_insights=insights.raw,
        )
        async with self.session_factory() as session:
            session.add(record)
            await session.commit()
        return record

    async def latest_post_analytics(self, published_post_id: str) -> Optional[PostAnalytics]:
        """The chronologically latest record; the default read path."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(PostAnalytics)
                .where(PostAnalytics.published_post_id == published_post_id)
                .order_by(PostAnalytics.recorded_at.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def richest_post_analytics(self, published_post_id: str) -> Optional[PostAnalytics]:
        """The latest record that carries a raw provider payload, if any."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(PostAnalytics)
                .where(
                    PostAnalytics.published_post_id == published_post_id,
                    PostAnalytics.raw_insights.is_not(None),
                )
                .order_by(PostAnalytics.recorded_at.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def posts_with_latest_analytics(
        self, social_account_id: str, since: datetime
    ) -> list[tuple[PublishedPost, PostAnalytics]]:
        """Published posts since ``since`` paired with their latest analytics record."""
        latest = (
            select(
                PostAnalytics.published_post_id,
                func.max(PostAnalytics.recorded_at).label("latest_at"),
            )
            .group_by(PostAnalytics.published_post_id)
            .subquery()
        )
        query = (
            select(PublishedPost, PostAnalytics)
            .join(PostAnalytics, PostAnalytics.published_post_id == PublishedPost.id)
            .join(
                latest,
                and_(
                    latest.c.published_post_id == PostAnalytics.published_post_id,
                    latest.c.latest_at == PostAnalytics.recorded_at,
                ),
            )
            .where(
                PublishedPost.social_account_id == social_account_id,
                PublishedPost.status == PostStatus.PUBLISHED,
                PublishedPost.published_at >= since,
            )
        )
        async with self.session_factory() as session:
            result = await session.execute(query)
            pairs: dict[str, tuple[PublishedPost, PostAnalytics]] = {}
            for post, analytics in result.all():
                pairs.setdefault(post.id, (post, analytics))
            return list(pairs.values())

    async def count_post_analytics_since(self, social_account_id: str, since: datetime) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count(PostAnalytics.id))
                .join(PublishedPost, PublishedPost.id == PostAnalytics.published_post_id)
                .where(
                    PublishedPost.social_account_id == social_account_id,
                    PostAnalytics.recorded_at >= since,
                )
            )
            return result.scalar_one()

    # ============== Hotspots ==============

    async def replace_hotspots(
        self,
        social_account_id: str,
        team_id: str,
        cells: list[tuple[int, int, float]],
    ) -> int:
        """Swap the account's grid for ``cells`` (day, hour, score) in one transaction."""
        now = datetime.now(timezone.utc)
        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(
                    delete(EngagementHotspot).where(
                        EngagementHotspot.social_account_id == social_account_id
                    )
                )
                session.add_all(
                    EngagementHotspot(
                        team_id=team_id,
                        social_account_id=social_account_id,
                        day_of_week=day,
                        hour_of_day=hour,
                        score=score,
                        updated_at=now,
                    )
                    for day, hour, score in cells
                )
        return len(cells)

    async def list_hotspots(self, social_account_id: str) -> list[EngagementHotspot]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(EngagementHotspot)
                .where(EngagementHotspot.social_account_id == social_account_id)
                .order_by(EngagementHotspot.day_of_week, EngagementHotspot.hour_of_day)
            )
            return list(result.scalars().all())

    # ============== Run logs ==============

    async def add_run_log(self, name: str, status: RunStatus, message: dict) -> SyncRunLog:
        log = SyncRunLog(
            name=name,
            status=status,
            executed_at=datetime.now(timezone.utc),
            message=json.dumps(message, cls=DateTimeEncoder),
        )
        async with self.session_factory() as session:
            session.add(log)
            await session.commit()
        return log

    async def find_recent_run_log(
        self,
        name: str,
        status: RunStatus,
        since: datetime,
        message_contains: Optional[str] = None,
    ) -> Optional[SyncRunLog]:
        query = (
            select(SyncRunLog)
            .where(
                SyncRunLog.name == name,
                SyncRunLog.status == status,
                SyncRunLog.executed_at >= since,
            )
            .order_by(SyncRunLog.executed_at.desc())
            .limit(1)
        )
        if message_contains:
            query = query.where(SyncRunLog.message.contains(message_contains))
        async with self.session_factory() as session:
            result = await session.execute(query)
            return result.scalar_one_or_none()

    async def list_run_logs(
        self,
        names: Optional[list[str]] = None,
        since: Optional[datetime] = None,
        limit: int = 50,
    ) -> list[SyncRunLog]:
        query = select(SyncRunLog).order_by(SyncRunLog.executed_at.desc()).limit(limit)
        if names:
            query = query.where(SyncRunLog.name.in_(names))
        if since is not None:
            query = query.where(SyncRunLog.executed_at >= since)
        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())
