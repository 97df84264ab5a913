"""Daily account-level analytics snapshots.

One row per account per UTC calendar day. Writers go through the store's
safe upsert, which merges into the day's existing row instead of appending.
"""

from datetime import date, datetime, timezone
from uuid import uuid4

from sqlalchemy import Date, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from database import Base

# Metric columns a collector may supply; comparison columns are derived
METRIC_FIELDS = (
    "followers_count",
    "following_count",
    "media_count",
    "engagement_rate",
    "avg_reach_per_post",
    "avg_likes_per_post",
    "avg_comments_per_post",
    "avg_shares_per_post",
    "avg_engagement_per_post",
    "total_reach",
    "total_impressions",
    "total_likes",
    "total_comments",
    "total_shares",
    "total_saves",
    "total_clicks",
)


class AccountAnalytics(Base):
    """Aggregated account metrics for a single day."""

    __tablename__ = "account_analytics"
    __table_args__ = (
        UniqueConstraint("social_account_id", "recorded_on", name="uix_account_analytics_account_day"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    social_account_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("social_accounts.id", ondelete="CASCADE"),
        index=True,
    )
    recorded_on: Mapped[date] = mapped_column(Date)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True
    )

    followers_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    following_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    media_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    engagement_rate: Mapped[float | None] = mapped_column(Float, nullable=True)

    avg_reach_per_post: Mapped[float | None] = mapped_column(Float, nullable=True)
    avg_likes_per_post: Mapped[float | None] = mapped_column(Float, nullable=True)
    avg_comments_per_post: Mapped[float | None] = mapped_column(Float, nullable=True)
    avg_shares_per_post: Mapped[float | None] = mapped_column(Float, nullable=True)
    avg_engagement_per_post: Mapped[float | None] = mapped_column(Float, nullable=True)

    total_reach: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_impressions: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_likes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_comments: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_shares: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_saves: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_clicks: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Comparison against the most recent earlier day
    previous_followers_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    previous_media_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    previous_engagement_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    previous_avg_reach: Mapped[float | None] = mapped_column(Float, nullable=True)
    followers_growth_percent: Mapped[float | None] = mapped_column(Float, nullable=True)
    media_growth_percent: Mapped[float | None] = mapped_column(Float, nullable=True)
    engagement_growth_percent: Mapped[float | None] = mapped_column(Float, nullable=True)
    reach_growth_percent: Mapped[float | None] = mapped_column(Float, nullable=True)

    def __repr__(self) -> str:
        return f"<AccountAnalytics {self.social_account_id} {self.recorded_on}>"
