"""Normalized engagement score per weekday/hour slot for an account."""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class EngagementHotspot(Base):
    """One cell of an account's 7x24 grid. day_of_week 0 is Sunday (UTC)."""

    __tablename__ = "engagement_hotspots"
    __table_args__ = (
        UniqueConstraint(
            "social_account_id", "day_of_week", "hour_of_day",
            name="uix_engagement_hotspots_slot",
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    team_id: Mapped[str] = mapped_column(String(36), index=True)
    social_account_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("social_accounts.id", ondelete="CASCADE"),
        index=True,
    )
    day_of_week: Mapped[int] = mapped_column(Integer)
    hour_of_day: Mapped[int] = mapped_column(Integer)
    score: Mapped[float] = mapped_column(Float)  # 0..100
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
