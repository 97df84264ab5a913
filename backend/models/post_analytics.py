"""Point-in-time metric snapshots for published posts (append-only)."""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class PostAnalytics(Base):
    """One metrics reading for one post. Newest row wins on read."""

    __tablename__ = "post_analytics"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    published_post_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("published_posts.id", ondelete="CASCADE"),
        index=True,
    )

    likes: Mapped[int] = mapped_column(Integer, default=0)
    comments: Mapped[int] = mapped_column(Integer, default=0)
    shares: Mapped[int] = mapped_column(Integer, default=0)
    saves: Mapped[int] = mapped_column(Integer, default=0)
    clicks: Mapped[int] = mapped_column(Integer, default=0)
    reach: Mapped[int] = mapped_column(Integer, default=0)
    impressions: Mapped[int] = mapped_column(Integer, default=0)
    views: Mapped[int] = mapped_column(Integer, default=0)
    engagement: Mapped[float] = mapped_column(Float, default=0.0)  # interactions / reach

    content_format: Mapped[str | None] = mapped_column(String(50), nullable=True)
    raw_insights: Mapped[dict | None] = mapped_column(JSON(none_as_null=True), nullable=True)

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True
    )

    def __repr__(self) -> str:
        return f"<PostAnalytics {self.published_post_id}: {self.likes} likes @ {self.recorded_at}>"
