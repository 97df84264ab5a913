"""Posts published to a social account by the publishing pipeline."""

import enum
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import DateTime, Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class PostStatus(str, enum.Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    PUBLISHED = "published"
    FAILED = "failed"


class PublishedPost(Base):
    """One post on one social account. Analytics hang off this row."""

    __tablename__ = "published_posts"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    team_id: Mapped[str] = mapped_column(String(36), index=True)
    social_account_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("social_accounts.id", ondelete="CASCADE"),
        index=True,
    )
    platform_post_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[PostStatus] = mapped_column(
        Enum(PostStatus, values_callable=lambda enum: [e.value for e in enum]),
        default=PostStatus.DRAFT,
    )
    content_format: Mapped[str | None] = mapped_column(String(50), nullable=True)  # image, video, carousel, reel
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return f"<PublishedPost {self.id}: {self.status.value}>"
