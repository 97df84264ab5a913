"""Typed payloads returned by the platform clients.

Raw Graph API JSON is validated into these models at the client boundary and
converted to ``AccountSnapshot`` before anything reaches the store.
"""

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

# Facebook Page reach estimates (page reach is not exposed for every token)
FACEBOOK_REACH_PER_ENGAGEMENT = 8
FACEBOOK_IMPRESSIONS_PER_REACH = 1.3


class AccountBasics(BaseModel):
    """Profile counters for an account."""
    followers_count: int = 0
    media_count: int = 0


class PlatformPost(BaseModel):
    """A post as listed by the platform."""
    id: str
    timestamp: datetime
    like_count: int = 0
    comment_count: int = 0
    share_count: int = 0
    media_type: Optional[str] = None
    permalink: Optional[str] = None


class PostInsights(BaseModel):
    """Lifetime insights for a single post."""
    likes: int = 0
    comments: int = 0
    shares: int = 0
    saved: int = 0
    reach: int = 0
    impressions: int = 0
    clicks: int = 0
    views: int = 0
    raw: Optional[dict] = None

    @property
    def interactions(self) -> int:
        return self.likes + self.comments + self.shares + self.saved

    @property
    def engagement(self) -> float:
        """Interactions per reached user (0 when reach is unknown)."""
        return self.interactions / self.reach if self.reach > 0 else 0.0


class AccountSnapshot(BaseModel):
    """Internal shape of one day's account metrics. ``None`` means not collected."""
    followers_count: Optional[int] = None
    following_count: Optional[int] = None
    media_count: Optional[int] = None
    engagement_rate: Optional[float] = None
    avg_reach_per_post: Optional[float] = None
    avg_likes_per_post: Optional[float] = None
    avg_comments_per_post: Optional[float] = None
    avg_shares_per_post: Optional[float] = None
    avg_engagement_per_post: Optional[float] = None
    total_reach: Optional[int] = None
    total_impressions: Optional[int] = None
    total_likes: Optional[int] = None
    total_comments: Optional[int] = None
    total_shares: Optional[int] = None
    total_saves: Optional[int] = None
    total_clicks: Optional[int] = None

    def collected_metrics(self) -> dict:
        return self.model_dump(exclude_none=True)


def _per_post(total: int, posts: int) -> float:
    return round(total / posts, 2) if posts > 0 else 0.0


class InstagramInsightPayload(BaseModel):
    """Aggregated Instagram Business account insights over a window."""
    platform: Literal["instagram"] = "instagram"
    followers_count: int = 0
    media_count: int = 0
    posts_analyzed: int = 0
    likes: int = 0
    comments: int = 0
    shares: int = 0
    saves: int = 0
    reach: int = 0
    impressions: int = 0

    def to_snapshot(self) -> AccountSnapshot:
        interactions = self.likes + self.comments + self.shares + self.saves
        if self.reach > 0:
            engagement_rate = interactions / self.reach * 100
        elif self.followers_count > 0 and self.posts_analyzed > 0:
            engagement_rate = interactions / (self.followers_count * self.posts_analyzed) * 100
        else:
            engagement_rate = 0.0
        return AccountSnapshot(
            followers_count=self.followers_count,
            media_count=self.media_count,
            engagement_rate=round(engagement_rate, 2),
            avg_reach_per_post=_per_post(self.reach, self.posts_analyzed),
            avg_likes_per_post=_per_post(self.likes, self.posts_analyzed),
            avg_comments_per_post=_per_post(self.comments, self.posts_analyzed),
            avg_shares_per_post=_per_post(self.shares, self.posts_analyzed),
            avg_engagement_per_post=_per_post(interactions, self.posts_analyzed),
            total_reach=self.reach,
            total_impressions=self.impressions,
            total_likes=self.likes,
            total_comments=self.comments,
            total_shares=self.shares,
            total_saves=self.saves,
        )


class FacebookInsightPayload(BaseModel):
    """Aggregated Facebook Page activity over a window.

    Page-level reach is not exposed for every token type, so reach and
    impressions are estimated from engagement.
    """
    platform: Literal["facebook"] = "facebook"
    fan_count: int = 0
    posts_count: int = 0
    posts_analyzed: int = 0
    reactions: int = 0
    comments: int = 0
    shares: int = 0

    def to_snapshot(self) -> AccountSnapshot:
        engagement = self.reactions + self.comments + self.shares
        reach = int(engagement * FACEBOOK_REACH_PER_ENGAGEMENT)
        impressions = int(reach * FACEBOOK_IMPRESSIONS_PER_REACH)
        engagement_rate = engagement / reach * 100 if reach > 0 else 0.0
        return AccountSnapshot(
            followers_count=self.fan_count,
            media_count=self.posts_count,
            engagement_rate=round(engagement_rate, 2),
            avg_reach_per_post=_per_post(reach, self.posts_analyzed),
            avg_likes_per_post=_per_post(self.reactions, self.posts_analyzed),
            avg_comments_per_post=_per_post(self.comments, self.posts_analyzed),
            avg_shares_per_post=_per_post(self.shares, self.posts_analyzed),
            avg_engagement_per_post=_per_post(engagement, self.posts_analyzed),
            total_reach=reach,
            total_impressions=impressions,
            total_likes=self.reactions,
            total_comments=self.comments,
            total_shares=self.shares,
        )


InsightPayload = Annotated[
    Union[InstagramInsightPayload, FacebookInsightPayload],
    Field(discriminator="platform"),
]
