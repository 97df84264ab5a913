"""Instagram Graph API client.

Instagram Business/Creator accounts are read through the Facebook Graph API
with the linked Page's access token.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from models.social_account import Platform
from schemas.platform import (
    AccountBasics,
    InstagramInsightPayload,
    PlatformPost,
    PostInsights,
)
from services.exceptions import PlatformAPIError
from services.platform_client import PlatformClient, parse_graph_time

logger = logging.getLogger(__name__)

MEDIA_FIELDS = "id,timestamp,like_count,comments_count,media_type,permalink"
POST_INSIGHT_METRICS = "likes,comments,shares,saved,reach"


def _metric_value(metric: dict) -> int:
    """Read a metric value from either the ``values`` or ``total_value`` shape."""
    if "total_value" in metric:
        return int(metric["total_value"].get("value", 0) or 0)
    values = metric.get("values") or [{}]
    value = values[0].get("value", 0)
    return int(value) if isinstance(value, (int, float)) else 0


class InstagramClient(PlatformClient):
    platform = Platform.INSTAGRAM

    async def get_account_basics(self, profile_id: str, token: str) -> AccountBasics:
        data = await self.graph.get(
            profile_id,
            {"fields": "followers_count,media_count", "access_token": token},
        )
        return AccountBasics(
            followers_count=data.get("followers_count", 0),
            media_count=data.get("media_count", 0),
        )

    async def get_recent_posts(
        self,
        profile_id: str,
        token: str,
        limit: int = 50,
        since: Optional[datetime] = None,
    ) -> list[PlatformPost]:
        items = await self.graph.get_paginated(
            f"{profile_id}/media",
            {"fields": MEDIA_FIELDS, "limit": 100, "access_token": token},
            limit=max(limit, 100),
        )

        posts = []
        for item in items:
            if not item.get("timestamp"):
                continue
            timestamp = parse_graph_time(item["timestamp"])
            if since and timestamp < since:
                continue
            posts.append(
                PlatformPost(
                    id=item["id"],
                    timestamp=timestamp,
                    like_count=item.get("like_count", 0),
                    comment_count=item.get("comments_count", 0),
                    media_type=item.get("media_type"),
                    permalink=item.get("permalink"),
                )
            )
        return posts[:limit]

    async def get_post_insights(self, post_id: str, token: str) -> PostInsights:
        data = await self.graph.get(
            f"{post_id}/insights",
            {"metric": POST_INSIGHT_METRICS, "period": "lifetime", "access_token": token},
        )
        values = {m.get("name"): _metric_value(m) for m in data.get("data", [])}
        return PostInsights(
            likes=values.get("likes", 0),
            comments=values.get("comments", 0),
            shares=values.get("shares", 0),
            saved=values.get("saved", 0),
            reach=values.get("reach", 0),
            raw=data,
        )

    async def collect_account_insights(
        self,
        profile_id: str,
        token: str,
        days_back: int = 7,
        media_limit: int = 25,
    ) -> InstagramInsightPayload:
        basics = await self.get_account_basics(profile_id, token)
        since = datetime.now(timezone.utc) - timedelta(days=days_back)
        posts = await self.get_recent_posts(profile_id, token, limit=media_limit, since=since)

        payload = InstagramInsightPayload(
            followers_count=basics.followers_count,
            media_count=basics.media_count,
            posts_analyzed=len(posts),
        )
        for post in posts:
            try:
                insights = await self.get_post_insights(post.id, token)
            except PlatformAPIError as e:
                # Insights are unavailable for some media types; use the list counters
                logger.debug(f"Insights unavailable for Instagram media {post.id}: {e}")
                insights = PostInsights(likes=post.like_count, comments=post.comment_count)

            payload.likes += insights.likes
            payload.comments += insights.comments
            payload.shares += insights.shares
            payload.saves += insights.saved
            payload.reach += insights.reach
            payload.impressions += insights.impressions
            await asyncio.sleep(self.insight_call_delay)

        logger.info(
            f"Instagram insights collected for {profile_id}: "
            f"{payload.followers_count} followers, {payload.posts_analyzed} posts"
        )
        return payload
