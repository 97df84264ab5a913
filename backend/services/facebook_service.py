"""Facebook Page Graph API client.

Requires a Page Access Token. Post-level engagement is read from the post
edges (reactions, comments, shares) because per-post insights need extra
page permissions.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from models.social_account import Platform
from schemas.platform import (
    AccountBasics,
    FacebookInsightPayload,
    PlatformPost,
    PostInsights,
)
from services.platform_client import PlatformClient, parse_graph_time

logger = logging.getLogger(__name__)

POST_FIELDS = (
    "id,created_time,permalink_url,"
    "reactions.summary(true).limit(0),comments.summary(true).limit(0),shares"
)


def _summary_count(data: dict, edge: str) -> int:
    return int(data.get(edge, {}).get("summary", {}).get("total_count", 0) or 0)


def _to_post(item: dict) -> PlatformPost:
    return PlatformPost(
        id=item["id"],
        timestamp=parse_graph_time(item["created_time"]),
        like_count=_summary_count(item, "reactions"),
        comment_count=_summary_count(item, "comments"),
        share_count=int(item.get("shares", {}).get("count", 0) or 0),
        permalink=item.get("permalink_url"),
    )


class FacebookClient(PlatformClient):
    platform = Platform.FACEBOOK

    async def get_account_basics(self, profile_id: str, token: str) -> AccountBasics:
        data = await self.graph.get(
            profile_id,
            {"fields": "fan_count,posts.summary(true).limit(0)", "access_token": token},
        )
        return AccountBasics(
            followers_count=data.get("fan_count", 0),
            media_count=_summary_count(data, "posts"),
        )

    async def get_recent_posts(
        self,
        profile_id: str,
        token: str,
        limit: int = 50,
        since: Optional[datetime] = None,
    ) -> list[PlatformPost]:
        params = {"fields": POST_FIELDS, "limit": min(limit, 100), "access_token": token}
        if since:
            params["since"] = int(since.timestamp())
        items = await self.graph.get_paginated(f"{profile_id}/posts", params, limit=limit)
        posts = [_to_post(item) for item in items if item.get("created_time")]
        if since:
            posts = [p for p in posts if p.timestamp >= since]
        return posts

    async def get_post_insights(self, post_id: str, token: str) -> PostInsights:
        data = await self.graph.get(post_id, {"fields": POST_FIELDS, "access_token": token})
        post = _to_post(data)
        return PostInsights(
            likes=post.like_count,
            comments=post.comment_count,
            shares=post.share_count,
            raw=data,
        )

    async def collect_account_insights(
        self,
        profile_id: str,
        token: str,
        days_back: int = 7,
        media_limit: int = 25,
    ) -> FacebookInsightPayload:
        basics = await self.get_account_basics(profile_id, token)
        since = datetime.now(timezone.utc) - timedelta(days=days_back)
        posts = await self.get_recent_posts(profile_id, token, limit=media_limit, since=since)

        payload = FacebookInsightPayload(
            fan_count=basics.followers_count,
            posts_count=basics.media_count,
            posts_analyzed=len(posts),
            reactions=sum(p.like_count for p in posts),
            comments=sum(p.comment_count for p in posts),
            shares=sum(p.share_count for p in posts),
        )
        logger.info(
            f"Facebook page insights collected for {profile_id}: "
            f"{payload.fan_count} fans, {payload.posts_analyzed} posts"
        )
        return payload
