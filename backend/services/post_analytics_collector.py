"""Post analytics phase: append a fresh metrics reading for recent posts."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from config import Settings
from models.post_analytics import PostAnalytics
from models.published_post import PublishedPost
from models.social_account import SocialAccount
from schemas.analytics import PhaseCounts
from services.analytics_store import AnalyticsStore
from services.exceptions import AnalyticsError
from services.platform_client import PlatformClientRegistry, require_credentials

logger = logging.getLogger(__name__)

SCOPED_POST_LIMIT = 20
RECENT_POST_DAYS = 7
RECENT_POST_LIMIT = 50


class PostAnalyticsCollector:
    def __init__(self, store: AnalyticsStore, clients: PlatformClientRegistry, settings: Settings):
        self.store = store
        self.clients = clients
        self.settings = settings

    async def target_posts(
        self,
        social_account_id: Optional[str] = None,
        team_id: Optional[str] = None,
    ) -> list[PublishedPost]:
        """Latest 20 posts for an account or team, else everything from the last week (max 50)."""
        if social_account_id or team_id:
            return await self.store.list_published_posts(
                social_account_id=social_account_id, team_id=team_id, limit=SCOPED_POST_LIMIT
            )
        since = datetime.now(timezone.utc) - timedelta(days=RECENT_POST_DAYS)
        return await self.store.list_published_posts(since=since, limit=RECENT_POST_LIMIT)

    async def collect_post_analytics(self, post: PublishedPost, account: SocialAccount) -> PostAnalytics:
        if not post.platform_post_id:
            raise AnalyticsError(f"Post {post.id} has no platform post id")
        client = self.clients.get(account.platform)
        _, token = require_credentials(account)

        insights = await client.get_post_insights(post.platform_post_id, token)
        return await self.store.add_post_analytics(post.id, insights, post.content_format)

    async def run(
        self,
        social_account_id: Optional[str] = None,
        team_id: Optional[str] = None,
    ) -> PhaseCounts:
        posts = await self.target_posts(social_account_id, team_id)
        counts = PhaseCounts(total=len(posts))
        accounts: dict[str, Optional[SocialAccount]] = {}

        for index, post in enumerate(posts):
            try:
                if post.social_account_id not in accounts:
                    accounts[post.social_account_id] = await self.store.get_account(post.social_account_id)
                account = accounts[post.social_account_id]
                if account is None:
                    raise AnalyticsError(f"Post {post.id} belongs to a missing account")

                await asyncio.wait_for(
                    self.collect_post_analytics(post, account),
                    timeout=self.settings.account_timeout_seconds,
                )
                counts.success += 1
            except Exception as e:
                counts.failed += 1
                logger.warning(f"Post analytics failed for post {post.id}: {e}")

            if index < len(posts) - 1:
                await asyncio.sleep(self.settings.post_analytics_delay)

        logger.info(f"Post analytics: {counts.success}/{counts.total} posts collected")
        return counts
