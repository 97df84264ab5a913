"""Account insights phase: follower and media counters for the day."""

import logging

from models.social_account import SocialAccount
from schemas.analytics import SafeWriteResult
from schemas.platform import AccountSnapshot
from services.analytics_store import AnalyticsStore
from services.platform_client import PlatformClientRegistry, require_credentials

logger = logging.getLogger(__name__)


class InsightsCollector:
    def __init__(self, store: AnalyticsStore, clients: PlatformClientRegistry):
        self.store = store
        self.clients = clients

    async def collect_account_insights(self, account: SocialAccount) -> SafeWriteResult:
        """Fetch counters and merge them into today's analytics row."""
        client = self.clients.get(account.platform)
        profile_id, token = require_credentials(account)

        basics = await client.get_account_basics(profile_id, token)
        snapshot = AccountSnapshot(
            followers_count=basics.followers_count,
            media_count=basics.media_count,
        )
        result = await self.store.save_account_analytics_safely(account.id, snapshot)
        logger.info(
            f"Insights {result.action} for {account.name or account.id}: "
            f"{basics.followers_count} followers, {basics.media_count} media"
        )
        return result
