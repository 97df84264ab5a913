"""Platform client interface and registry.

Every collector talks to a platform through ``PlatformClient``; concrete
clients live in ``instagram_service`` and ``facebook_service``.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from models.social_account import Platform, SocialAccount
from schemas.platform import AccountBasics, InsightPayload, PlatformPost, PostInsights
from services.exceptions import MissingCredentialsError, UnsupportedPlatformError
from services.graph_client import GraphAPIClient

logger = logging.getLogger(__name__)


def parse_graph_time(value: str) -> datetime:
    """Parse Graph API timestamps such as ``2025-06-01T14:05:00+0000``."""
    return datetime.strptime(value, "%Y-%m-%dT%H:%M:%S%z")


def require_credentials(account: SocialAccount) -> tuple[str, str]:
    """Return (profile_id, access_token) or fail before any network call."""
    if not account.access_token:
        raise MissingCredentialsError(
            f"Account {account.id} has no access token",
            {"social_account_id": account.id},
        )
    if not account.profile_id:
        raise MissingCredentialsError(
            f"Account {account.id} has no profile id",
            {"social_account_id": account.id},
        )
    return account.profile_id, account.access_token


class PlatformClient(ABC):
    """Read-only analytics access to one platform."""

    platform: Platform

    def __init__(self, graph: GraphAPIClient, insight_call_delay: float = 0.1):
        self.graph = graph
        self.insight_call_delay = insight_call_delay

    @abstractmethod
    async def get_account_basics(self, profile_id: str, token: str) -> AccountBasics:
        """Follower and media counters."""

    @abstractmethod
    async def get_recent_posts(
        self,
        profile_id: str,
        token: str,
        limit: int = 50,
        since: Optional[datetime] = None,
    ) -> list[PlatformPost]:
        """Most recent posts first, optionally only those published after ``since``."""

    @abstractmethod
    async def get_post_insights(self, post_id: str, token: str) -> PostInsights:
        """Lifetime insights for one post."""

    @abstractmethod
    async def collect_account_insights(
        self,
        profile_id: str,
        token: str,
        days_back: int = 7,
        media_limit: int = 25,
    ) -> InsightPayload:
        """Aggregate account metrics over the last ``days_back`` days."""


class PlatformClientRegistry:
    """Maps platforms to their client instances."""

    def __init__(self, clients: Optional[list[PlatformClient]] = None):
        self._clients: dict[Platform, PlatformClient] = {}
        for client in clients or []:
            self.register(client)

    def register(self, client: PlatformClient) -> None:
        self._clients[client.platform] = client

    def get(self, platform: Platform) -> PlatformClient:
        client = self._clients.get(platform)
        if client is None:
            raise UnsupportedPlatformError(
                f"Unsupported platform: {platform.value}",
                {"platform": platform.value},
            )
        return client

    def supports(self, platform: Platform) -> bool:
        return platform in self._clients

    def list_platforms(self) -> list[str]:
        return [p.value for p in self._clients]
