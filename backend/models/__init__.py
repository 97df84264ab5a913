"""Database models."""

from database import Base

from models.social_account import SocialAccount, Platform
from models.published_post import PublishedPost, PostStatus

# Analytics
from models.account_analytics import AccountAnalytics, METRIC_FIELDS
from models.post_analytics import PostAnalytics
from models.engagement_hotspot import EngagementHotspot
from models.sync_run_log import SyncRunLog, RunStatus

__all__ = [
    "Base",
    "SocialAccount",
    "Platform",
    "PublishedPost",
    "PostStatus",
    "AccountAnalytics",
    "METRIC_FIELDS",
    "PostAnalytics",
    "EngagementHotspot",
    "SyncRunLog",
    "RunStatus",
]
