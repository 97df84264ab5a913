"""
Pytest configuration and shared fixtures for the analytics backend tests.

Service tests run against a throwaway SQLite file per test, so the real
store queries (conditional inserts, subqueries, transactions) are exercised.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

import pytest
import pytest_asyncio

import models  # noqa: F401  registers every table on Base.metadata
from config import Settings
from database import build_engine, build_session_factory, create_tables
from fakes import FakePlatformClient
from models.post_analytics import PostAnalytics
from models.published_post import PostStatus, PublishedPost
from models.social_account import Platform, SocialAccount
from services.analytics_store import AnalyticsStore
from services.container import build_services
from services.platform_client import PlatformClientRegistry


@pytest.fixture
def settings(tmp_path):
    """Settings with every pacing delay disabled."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path}/test.db",
        cron_api_key="test-api-key",
        graph_api_backoff_base=0,
        insight_call_delay=0,
        post_analytics_delay=0,
        account_batch_delay=0,
        backfill_batch_delay=0,
        gap_fill_delay=0,
        hotspot_batch_delay=0,
        account_timeout_seconds=5,
        scheduler_enabled=False,
    )


@pytest_asyncio.fixture
async def engine(settings):
    engine = build_engine(settings.database_url)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def store(session_factory):
    return AnalyticsStore(session_factory)


@pytest.fixture
def fake_client():
    return FakePlatformClient()


@pytest.fixture
def clients(fake_client):
    return PlatformClientRegistry([fake_client])


@pytest.fixture
def services(settings, session_factory, clients):
    return build_services(settings, session_factory, clients=clients)


@pytest.fixture
def make_account(session_factory):
    """Insert a social account and return it."""

    async def _make(
        name: str = "Test Account",
        team_id: str = "team-1",
        platform: Platform = Platform.INSTAGRAM,
        profile_id: Optional[str] = None,
        access_token: Optional[str] = "test-token",
        created_at: Optional[datetime] = None,
    ) -> SocialAccount:
        account = SocialAccount(
            id=str(uuid4()),
            team_id=team_id,
            platform=platform,
            name=name,
            profile_id=profile_id or f"profile-{uuid4().hex[:8]}",
            access_token=access_token,
            created_at=created_at or datetime.now(timezone.utc),
        )
        async with session_factory() as session:
            session.add(account)
            await session.commit()
        return account

    return _make


@pytest.fixture
def make_post(session_factory):
    """Insert a published post for an account and return it."""

    async def _make(
        account: SocialAccount,
        published_at: datetime,
        platform_post_id: Optional[str] = None,
        status: PostStatus = PostStatus.PUBLISHED,
        content_format: Optional[str] = "image",
    ) -> PublishedPost:
        post = PublishedPost(
            id=str(uuid4()),
            team_id=account.team_id,
            social_account_id=account.id,
            platform_post_id=platform_post_id or f"media-{uuid4().hex[:8]}",
            status=status,
            content_format=content_format,
            published_at=published_at,
        )
        async with session_factory() as session:
            session.add(post)
            await session.commit()
        return post

    return _make


@pytest.fixture
def make_post_analytics(session_factory):
    """Insert one analytics reading for a post."""

    async def _make(
        post: PublishedPost,
        recorded_at: Optional[datetime] = None,
        **metrics,
    ) -> PostAnalytics:
        record = PostAnalytics(
            id=str(uuid4()),
            published_post_id=post.id,
            recorded_at=recorded_at or datetime.now(timezone.utc),
            **metrics,
        )
        async with session_factory() as session:
            session.add(record)
            await session.commit()
        return record

    return _make
