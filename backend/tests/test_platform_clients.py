"""Graph API client retries and the Instagram / Facebook clients, over a mocked transport."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from models.social_account import Platform, SocialAccount
from schemas.platform import FacebookInsightPayload, InstagramInsightPayload
from services.exceptions import MissingCredentialsError, PlatformAPIError, UnsupportedPlatformError
from services.facebook_service import FacebookClient
from services.graph_client import GraphAPIClient
from services.instagram_service import InstagramClient
from services.platform_client import PlatformClientRegistry, parse_graph_time, require_credentials

BASE_URL = "https://graph.test/v1"


def graph_time(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%S+0000")


def graph_with(handler) -> GraphAPIClient:
    return GraphAPIClient(BASE_URL, max_retries=3, backoff_base=0, transport=httpx.MockTransport(handler))


class TestGraphAPIClient:
    async def test_retries_transient_errors(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            if len(calls) == 1:
                return httpx.Response(503, text="unavailable")
            return httpx.Response(200, json={"id": "123"})

        data = await graph_with(handler).get("123", {"fields": "id"})

        assert data == {"id": "123"}
        assert calls == ["/v1/123", "/v1/123"]

    async def test_retries_timeouts(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) < 3:
                raise httpx.ReadTimeout("timed out", request=request)
            return httpx.Response(200, json={"ok": True})

        assert await graph_with(handler).get("me") == {"ok": True}
        assert len(calls) == 3

    async def test_client_errors_are_not_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(400, json={"error": {"message": "Invalid OAuth access token"}})

        with pytest.raises(PlatformAPIError) as exc_info:
            await graph_with(handler).get("me")

        assert len(calls) == 1
        assert exc_info.value.status_code == 400
        assert "Invalid OAuth access token" in str(exc_info.value)

    async def test_rate_limit_gives_up_after_max_retries(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(429, json={"error": {"message": "Application request limit reached"}})

        with pytest.raises(PlatformAPIError) as exc_info:
            await graph_with(handler).get("me")

        assert len(calls) == 3
        assert exc_info.value.status_code == 429

    async def test_follows_paging_links(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v1/feed":
                return httpx.Response(
                    200,
                    json={"data": [{"id": "1"}, {"id": "2"}], "paging": {"next": f"{BASE_URL}/feed-page-2"}},
                )
            return httpx.Response(200, json={"data": [{"id": "3"}]})

        items = await graph_with(handler).get_paginated("feed", limit=10)

        assert [item["id"] for item in items] == ["1", "2", "3"]


class TestInstagramClient:
    @staticmethod
    def handler_for(insights_status: int = 200):
        recent = datetime.now(timezone.utc) - timedelta(days=1)
        old = datetime.now(timezone.utc) - timedelta(days=30)

        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            if path == "/v1/ig-1":
                return httpx.Response(200, json={"followers_count": 500, "media_count": 12})
            if path == "/v1/ig-1/media":
                return httpx.Response(
                    200,
                    json={
                        "data": [
                            {"id": "m1", "timestamp": graph_time(recent), "like_count": 10, "comments_count": 2},
                            {"id": "m2", "timestamp": graph_time(old), "like_count": 99, "comments_count": 9},
                        ]
                    },
                )
            if path == "/v1/m1/insights":
                if insights_status != 200:
                    return httpx.Response(insights_status, json={"error": {"message": "unsupported"}})
                return httpx.Response(
                    200,
                    json={
                        "data": [
                            {"name": "likes", "values": [{"value": 11}]},
                            {"name": "comments", "values": [{"value": 3}]},
                            {"name": "reach", "total_value": {"value": 200}},
                        ]
                    },
                )
            return httpx.Response(404, json={"error": {"message": f"unknown path {path}"}})

        return handler

    async def test_collects_insights_for_the_window(self):
        client = InstagramClient(graph_with(self.handler_for()), insight_call_delay=0)

        payload = await client.collect_account_insights("ig-1", "token", days_back=7)

        assert isinstance(payload, InstagramInsightPayload)
        assert payload.posts_analyzed == 1
        assert (payload.likes, payload.comments, payload.reach) == (11, 3, 200)
        snapshot = payload.to_snapshot()
        assert snapshot.followers_count == 500
        assert snapshot.engagement_rate == 7.0
        assert snapshot.avg_reach_per_post == 200.0

    async def test_falls_back_to_list_counters_without_insights(self):
        client = InstagramClient(graph_with(self.handler_for(insights_status=400)), insight_call_delay=0)

        payload = await client.collect_account_insights("ig-1", "token", days_back=7)

        assert (payload.likes, payload.comments, payload.reach) == (10, 2, 0)

    async def test_post_insights_keep_the_raw_payload(self):
        client = InstagramClient(graph_with(self.handler_for()), insight_call_delay=0)

        insights = await client.get_post_insights("m1", "token")

        assert insights.interactions == 14
        assert insights.engagement == pytest.approx(14 / 200)
        assert insights.raw["data"][0]["name"] == "likes"


class TestFacebookClient:
    async def test_estimates_reach_from_engagement(self):
        posted = graph_time(datetime.now(timezone.utc) - timedelta(days=2))

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v1/page-1":
                return httpx.Response(200, json={"fan_count": 900, "posts": {"summary": {"total_count": 55}}})
            return httpx.Response(
                200,
                json={
                    "data": [
                        {
                            "id": "page-1_1",
                            "created_time": posted,
                            "reactions": {"summary": {"total_count": 40}},
                            "comments": {"summary": {"total_count": 8}},
                            "shares": {"count": 2},
                        }
                    ]
                },
            )

        client = FacebookClient(graph_with(handler), insight_call_delay=0)

        payload = await client.collect_account_insights("page-1", "token")

        assert isinstance(payload, FacebookInsightPayload)
        snapshot = payload.to_snapshot()
        assert snapshot.followers_count == 900
        assert snapshot.media_count == 55
        assert snapshot.total_reach == 400
        assert snapshot.total_impressions == 520
        assert snapshot.engagement_rate == 12.5


class TestRegistryAndCredentials:
    def test_unknown_platform_is_rejected(self):
        registry = PlatformClientRegistry([InstagramClient(graph_with(lambda r: httpx.Response(200)))])

        assert registry.supports(Platform.INSTAGRAM)
        assert registry.list_platforms() == ["instagram"]
        with pytest.raises(UnsupportedPlatformError):
            registry.get(Platform.TIKTOK)

    def test_missing_token_fails_before_any_call(self):
        account = SocialAccount(id="acct-1", team_id="team-1", platform=Platform.INSTAGRAM, profile_id="ig-1")

        with pytest.raises(MissingCredentialsError):
            require_credentials(account)

    def test_parse_graph_time(self):
        assert parse_graph_time("2025-06-01T14:05:00+0000") == datetime(2025, 6, 1, 14, 5, tzinfo=timezone.utc)

    def test_instagram_engagement_falls_back_to_followers(self):
        payload = InstagramInsightPayload(followers_count=1000, posts_analyzed=2, likes=30, comments=10)

        assert payload.to_snapshot().engagement_rate == 2.0
