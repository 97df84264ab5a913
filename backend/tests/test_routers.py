"""HTTP surface of the analytics router, with the services mocked out."""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from main import app
from middleware.auth import settings as auth_settings
from schemas.analytics import (
    AnalyticsRunResult,
    RunLogEntry,
    SyncResult,
    SyncStatus,
    SyncStrategy,
)
from services.exceptions import AccountNotFoundError

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_services():
    services = MagicMock()
    services.master.run_complete_analytics = AsyncMock(return_value=AnalyticsRunResult(success=2, total=2))
    services.master.get_analytics_run_history = AsyncMock(return_value=[])
    services.master.get_sync_status = AsyncMock(return_value=SyncStatus())
    services.smart_sync.perform_smart_sync = AsyncMock(
        return_value=SyncResult(success=True, strategy=SyncStrategy.INCREMENTAL_DAILY, next_recommended_sync=NOW)
    )
    services.smart_sync.get_sync_recommendations = AsyncMock()
    services.store.get_account = AsyncMock(return_value=SimpleNamespace(id="acct-1"))
    services.store.list_hotspots = AsyncMock(return_value=[])
    services.store.latest_post_analytics = AsyncMock(return_value=None)
    return services


@pytest.fixture
def client(mock_services):
    # No context manager: the lifespan (database, scheduler) is not started
    app.state.services = mock_services
    return TestClient(app)


@pytest.fixture
def headers():
    return {"X-API-Key": auth_settings.cron_api_key}


class TestAuth:
    def test_wrong_api_key_is_rejected(self, client):
        response = client.get("/analytics/runs", headers={"X-API-Key": "wrong"})

        assert response.status_code == 401

    def test_health_needs_no_key(self, client):
        assert client.get("/health").json()["status"] == "healthy"


class TestRuns:
    def test_run_returns_the_result(self, client, headers, mock_services):
        response = client.post(
            "/analytics/run",
            json={"team_id": "team-1", "include_hotspots": False},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["success"] == 2
        options = mock_services.master.run_complete_analytics.await_args.args[0]
        assert options.team_id == "team-1"
        assert options.include_hotspots is False

    def test_unknown_account_is_404(self, client, headers, mock_services):
        mock_services.master.run_complete_analytics.side_effect = AccountNotFoundError(
            "Social account missing not found"
        )

        response = client.post("/analytics/run", json={"social_account_id": "missing"}, headers=headers)

        assert response.status_code == 404
        assert response.json()["detail"] == "Social account missing not found"

    def test_days_back_is_validated(self, client, headers):
        response = client.post("/analytics/run", json={"days_back": 365}, headers=headers)

        assert response.status_code == 422

    def test_smart_sync(self, client, headers, mock_services):
        response = client.post(
            "/analytics/smart-sync",
            json={"social_account_id": "acct-1", "strategy": "gap_filling", "force_strategy": True},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["strategy"] == "incremental_daily"
        options = mock_services.smart_sync.perform_smart_sync.await_args.args[0]
        assert options.strategy == SyncStrategy.GAP_FILLING

    def test_run_history(self, client, headers, mock_services):
        mock_services.master.get_analytics_run_history.return_value = [
            RunLogEntry(id="log-1", name="analytics_master_run", status="SUCCESS", executed_at=NOW, message={})
        ]

        response = client.get("/analytics/runs?hours=6", headers=headers)

        assert response.status_code == 200
        assert response.json()[0]["status"] == "SUCCESS"
        mock_services.master.get_analytics_run_history.assert_awaited_once_with(6)


class TestAccounts:
    def test_recommendations_for_unknown_account(self, client, headers, mock_services):
        mock_services.smart_sync.get_sync_recommendations.side_effect = AccountNotFoundError("not found")

        response = client.get("/analytics/accounts/missing/sync-recommendations", headers=headers)

        assert response.status_code == 404

    def test_sync_status(self, client, headers):
        response = client.get("/analytics/accounts/acct-1/sync-status", headers=headers)

        assert response.status_code == 200
        assert response.json()["needs_sync"] is True

    def test_sync_status_for_unknown_account(self, client, headers, mock_services):
        mock_services.store.get_account.return_value = None

        response = client.get("/analytics/accounts/missing/sync-status", headers=headers)

        assert response.status_code == 404

    def test_hotspots(self, client, headers, mock_services):
        mock_services.store.list_hotspots.return_value = [
            SimpleNamespace(day_of_week=1, hour_of_day=9, score=42.5, updated_at=NOW)
        ]

        response = client.get("/analytics/accounts/acct-1/hotspots", headers=headers)

        assert response.json() == [
            {"day_of_week": 1, "hour_of_day": 9, "score": 42.5, "updated_at": "2025-06-15T12:00:00Z"}
        ]

    def test_post_without_analytics_is_404(self, client, headers):
        response = client.get("/analytics/posts/post-1/analytics", headers=headers)

        assert response.status_code == 404
