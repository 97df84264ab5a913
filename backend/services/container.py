"""Wires the analytics services together.

Built once per process (FastAPI lifespan or CLI script) and handed to the
routers and scheduler through ``app.state``.
"""

from dataclasses import dataclass
from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import Settings
from services.analytics_master import AnalyticsMasterService
from services.analytics_store import AnalyticsStore
from services.coverage import CoverageAnalyzer
from services.facebook_service import FacebookClient
from services.graph_client import GraphAPIClient
from services.hotspot_analyzer import HotspotAnalyzer
from services.insights_collector import InsightsCollector
from services.instagram_service import InstagramClient
from services.platform_client import PlatformClientRegistry
from services.post_analytics_collector import PostAnalyticsCollector
from services.smart_sync import SmartSyncManager
from services.sync_executors import build_executors
from services.sync_strategy import SyncPlanner


@dataclass
class AnalyticsServices:
    store: AnalyticsStore
    clients: PlatformClientRegistry
    coverage: CoverageAnalyzer
    planner: SyncPlanner
    hotspots: HotspotAnalyzer
    master: AnalyticsMasterService
    smart_sync: SmartSyncManager


def build_platform_clients(
    settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
) -> PlatformClientRegistry:
    graph = GraphAPIClient(
        settings.graph_api_base,
        timeout=settings.graph_api_timeout,
        max_retries=settings.graph_api_max_retries,
        backoff_base=settings.graph_api_backoff_base,
        transport=transport,
    )
    return PlatformClientRegistry(
        [
            InstagramClient(graph, settings.insight_call_delay),
            FacebookClient(graph, settings.insight_call_delay),
        ]
    )


def build_services(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    clients: Optional[PlatformClientRegistry] = None,
) -> AnalyticsServices:
    store = AnalyticsStore(session_factory)
    clients = clients or build_platform_clients(settings)
    coverage = CoverageAnalyzer(store)
    planner = SyncPlanner(store)
    hotspots = HotspotAnalyzer(store, clients, settings)

    master = AnalyticsMasterService(
        store=store,
        settings=settings,
        clients=clients,
        planner=planner,
        coverage=coverage,
        insights=InsightsCollector(store, clients),
        hotspots=hotspots,
        post_analytics=PostAnalyticsCollector(store, clients, settings),
    )
    executors = build_executors(master, coverage, settings.full_historical_days)
    smart_sync = SmartSyncManager(planner, executors, store)

    return AnalyticsServices(
        store=store,
        clients=clients,
        coverage=coverage,
        planner=planner,
        hotspots=hotspots,
        master=master,
        smart_sync=smart_sync,
    )
