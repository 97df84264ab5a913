"""Request/result models for sync planning and analytics runs."""

import enum
from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class SyncStrategy(str, enum.Enum):
    """Collection scope chosen for an account."""
    INCREMENTAL_DAILY = "incremental_daily"
    SMART_ADAPTIVE = "smart_adaptive"
    FULL_HISTORICAL = "full_historical"
    GAP_FILLING = "gap_filling"


class Urgency(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# ============== Coverage ==============

class CoverageGap(BaseModel):
    """Contiguous run of UTC days with no account analytics."""
    start: date
    end: date
    days: int


class CoverageReport(BaseModel):
    has_data: bool
    total_days: int = 0
    gaps: list[CoverageGap] = []
    oldest_data: Optional[datetime] = None
    newest_data: Optional[datetime] = None


# ============== Smart sync ==============

class SyncContext(BaseModel):
    """Inputs to strategy selection, derived from stored timestamps."""
    social_account_id: str
    is_new_account: bool
    days_since_creation: int
    days_since_last_collection: int
    needs_historical_data: bool
    last_collection: Optional[datetime] = None


class SmartSyncOptions(BaseModel):
    social_account_id: str
    strategy: Optional[SyncStrategy] = None
    force_strategy: bool = False


class SyncResult(BaseModel):
    success: bool
    strategy: SyncStrategy
    days_collected: int = 0
    data_points_collected: int = 0  # estimate, not a measured count
    next_recommended_sync: datetime
    error: Optional[str] = None


class SyncRecommendation(BaseModel):
    social_account_id: str
    current_status: Literal["synced", "never_synced"]
    last_collection: Optional[datetime] = None
    days_since_last_collection: int
    recommended_strategy: SyncStrategy
    estimated_data_to_collect: int  # estimate
    urgency: Urgency


class AccountPlan(BaseModel):
    """Per-account collection scope applied during a complete run."""
    strategy: Optional[SyncStrategy] = None
    skip_hotspots: bool = False
    days_back: int = 7


# ============== Analytics runs ==============

class PhaseCounts(BaseModel):
    success: int = 0
    failed: int = 0
    total: int = 0


class RunDetails(BaseModel):
    insights: PhaseCounts = Field(default_factory=PhaseCounts)
    hotspots: PhaseCounts = Field(default_factory=PhaseCounts)
    analytics: PhaseCounts = Field(default_factory=PhaseCounts)
    post_analytics: PhaseCounts = Field(default_factory=PhaseCounts)


class AnalyticsRunOptions(BaseModel):
    """Which phases to run and for which accounts.

    Scope is one account, one team, or every account when both are unset.
    The post analytics phase always runs.
    """
    include_insights: bool = True
    include_hotspots: bool = True
    include_analytics: bool = True
    social_account_id: Optional[str] = None
    team_id: Optional[str] = None
    use_smart_sync: bool = True
    sync_strategy: Optional[SyncStrategy] = None
    days_back: int = Field(default=7, ge=1, le=90)


class AnalyticsRunResult(BaseModel):
    success: int = 0
    failed: int = 0
    total: int = 0
    execution_time_ms: int = 0
    details: RunDetails = Field(default_factory=RunDetails)
    errors: list[str] = []


class HotspotBatchResult(BaseModel):
    success: int = 0
    failed: int = 0
    total: int = 0
    execution_time_ms: int = 0


# ============== Backfill ==============

class HistoricalSyncResult(BaseModel):
    success: bool = True
    strategy: Literal["full_backfill", "incremental_update", "gap_filling", "up_to_date"] = "up_to_date"
    days_backfilled: int = 0
    gaps_filled: int = 0
    errors: list[str] = []


class SyncStatus(BaseModel):
    has_data: bool = False
    total_days: int = 0
    gaps: int = 0
    last_sync: Optional[datetime] = None
    needs_sync: bool = True
    recommendation: str = "Run an initial historical sync"
    coverage: Optional[CoverageReport] = None


class SafeWriteResult(BaseModel):
    action: Literal["created", "updated", "skipped"]
    record_id: Optional[str] = None


class RunLogEntry(BaseModel):
    id: str
    name: str
    status: str
    executed_at: datetime
    message: Optional[dict] = None


# ============== Initial heatmap ==============

class HourlyEngagement(BaseModel):
    hour: int
    total_engagement: float = 0
    post_count: int = 0
    avg_engagement: float = 0


class DailyEngagement(BaseModel):
    day: str
    day_index: int  # 0 = Sunday
    total_engagement: float = 0
    post_count: int = 0
    avg_engagement: float = 0


class PeakHour(BaseModel):
    hour: int
    time_label: str
    avg_engagement: int
    post_count: int


class PostingTime(BaseModel):
    day: str
    hour: int
    time_label: str
    score: int
    hour_engagement: int
    day_engagement: int


class InitialHeatmap(BaseModel):
    """Engagement patterns derived straight from the platform for a new account."""
    total_posts: int = 0
    hourly_data: list[HourlyEngagement] = []
    weekly_data: list[DailyEngagement] = []
    peak_hours: list[PeakHour] = []
    best_posting_times: list[PostingTime] = []
    hotspots_created: int = 0
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class AccountHistoricalSync(BaseModel):
    social_account_id: str
    result: Optional[HistoricalSyncResult] = None
    error: Optional[str] = None


class BatchHistoricalSyncResult(BaseModel):
    success: int = 0
    failed: int = 0
    results: list[AccountHistoricalSync] = []
