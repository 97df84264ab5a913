"""Historical coverage of account analytics: span and missing-day gaps."""

import logging
import math
from datetime import date, datetime, timedelta
from typing import Iterable

from schemas.analytics import CoverageGap, CoverageReport
from services.analytics_store import AnalyticsStore, as_utc

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


def find_gaps(recorded_at: Iterable[datetime]) -> list[CoverageGap]:
    """Contiguous runs of UTC calendar days with no record, between the first and last record."""
    present = {as_utc(value).date() for value in recorded_at}
    if not present:
        return []

    gaps: list[CoverageGap] = []
    gap_start: date | None = None
    current = min(present)
    last = max(present)

    while current <= last:
        if current not in present:
            if gap_start is None:
                gap_start = current
        elif gap_start is not None:
            gap_end = current - ONE_DAY
            gaps.append(
                CoverageGap(start=gap_start, end=gap_end, days=(gap_end - gap_start).days + 1)
            )
            gap_start = None
        current += ONE_DAY

    return gaps


class CoverageAnalyzer:
    """Reads an account's analytics history and reports how complete it is."""

    def __init__(self, store: AnalyticsStore):
        self.store = store

    async def analyze_coverage(self, social_account_id: str) -> CoverageReport:
        earliest = await self.store.earliest_account_analytics(social_account_id)
        latest = await self.store.latest_account_analytics(social_account_id)

        if earliest is None or latest is None:
            return CoverageReport(has_data=False, total_days=0, gaps=[])

        oldest = as_utc(earliest.recorded_at)
        newest = as_utc(latest.recorded_at)
        total_days = math.ceil((newest - oldest) / ONE_DAY)

        times = await self.store.account_analytics_times(social_account_id, oldest, newest)
        gaps = find_gaps(times)

        logger.info(
            f"Coverage for {social_account_id}: {total_days} days, {len(gaps)} gaps"
        )
        return CoverageReport(
            has_data=True,
            total_days=total_days,
            gaps=gaps,
            oldest_data=oldest,
            newest_data=newest,
        )
