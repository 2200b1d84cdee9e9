"""Whole-patient dashboard counts and the sliding weekly summary series."""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from app.config import RECENT_EVENT_DAYS, WEEKLY_SUMMARY_WEEKS
from app.models.analytics import DashboardSummary
from app.services.correlation import count_by_category, count_by_severity
from app.services.store import MedicalStore
from app.services.validation import require_patient_id
from app.timeutil import utc_now

logger = logging.getLogger(__name__)


class DashboardAggregator:
    def __init__(
        self,
        store: MedicalStore,
        clock: Callable[[], datetime] = utc_now,
        recent_days: int = RECENT_EVENT_DAYS,
        weeks: int = WEEKLY_SUMMARY_WEEKS,
    ) -> None:
        self.store = store
        self.clock = clock
        self.recent_window = timedelta(days=recent_days)
        self.weeks = weeks

    async def summarize(self, patient_id: str) -> DashboardSummary:
        """Counts and histograms over the patient's entire history.

        Only ``recent_events`` is windowed (events at or after now minus the
        recent window).
        """
        require_patient_id(patient_id)

        events, total_dosages = await asyncio.gather(
            self.store.events_for(patient_id),
            self.store.count_dosages(patient_id),
        )
        recent_cutoff = self.clock() - self.recent_window

        return DashboardSummary(
            patient_id=patient_id,
            total_events=len(events),
            total_dosages=total_dosages,
            events_by_category=count_by_category(events),
            events_by_severity=count_by_severity(events),
            recent_events=sum(1 for e in events if e.event_time >= recent_cutoff),
        )

    async def generate_weekly_summaries(self, patient_id: str) -> dict[str, DashboardSummary]:
        """``week_1`` .. ``week_N``, most recent week first.

        Week N covers ``[now - N weeks, now - (N-1) weeks)``; buckets are
        half-open so an event on a boundary lands in exactly one week.
        """
        require_patient_id(patient_id)

        now = self.clock()
        bounds = [
            (now - timedelta(weeks=week), now - timedelta(weeks=week - 1))
            for week in range(1, self.weeks + 1)
        ]
        summaries = await asyncio.gather(
            *(self._summarize_window(patient_id, start, end) for start, end in bounds)
        )
        logger.info("Built %d weekly summaries for patient %s", len(summaries), patient_id)
        return {f"week_{week}": summary for week, summary in enumerate(summaries, start=1)}

    async def _summarize_window(self, patient_id: str, start: datetime, end: datetime) -> DashboardSummary:
        events, dosages = await asyncio.gather(
            self.store.events_for(patient_id, start, end),
            self.store.dosages_between(patient_id, start, end),
        )
        events = [e for e in events if e.event_time < end]
        dosages = [d for d in dosages if d.administration_time < end]

        return DashboardSummary(
            patient_id=patient_id,
            total_events=len(events),
            total_dosages=len(dosages),
            events_by_category=count_by_category(events),
            events_by_severity=count_by_severity(events),
            # Within a weekly bucket every event counts as recent
            recent_events=len(events),
        )
