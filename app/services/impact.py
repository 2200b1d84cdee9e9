"""Medication impact over a period.

Builds on the correlation window join and adds a symptom-reduction figure,
an effectiveness score that penalises adverse reactions, and a weekly
before/after comparison of symptom frequency around the period start.
"""

import asyncio
import logging
import math
from datetime import datetime, timedelta

from app.config import CORRELATION_WINDOW_HOURS, IMPACT_TREND_MAX_WEEKS
from app.models.analytics import MedicationImpactAnalysis
from app.models.medical import MedicalEvent, MedicalEventCategory, MedicationDosage
from app.services.correlation import (
    UNKNOWN_MEDICATION,
    correlation_percentage,
    find_events_after_dosages,
    resolve_medication_name,
)
from app.services.store import MedicalStore
from app.services.validation import require_ids, require_range

logger = logging.getLogger(__name__)

WEEK = timedelta(weeks=1)
ADVERSE_PENALTY_WEIGHT = 0.5


def symptom_reduction(symptom_events: list[MedicalEvent], dosages: list[MedicationDosage]) -> float:
    """``(1 - s / doses) * 100`` floored at 0.

    ``s`` counts symptom events that occur strictly after at least one dose.
    """
    if not dosages:
        return 0.0
    first_dose = min(d.administration_time for d in dosages)
    after_medication = sum(1 for e in symptom_events if e.event_time > first_dose)
    return max(0.0, (1 - after_medication / len(dosages)) * 100.0)


def effectiveness_score(reduction: float, adverse_events: int, following_events: int) -> float:
    if following_events == 0:
        return 0.0
    penalty = adverse_events / following_events * ADVERSE_PENALTY_WEIGHT
    return max(0.0, min(1.0, reduction / 100.0 - penalty))


def trend_week_count(start: datetime, end: datetime, max_weeks: int) -> int:
    return min(max(1, math.ceil((end - start) / WEEK)), max_weeks)


def weekly_symptom_trends(
    symptom_events: list[MedicalEvent],
    start: datetime,
    end: datetime,
    max_weeks: int = IMPACT_TREND_MAX_WEEKS,
) -> dict[str, list[int]]:
    """Per-week symptom counts in equal buckets either side of ``start``.

    ``after_medication[i]`` covers ``[start + i weeks, start + (i+1) weeks)``
    clipped at ``end``, with ``end`` itself falling in the last bucket.
    ``before_medication`` mirrors it over the same number of weeks before
    ``start``, oldest week first.
    """
    weeks = trend_week_count(start, end, max_weeks)
    lookback_start = start - WEEK * weeks
    after_end = min(end, start + WEEK * weeks)

    before = [0] * weeks
    after = [0] * weeks
    for event in symptom_events:
        t = event.event_time
        if lookback_start <= t < start:
            before[(t - lookback_start) // WEEK] += 1
        elif start <= t < after_end or (t == end and after_end == end):
            after[min((t - start) // WEEK, weeks - 1)] += 1

    return {"before_medication": before, "after_medication": after}


class ImpactAnalyzer:
    def __init__(
        self,
        store: MedicalStore,
        window_hours: int = CORRELATION_WINDOW_HOURS,
        max_trend_weeks: int = IMPACT_TREND_MAX_WEEKS,
    ) -> None:
        self.store = store
        self.window = timedelta(hours=window_hours)
        self.max_trend_weeks = max_trend_weeks

    async def analyze_impact(
        self,
        patient_id: str,
        medication_id: str,
        start_date: datetime | None,
        end_date: datetime | None,
    ) -> MedicationImpactAnalysis:
        require_ids(patient_id, medication_id)
        start, end = require_range(start_date, end_date)

        dosages = await self.store.dosages_for(patient_id, medication_id, start, end)
        if not dosages:
            return MedicationImpactAnalysis(
                medication_id=medication_id,
                patient_id=patient_id,
                medication_name=UNKNOWN_MEDICATION,
                period_start=start,
                period_end=end,
            )

        weeks = trend_week_count(start, end, self.max_trend_weeks)
        following, symptoms_with_lookback, adverse, name = await asyncio.gather(
            find_events_after_dosages(self.store, patient_id, dosages, self.window),
            self.store.events_for(patient_id, start - WEEK * weeks, end, MedicalEventCategory.SYMPTOM),
            self.store.events_for(patient_id, start, end, MedicalEventCategory.ADVERSE_REACTION),
            resolve_medication_name(self.store, medication_id),
        )
        symptoms = [e for e in symptoms_with_lookback if e.event_time >= start]

        reduction = symptom_reduction(symptoms, dosages)
        result = MedicationImpactAnalysis(
            medication_id=medication_id,
            patient_id=patient_id,
            medication_name=name,
            period_start=start,
            period_end=end,
            total_dosages=len(dosages),
            total_events_after_dosage=len(following),
            event_rate_percentage=correlation_percentage(len(dosages), len(following)),
            symptom_events=len(symptoms),
            adverse_events=len(adverse),
            symptom_reduction_percentage=reduction,
            effectiveness_score=effectiveness_score(reduction, len(adverse), len(following)),
            weekly_trends=weekly_symptom_trends(symptoms_with_lookback, start, end, self.max_trend_weeks),
        )
        logger.info(
            "Impact for patient %s medication %s: %d doses, effectiveness %.2f",
            patient_id, medication_id, result.total_dosages, result.effectiveness_score,
        )
        return result
