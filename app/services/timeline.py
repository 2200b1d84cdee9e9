"""Merge medical events and dosages into one set of timeline points."""

import asyncio
import logging
from datetime import datetime

from app.models.analytics import (
    TimelineAnalysis,
    TimelineDataPoint,
    TimelinePointKind,
    TimelineStatistics,
)
from app.models.medical import MedicalEvent, MedicalEventSeverity, MedicationDosage
from app.services.store import MedicalStore
from app.services.validation import require_ids, require_patient_id, require_range

logger = logging.getLogger(__name__)

DOSAGE_DESCRIPTION = "Medication dose administered"

# Heights outside this range (cm) are treated as bad measurements
MIN_HEIGHT_CM = 30.0
MAX_HEIGHT_CM = 300.0


def calculate_bmi(weight_kg: float | None, height_cm: float | None) -> float | None:
    """Body mass index rounded to one decimal, or None without a usable measurement."""
    if weight_kg is None or height_cm is None:
        return None
    if weight_kg <= 0:
        return None
    if not MIN_HEIGHT_CM <= height_cm <= MAX_HEIGHT_CM:
        return None
    height_m = height_cm / 100.0
    return round(weight_kg / (height_m * height_m), 1)


def event_point(event: MedicalEvent) -> TimelineDataPoint:
    description = event.title
    if event.description:
        description = f"{event.title}: {event.description}"
    return TimelineDataPoint(
        timestamp=event.event_time,
        kind=TimelinePointKind.EVENT,
        description=description,
        severity=event.severity,
        bmi=calculate_bmi(event.weight_kg, event.height_cm),
        source_id=event.id,
    )


def dosage_point(dosage: MedicationDosage) -> TimelineDataPoint:
    # Dosages carry no severity or body measurements of their own
    return TimelineDataPoint(
        timestamp=dosage.administration_time,
        kind=TimelinePointKind.DOSAGE,
        description=DOSAGE_DESCRIPTION,
        value=dosage.dosage_amount,
        unit=dosage.dosage_unit,
        severity=MedicalEventSeverity.MILD,
        source_id=dosage.id,
    )


def timeline_statistics(points: list[TimelineDataPoint]) -> TimelineStatistics:
    events = sum(1 for p in points if p.kind == TimelinePointKind.EVENT)
    span = None
    if points:
        timestamps = [p.timestamp for p in points]
        span = (max(timestamps) - min(timestamps)).days
    return TimelineStatistics(
        total_data_points=len(points),
        medical_events=events,
        medication_dosages=len(points) - events,
        time_span_days=span,
    )


class TimelineBuilder:
    def __init__(self, store: MedicalStore) -> None:
        self.store = store

    async def build_timeline(
        self,
        patient_id: str,
        start_date: datetime | None,
        end_date: datetime | None,
    ) -> TimelineAnalysis:
        """Every event and dosage with a timestamp in ``[start_date, end_date]``.

        Points are not sorted: events come first, then dosages, each in
        store order. Consumers that display a timeline sort by ``timestamp``.
        """
        require_patient_id(patient_id)
        start, end = require_range(start_date, end_date)

        events, dosages = await asyncio.gather(
            self.store.events_for(patient_id, start, end),
            self.store.dosages_between(patient_id, start, end),
        )
        logger.info(
            "Timeline for patient %s: %d events, %d dosages", patient_id, len(events), len(dosages)
        )
        return self._analysis(patient_id, start, end, events, dosages)

    async def build_medication_timeline(
        self,
        patient_id: str,
        medication_id: str,
        start_date: datetime | None,
        end_date: datetime | None,
    ) -> TimelineAnalysis:
        """Like ``build_timeline`` but only events and dosages tied to one medication."""
        require_ids(patient_id, medication_id)
        start, end = require_range(start_date, end_date)

        events, dosages = await asyncio.gather(
            self.store.events_for(patient_id, start, end, medication_id=medication_id),
            self.store.dosages_for(patient_id, medication_id, start, end),
        )
        logger.info(
            "Timeline for patient %s medication %s: %d events, %d dosages",
            patient_id, medication_id, len(events), len(dosages),
        )
        return self._analysis(patient_id, start, end, events, dosages, medication_id)

    @staticmethod
    def _analysis(
        patient_id: str,
        start: datetime,
        end: datetime,
        events: list[MedicalEvent],
        dosages: list[MedicationDosage],
        medication_id: str | None = None,
    ) -> TimelineAnalysis:
        points = [event_point(e) for e in events] + [dosage_point(d) for d in dosages]
        return TimelineAnalysis(
            patient_id=patient_id,
            start_date=start,
            end_date=end,
            medication_id=medication_id,
            data_points=points,
            statistics=timeline_statistics(points),
        )
