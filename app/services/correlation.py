"""Medication/event correlation.

For one (patient, medication) pair, counts the distinct medical events that
fall inside the look-ahead window ``[dose, dose + window)`` of any dose and
turns that into a per-dose rate and a coarse strength score.
"""

import asyncio
import logging
from collections import Counter
from datetime import timedelta
from typing import Iterable

from app.config import CORRELATION_WINDOW_HOURS
from app.models.analytics import MedicationCorrelationAnalysis
from app.models.medical import (
    MedicalEvent,
    MedicalEventCategory,
    MedicalEventSeverity,
    MedicationDosage,
)
from app.services.store import MedicalStore
from app.services.validation import require_ids, require_patient_id

logger = logging.getLogger(__name__)

UNKNOWN_MEDICATION = "Unknown Medication"

# Lower bound of each tier is inclusive; anything under 20% is 0.2.
STRENGTH_TIERS = (
    (80.0, 0.9),
    (60.0, 0.8),
    (40.0, 0.6),
    (20.0, 0.4),
)
STRENGTH_FLOOR = 0.2


def correlation_percentage(dosage_count: int, event_count: int) -> float:
    """Distinct following events per dose, as a percentage. Not clamped."""
    if dosage_count == 0:
        return 0.0
    return event_count / dosage_count * 100.0


def correlation_strength(percentage: float) -> float:
    for threshold, strength in STRENGTH_TIERS:
        if percentage >= threshold:
            return strength
    return STRENGTH_FLOOR


def count_by_category(events: Iterable[MedicalEvent]) -> dict[MedicalEventCategory, int]:
    return dict(Counter(e.category for e in events))


def count_by_severity(events: Iterable[MedicalEvent]) -> dict[MedicalEventSeverity, int]:
    return dict(Counter(e.severity for e in events))


async def find_events_after_dosages(
    store: MedicalStore,
    patient_id: str,
    dosages: list[MedicationDosage],
    window: timedelta,
) -> list[MedicalEvent]:
    """Union of the events following each dose, deduplicated by event id.

    Each dose's window is looked up independently and concurrently. Order of
    the result follows first sighting: dose order, then store order.
    """

    async def _window(dosage: MedicationDosage) -> list[MedicalEvent]:
        window_end = dosage.administration_time + window
        found = await store.events_for(patient_id, dosage.administration_time, window_end)
        # Store ranges are closed; the look-ahead window is not.
        inside = [e for e in found if e.event_time < window_end]
        logger.debug("Dosage %s: %d events in window", dosage.id, len(inside))
        return inside

    per_dosage = await asyncio.gather(*(_window(d) for d in dosages))

    seen: set[str] = set()
    distinct: list[MedicalEvent] = []
    for events in per_dosage:
        for event in events:
            if event.id in seen:
                continue
            seen.add(event.id)
            distinct.append(event)
    return distinct


async def resolve_medication_name(store: MedicalStore, medication_id: str) -> str:
    name = await store.medication_name(medication_id)
    if name:
        return name
    return f"Medication {medication_id[:8]}"


class CorrelationEngine:
    def __init__(self, store: MedicalStore, window_hours: int = CORRELATION_WINDOW_HOURS) -> None:
        self.store = store
        self.window = timedelta(hours=window_hours)

    async def analyze_correlation(self, patient_id: str, medication_id: str) -> MedicationCorrelationAnalysis:
        require_ids(patient_id, medication_id)

        dosages = await self.store.dosages_for(patient_id, medication_id)
        if not dosages:
            return MedicationCorrelationAnalysis(
                medication_id=medication_id,
                patient_id=patient_id,
                medication_name=UNKNOWN_MEDICATION,
            )

        following = await find_events_after_dosages(self.store, patient_id, dosages, self.window)
        percentage = correlation_percentage(len(dosages), len(following))

        result = MedicationCorrelationAnalysis(
            medication_id=medication_id,
            patient_id=patient_id,
            medication_name=await resolve_medication_name(self.store, medication_id),
            total_dosages=len(dosages),
            total_events_after_dosage=len(following),
            correlation_percentage=percentage,
            correlation_strength=correlation_strength(percentage),
            events_by_category=count_by_category(following),
            events_by_severity=count_by_severity(following),
        )
        logger.info(
            "Correlation for patient %s medication %s: %d doses, %d following events (%.1f%%)",
            patient_id, medication_id, result.total_dosages,
            result.total_events_after_dosage, result.correlation_percentage,
        )
        return result

    async def analyze_all_medications(self, patient_id: str) -> list[MedicationCorrelationAnalysis]:
        """Correlation for every medication the patient has been dosed with, in store order."""
        require_patient_id(patient_id)
        medication_ids = await self.store.distinct_medication_ids(patient_id)
        return [await self.analyze_correlation(patient_id, mid) for mid in medication_ids]
