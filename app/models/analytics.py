"""Result models produced by the analytics engines.

Every result is built fresh per request and frozen; ``generated_at`` is
stamped when the model is constructed.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from app.models.medical import MedicalEventCategory, MedicalEventSeverity
from app.timeutil import utc_now


class _Result(BaseModel):
    model_config = ConfigDict(frozen=True)


class MedicationCorrelationAnalysis(_Result):
    """How often a medication's doses are followed by a medical event.

    ``correlation_percentage`` is a rate of distinct following events per
    dose and may exceed 100. The histograms are built over the distinct
    following events.
    """
    medication_id: str
    patient_id: str
    medication_name: str
    total_dosages: int = 0
    total_events_after_dosage: int = 0
    correlation_percentage: float = Field(0.0, ge=0.0)
    correlation_strength: float = Field(0.0, ge=0.0, le=1.0)
    events_by_category: dict[MedicalEventCategory, int] = {}
    events_by_severity: dict[MedicalEventSeverity, int] = {}
    generated_at: datetime = Field(default_factory=utc_now)


class DashboardSummary(_Result):
    patient_id: str
    total_events: int = 0
    total_dosages: int = 0
    events_by_category: dict[MedicalEventCategory, int] = {}
    events_by_severity: dict[MedicalEventSeverity, int] = {}
    recent_events: int = 0
    generated_at: datetime = Field(default_factory=utc_now)


class TimelinePointKind(str, Enum):
    EVENT = "EVENT"
    DOSAGE = "DOSAGE"


class TimelineDataPoint(_Result):
    timestamp: datetime
    kind: TimelinePointKind
    description: str
    value: float | None = None
    unit: str | None = None
    severity: MedicalEventSeverity = MedicalEventSeverity.MILD
    bmi: float | None = None
    source_id: str


class TimelineStatistics(_Result):
    total_data_points: int = 0
    medical_events: int = 0
    medication_dosages: int = 0
    # Whole days between the earliest and latest point; None when empty
    time_span_days: int | None = None


class TimelineAnalysis(_Result):
    patient_id: str
    start_date: datetime
    end_date: datetime
    medication_id: str | None = None
    data_points: list[TimelineDataPoint] = []
    statistics: TimelineStatistics = TimelineStatistics()
    generated_at: datetime = Field(default_factory=utc_now)


class MedicationImpactAnalysis(_Result):
    medication_id: str
    patient_id: str
    medication_name: str
    period_start: datetime
    period_end: datetime
    total_dosages: int = 0
    total_events_after_dosage: int = 0
    event_rate_percentage: float = Field(0.0, ge=0.0)
    symptom_events: int = 0
    adverse_events: int = 0
    symptom_reduction_percentage: float = Field(0.0, ge=0.0)
    effectiveness_score: float = Field(0.0, ge=0.0, le=1.0)
    weekly_trends: dict[str, list[int]] = {}
    generated_at: datetime = Field(default_factory=utc_now)


class AnalyticsOverview(_Result):
    dashboard_summary: DashboardSummary
    medication_correlations: list[MedicationCorrelationAnalysis] = []
    generated_at: datetime = Field(default_factory=utc_now)
