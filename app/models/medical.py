"""Pydantic models for the two event streams the analytics read.

Medical events and medication dosages are recorded through the CRUD routers
and handed to the analytics engines as read-only snapshots.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.timeutil import as_utc


class MedicalEventCategory(str, Enum):
    SYMPTOM = "SYMPTOM"
    MEDICATION = "MEDICATION"
    APPOINTMENT = "APPOINTMENT"
    TEST = "TEST"
    EMERGENCY = "EMERGENCY"
    OBSERVATION = "OBSERVATION"
    ADVERSE_REACTION = "ADVERSE_REACTION"
    SIDE_EFFECT = "SIDE_EFFECT"


class MedicalEventSeverity(str, Enum):
    """Ordered MILD < MODERATE < SEVERE < CRITICAL."""

    MILD = "MILD"
    MODERATE = "MODERATE"
    SEVERE = "SEVERE"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, MedicalEventSeverity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, MedicalEventSeverity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, MedicalEventSeverity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, MedicalEventSeverity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_ORDER = list(MedicalEventSeverity)


class DosageSchedule(str, Enum):
    AM = "AM"
    PM = "PM"
    MIDDAY = "MIDDAY"
    BEDTIME = "BEDTIME"
    AS_NEEDED = "AS_NEEDED"
    EVERY_4_HOURS = "EVERY_4_HOURS"
    EVERY_6_HOURS = "EVERY_6_HOURS"
    EVERY_8_HOURS = "EVERY_8_HOURS"
    EVERY_12_HOURS = "EVERY_12_HOURS"
    CUSTOM = "CUSTOM"


class MedicalEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    patient_id: str
    medication_id: str | None = None
    event_time: datetime
    title: str
    description: str | None = None
    category: MedicalEventCategory
    severity: MedicalEventSeverity
    duration_minutes: int | None = None
    weight_kg: float | None = None
    height_cm: float | None = None
    dosage_given: float | None = None

    @field_validator("event_time")
    @classmethod
    def _normalize_time(cls, value: datetime) -> datetime:
        return as_utc(value)


class MedicalEventCreate(BaseModel):
    event_time: datetime
    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    category: MedicalEventCategory
    severity: MedicalEventSeverity
    medication_id: str | None = None
    duration_minutes: int | None = Field(None, ge=0)
    weight_kg: float | None = Field(None, gt=0)
    height_cm: float | None = Field(None, gt=0)
    dosage_given: float | None = Field(None, ge=0)


class MedicationDosage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    patient_id: str
    medication_id: str
    administration_time: datetime
    dosage_amount: float
    dosage_unit: str
    schedule: DosageSchedule
    administered: bool = False
    notes: str | None = None

    @field_validator("administration_time")
    @classmethod
    def _normalize_time(cls, value: datetime) -> datetime:
        return as_utc(value)


class MedicationDosageCreate(BaseModel):
    medication_id: str
    administration_time: datetime
    dosage_amount: float = Field(gt=0)
    dosage_unit: str = Field(min_length=1, max_length=20)
    schedule: DosageSchedule
    administered: bool = False
    notes: str | None = Field(None, max_length=500)


class DosageAdministeredUpdate(BaseModel):
    administered: bool
