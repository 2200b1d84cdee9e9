from datetime import datetime

from app.exceptions import InvalidArgument, InvalidRange
from app.timeutil import as_utc


def require_patient_id(patient_id: str | None) -> None:
    if not patient_id:
        raise InvalidArgument("Patient ID cannot be empty")


def require_ids(patient_id: str | None, medication_id: str | None) -> None:
    require_patient_id(patient_id)
    if not medication_id:
        raise InvalidArgument("Medication ID cannot be empty")


def require_range(start: datetime | None, end: datetime | None) -> tuple[datetime, datetime]:
    """Check a date range and return both bounds as aware UTC datetimes."""
    if start is None or end is None:
        raise InvalidRange("Start date and end date cannot be empty")
    start, end = as_utc(start), as_utc(end)
    if start > end:
        raise InvalidRange("Start date cannot be after end date")
    return start, end
