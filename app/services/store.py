"""Read-side query contract the analytics engines consume.

``MedicalStore`` is the interface; ``SQLMedicalStore`` answers it from the
application database. Range arguments are closed intervals ``[start, end]``
and either bound may be left out. Any failure underneath is re-raised as
``StoreUnavailable`` with the original exception chained.
"""

import logging
from datetime import datetime
from typing import Sequence

from app.database import DatabaseAdapter, get_db
from app.exceptions import StoreUnavailable
from app.models.medical import MedicalEvent, MedicalEventCategory, MedicationDosage
from app.timeutil import to_db_time

logger = logging.getLogger(__name__)

EVENT_COLUMNS = (
    "id, patient_id, medication_id, event_time, title, description, category, severity, "
    "duration_minutes, weight_kg, height_cm, dosage_given"
)
DOSAGE_COLUMNS = (
    "id, patient_id, medication_id, administration_time, dosage_amount, dosage_unit, "
    "schedule, administered, notes"
)


class MedicalStore:
    async def dosages_for(
        self,
        patient_id: str,
        medication_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[MedicationDosage]:  # pragma: no cover - interface
        raise NotImplementedError

    async def dosages_between(
        self, patient_id: str, start: datetime, end: datetime
    ) -> list[MedicationDosage]:  # pragma: no cover - interface
        raise NotImplementedError

    async def count_dosages(self, patient_id: str) -> int:  # pragma: no cover - interface
        raise NotImplementedError

    async def events_for(
        self,
        patient_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        category: MedicalEventCategory | None = None,
        medication_id: str | None = None,
    ) -> list[MedicalEvent]:  # pragma: no cover - interface
        raise NotImplementedError

    async def distinct_medication_ids(self, patient_id: str) -> list[str]:  # pragma: no cover - interface
        raise NotImplementedError

    async def medication_name(self, medication_id: str) -> str | None:  # pragma: no cover - interface
        raise NotImplementedError


def event_from_row(row) -> MedicalEvent:
    return MedicalEvent(**dict(row))


def dosage_from_row(row) -> MedicationDosage:
    return MedicationDosage(**dict(row))


def _range_clauses(column: str, start: datetime | None, end: datetime | None) -> tuple[list[str], list]:
    clauses: list[str] = []
    params: list = []
    if start is not None:
        clauses.append(f"{column} >= ?")
        params.append(to_db_time(start))
    if end is not None:
        clauses.append(f"{column} <= ?")
        params.append(to_db_time(end))
    return clauses, params


class SQLMedicalStore(MedicalStore):
    def __init__(self, db: DatabaseAdapter) -> None:
        self._db = db

    async def _fetch_all(self, query: str, params: Sequence) -> list:
        try:
            return list(await self._db.fetch_all(query, params))
        except Exception as exc:
            logger.error("Store query failed: %s", exc)
            raise StoreUnavailable(str(exc)) from exc

    async def _fetch_one(self, query: str, params: Sequence):
        try:
            return await self._db.fetch_one(query, params)
        except Exception as exc:
            logger.error("Store query failed: %s", exc)
            raise StoreUnavailable(str(exc)) from exc

    async def dosages_for(self, patient_id, medication_id, start=None, end=None):
        clauses, params = _range_clauses("administration_time", start, end)
        where = " AND ".join(["patient_id = ?", "medication_id = ?", *clauses])
        rows = await self._fetch_all(
            f"SELECT {DOSAGE_COLUMNS} FROM medication_dosages WHERE {where} "
            "ORDER BY administration_time ASC",
            (patient_id, medication_id, *params),
        )
        return [dosage_from_row(r) for r in rows]

    async def dosages_between(self, patient_id, start, end):
        clauses, params = _range_clauses("administration_time", start, end)
        where = " AND ".join(["patient_id = ?", *clauses])
        rows = await self._fetch_all(
            f"SELECT {DOSAGE_COLUMNS} FROM medication_dosages WHERE {where} "
            "ORDER BY administration_time ASC",
            (patient_id, *params),
        )
        return [dosage_from_row(r) for r in rows]

    async def count_dosages(self, patient_id):
        row = await self._fetch_one(
            "SELECT COUNT(*) AS count FROM medication_dosages WHERE patient_id = ?",
            (patient_id,),
        )
        return int(row["count"]) if row else 0

    async def events_for(self, patient_id, start=None, end=None, category=None, medication_id=None):
        clauses, params = _range_clauses("event_time", start, end)
        if category is not None:
            clauses.append("category = ?")
            params.append(MedicalEventCategory(category).value)
        if medication_id is not None:
            clauses.append("medication_id = ?")
            params.append(medication_id)
        where = " AND ".join(["patient_id = ?", *clauses])
        rows = await self._fetch_all(
            f"SELECT {EVENT_COLUMNS} FROM medical_events WHERE {where} ORDER BY event_time ASC",
            (patient_id, *params),
        )
        return [event_from_row(r) for r in rows]

    async def distinct_medication_ids(self, patient_id):
        # First-dosed medication first so fan-out order is stable
        rows = await self._fetch_all(
            "SELECT medication_id, MIN(administration_time) AS first_dose "
            "FROM medication_dosages WHERE patient_id = ? "
            "GROUP BY medication_id ORDER BY first_dose ASC, medication_id ASC",
            (patient_id,),
        )
        return [r["medication_id"] for r in rows]

    async def medication_name(self, medication_id):
        row = await self._fetch_one("SELECT name FROM medications WHERE id = ?", (medication_id,))
        return row["name"] if row else None


async def get_store() -> MedicalStore:
    """FastAPI dependency: a store bound to the shared database connection."""
    return SQLMedicalStore(await get_db())
