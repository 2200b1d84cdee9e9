import logging
import uuid

from fastapi import APIRouter, HTTPException

from app.database import get_db
from app.models.medical import DosageAdministeredUpdate, MedicationDosage, MedicationDosageCreate
from app.routers.patients import require_patient
from app.services.store import DOSAGE_COLUMNS, dosage_from_row
from app.timeutil import to_db_time, utc_now

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/patients/{patient_id}/dosages", tags=["dosages"])


async def _fetch_dosage(db, patient_id: str, dosage_id: str):
    row = await db.fetch_one(
        f"SELECT {DOSAGE_COLUMNS} FROM medication_dosages WHERE id = ? AND patient_id = ?",
        (dosage_id, patient_id),
    )
    if not row:
        raise HTTPException(status_code=404, detail="Medication dosage not found")
    return row


@router.post("", response_model=MedicationDosage)
async def record_dosage(patient_id: str, body: MedicationDosageCreate):
    """Record a dose of a medication given (or scheduled) for a patient."""
    db = await get_db()
    await require_patient(db, patient_id)
    medication = await db.fetch_one("SELECT id FROM medications WHERE id = ?", (body.medication_id,))
    if not medication:
        raise HTTPException(status_code=404, detail="Medication not found")

    dosage = MedicationDosage(id=str(uuid.uuid4()), patient_id=patient_id, **body.model_dump())
    await db.execute(
        f"INSERT INTO medication_dosages ({DOSAGE_COLUMNS}, created_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            dosage.id,
            dosage.patient_id,
            dosage.medication_id,
            to_db_time(dosage.administration_time),
            dosage.dosage_amount,
            dosage.dosage_unit,
            dosage.schedule.value,
            int(dosage.administered),
            dosage.notes,
            to_db_time(utc_now()),
        ),
    )
    await db.commit()
    logger.info("Recorded dosage %s of %s for patient %s", dosage.id, dosage.medication_id, patient_id)
    return dosage


@router.get("", response_model=list[MedicationDosage])
async def list_dosages(patient_id: str, medication_id: str | None = None):
    """List a patient's dosages in administration order."""
    db = await get_db()
    await require_patient(db, patient_id)

    query = f"SELECT {DOSAGE_COLUMNS} FROM medication_dosages WHERE patient_id = ?"
    params: list = [patient_id]
    if medication_id:
        query += " AND medication_id = ?"
        params.append(medication_id)
    rows = await db.fetch_all(query + " ORDER BY administration_time ASC", params)
    return [dosage_from_row(row) for row in rows]


@router.get("/{dosage_id}", response_model=MedicationDosage)
async def get_dosage(patient_id: str, dosage_id: str):
    db = await get_db()
    return dosage_from_row(await _fetch_dosage(db, patient_id, dosage_id))


@router.patch("/{dosage_id}", response_model=MedicationDosage)
async def update_administered(patient_id: str, dosage_id: str, body: DosageAdministeredUpdate):
    """Mark a scheduled dose as administered (or not)."""
    db = await get_db()
    await _fetch_dosage(db, patient_id, dosage_id)

    await db.execute(
        "UPDATE medication_dosages SET administered = ? WHERE id = ?",
        (int(body.administered), dosage_id),
    )
    await db.commit()
    return dosage_from_row(await _fetch_dosage(db, patient_id, dosage_id))


@router.delete("/{dosage_id}")
async def delete_dosage(patient_id: str, dosage_id: str):
    db = await get_db()
    await _fetch_dosage(db, patient_id, dosage_id)
    await db.execute("DELETE FROM medication_dosages WHERE id = ?", (dosage_id,))
    await db.commit()
    return {"id": dosage_id, "deleted": True}
