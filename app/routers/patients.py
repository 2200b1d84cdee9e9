import logging
import uuid

from fastapi import APIRouter, HTTPException

from app.database import DatabaseAdapter, get_db
from app.models.patient import PatientCreate, PatientResponse
from app.timeutil import to_db_time, utc_now

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/patients", tags=["patients"])


async def require_patient(db: DatabaseAdapter, patient_id: str) -> None:
    row = await db.fetch_one("SELECT id FROM patients WHERE id = ?", (patient_id,))
    if not row:
        raise HTTPException(status_code=404, detail="Patient not found")


def _patient_from_row(row) -> PatientResponse:
    return PatientResponse(
        id=row["id"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        date_of_birth=row["date_of_birth"],
        notes=row["notes"],
        created_at=row["created_at"],
    )


@router.post("", response_model=PatientResponse)
async def create_patient(body: PatientCreate):
    """Register a new patient."""
    db = await get_db()
    patient_id = str(uuid.uuid4())
    now = to_db_time(utc_now())

    await db.execute(
        "INSERT INTO patients (id, first_name, last_name, date_of_birth, notes, created_at) "
        "VALUES (?, ?, ?, ?, ?, ?)",
        (patient_id, body.first_name, body.last_name, body.date_of_birth.isoformat(), body.notes, now),
    )
    await db.commit()
    logger.info("Created patient %s", patient_id)

    return PatientResponse(
        id=patient_id,
        first_name=body.first_name,
        last_name=body.last_name,
        date_of_birth=body.date_of_birth,
        notes=body.notes,
        created_at=now,
    )


@router.get("", response_model=list[PatientResponse])
async def list_patients():
    """List all patients, most recently registered first."""
    db = await get_db()
    rows = await db.fetch_all(
        "SELECT id, first_name, last_name, date_of_birth, notes, created_at "
        "FROM patients ORDER BY created_at DESC"
    )
    return [_patient_from_row(row) for row in rows]


@router.get("/{patient_id}", response_model=PatientResponse)
async def get_patient(patient_id: str):
    db = await get_db()
    row = await db.fetch_one(
        "SELECT id, first_name, last_name, date_of_birth, notes, created_at FROM patients WHERE id = ?",
        (patient_id,),
    )
    if not row:
        raise HTTPException(status_code=404, detail="Patient not found")
    return _patient_from_row(row)


@router.delete("/{patient_id}")
async def delete_patient(patient_id: str):
    """Delete a patient together with their events and dosages."""
    db = await get_db()
    await require_patient(db, patient_id)

    await db.execute("DELETE FROM medical_events WHERE patient_id = ?", (patient_id,))
    await db.execute("DELETE FROM medication_dosages WHERE patient_id = ?", (patient_id,))
    await db.execute("DELETE FROM patients WHERE id = ?", (patient_id,))
    await db.commit()
    logger.info("Deleted patient %s", patient_id)
    return {"id": patient_id, "deleted": True}
