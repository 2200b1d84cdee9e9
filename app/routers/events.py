import logging
import uuid
from datetime import datetime

from fastapi import APIRouter, HTTPException

from app.database import get_db
from app.exceptions import StoreUnavailable
from app.models.medical import MedicalEvent, MedicalEventCategory, MedicalEventCreate
from app.routers.patients import require_patient
from app.services.store import EVENT_COLUMNS, SQLMedicalStore, event_from_row
from app.timeutil import as_utc, to_db_time, utc_now

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/patients/{patient_id}/events", tags=["events"])


@router.post("", response_model=MedicalEvent)
async def record_event(patient_id: str, body: MedicalEventCreate):
    """Record a medical event (symptom, reaction, appointment, ...) for a patient."""
    db = await get_db()
    await require_patient(db, patient_id)

    event = MedicalEvent(id=str(uuid.uuid4()), patient_id=patient_id, **body.model_dump())
    await db.execute(
        f"INSERT INTO medical_events ({EVENT_COLUMNS}, created_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            event.id,
            event.patient_id,
            event.medication_id,
            to_db_time(event.event_time),
            event.title,
            event.description,
            event.category.value,
            event.severity.value,
            event.duration_minutes,
            event.weight_kg,
            event.height_cm,
            event.dosage_given,
            to_db_time(utc_now()),
        ),
    )
    await db.commit()
    logger.info("Recorded %s event %s for patient %s", event.category.value, event.id, patient_id)
    return event


@router.get("", response_model=list[MedicalEvent])
async def list_events(
    patient_id: str,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    category: MedicalEventCategory | None = None,
):
    """List a patient's events in time order, optionally filtered."""
    db = await get_db()
    await require_patient(db, patient_id)
    if start_date and end_date and as_utc(start_date) > as_utc(end_date):
        raise HTTPException(status_code=400, detail="Start date cannot be after end date")
    try:
        return await SQLMedicalStore(db).events_for(patient_id, start_date, end_date, category)
    except StoreUnavailable:
        logger.error("Listing events for patient %s failed: store unavailable", patient_id)
        raise HTTPException(status_code=503, detail="Data store unavailable") from None


@router.get("/{event_id}", response_model=MedicalEvent)
async def get_event(patient_id: str, event_id: str):
    db = await get_db()
    row = await db.fetch_one(
        f"SELECT {EVENT_COLUMNS} FROM medical_events WHERE id = ? AND patient_id = ?",
        (event_id, patient_id),
    )
    if not row:
        raise HTTPException(status_code=404, detail="Medical event not found")
    return event_from_row(row)


@router.delete("/{event_id}")
async def delete_event(patient_id: str, event_id: str):
    db = await get_db()
    row = await db.fetch_one(
        "SELECT id FROM medical_events WHERE id = ? AND patient_id = ?", (event_id, patient_id)
    )
    if not row:
        raise HTTPException(status_code=404, detail="Medical event not found")
    await db.execute("DELETE FROM medical_events WHERE id = ?", (event_id,))
    await db.commit()
    return {"id": event_id, "deleted": True}
