import logging
import uuid

from fastapi import APIRouter, HTTPException

from app.database import get_db
from app.models.medication import MedicationCreate, MedicationResponse
from app.timeutil import to_db_time, utc_now

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/medications", tags=["medications"])

_COLUMNS = "id, name, generic_name, strength, unit, manufacturer, description, active, created_at"


def _medication_from_row(row) -> MedicationResponse:
    return MedicationResponse(
        id=row["id"],
        name=row["name"],
        generic_name=row["generic_name"],
        strength=row["strength"],
        unit=row["unit"],
        manufacturer=row["manufacturer"],
        description=row["description"],
        active=bool(row["active"]),
        created_at=row["created_at"],
    )


@router.post("", response_model=MedicationResponse)
async def create_medication(body: MedicationCreate):
    db = await get_db()
    medication_id = str(uuid.uuid4())
    now = to_db_time(utc_now())

    await db.execute(
        f"INSERT INTO medications ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            medication_id,
            body.name,
            body.generic_name,
            body.strength,
            body.unit,
            body.manufacturer,
            body.description,
            int(body.active),
            now,
        ),
    )
    await db.commit()
    logger.info("Created medication %s (%s)", medication_id, body.name)

    return MedicationResponse(id=medication_id, created_at=now, **body.model_dump())


@router.get("", response_model=list[MedicationResponse])
async def list_medications(active_only: bool = False):
    """List medications by name; ``active_only`` hides discontinued ones."""
    db = await get_db()
    query = f"SELECT {_COLUMNS} FROM medications"
    if active_only:
        query += " WHERE active = 1"
    rows = await db.fetch_all(query + " ORDER BY name ASC")
    return [_medication_from_row(row) for row in rows]


@router.get("/{medication_id}", response_model=MedicationResponse)
async def get_medication(medication_id: str):
    db = await get_db()
    row = await db.fetch_one(f"SELECT {_COLUMNS} FROM medications WHERE id = ?", (medication_id,))
    if not row:
        raise HTTPException(status_code=404, detail="Medication not found")
    return _medication_from_row(row)
