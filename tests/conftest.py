import itertools
import os
from datetime import UTC, datetime

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# In-memory DB and no demo seeding for tests
os.environ["DATABASE_PATH"] = ":memory:"
os.environ["DATABASE_URL"] = ""
os.environ["SEED_DEMO_DATA"] = "false"

from app.database import close_db, init_db
from app.main import app
from app.models.medical import (
    DosageSchedule,
    MedicalEvent,
    MedicalEventCategory,
    MedicalEventSeverity,
    MedicationDosage,
)
from app.services.store import MedicalStore

# Fixed reference time for analytics tests
NOW = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


class InMemoryStore(MedicalStore):
    """Fake store answering the query contract from plain lists.

    Ranges are closed ``[start, end]`` like the SQL store. Every query is
    recorded in ``calls`` so tests can assert on store access.
    """

    def __init__(self) -> None:
        self.events: list[MedicalEvent] = []
        self.dosages: list[MedicationDosage] = []
        self.medications: dict[str, str] = {}
        self.calls: list[str] = []

    @staticmethod
    def _in_range(t, start, end) -> bool:
        return (start is None or t >= start) and (end is None or t <= end)

    async def dosages_for(self, patient_id, medication_id, start=None, end=None):
        self.calls.append("dosages_for")
        return [
            d for d in self.dosages
            if d.patient_id == patient_id and d.medication_id == medication_id
            and self._in_range(d.administration_time, start, end)
        ]

    async def dosages_between(self, patient_id, start, end):
        self.calls.append("dosages_between")
        return [
            d for d in self.dosages
            if d.patient_id == patient_id and self._in_range(d.administration_time, start, end)
        ]

    async def count_dosages(self, patient_id):
        self.calls.append("count_dosages")
        return sum(1 for d in self.dosages if d.patient_id == patient_id)

    async def events_for(self, patient_id, start=None, end=None, category=None, medication_id=None):
        self.calls.append("events_for")
        return [
            e for e in self.events
            if e.patient_id == patient_id and self._in_range(e.event_time, start, end)
            and (category is None or e.category == category)
            and (medication_id is None or e.medication_id == medication_id)
        ]

    async def distinct_medication_ids(self, patient_id):
        self.calls.append("distinct_medication_ids")
        seen: list[str] = []
        for d in self.dosages:
            if d.patient_id == patient_id and d.medication_id not in seen:
                seen.append(d.medication_id)
        return seen

    async def medication_name(self, medication_id):
        self.calls.append("medication_name")
        return self.medications.get(medication_id)


_ids = itertools.count(1)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def add_event(store):
    """Add a medical event to the fake store and return it."""

    def _add(
        at: datetime,
        category: MedicalEventCategory = MedicalEventCategory.SYMPTOM,
        severity: MedicalEventSeverity = MedicalEventSeverity.MILD,
        patient_id: str = "patient-1",
        title: str = "Headache",
        description: str | None = None,
        event_id: str | None = None,
        medication_id: str | None = None,
        weight_kg: float | None = None,
        height_cm: float | None = None,
    ) -> MedicalEvent:
        event = MedicalEvent(
            id=event_id or f"event-{next(_ids)}",
            patient_id=patient_id,
            medication_id=medication_id,
            event_time=at,
            title=title,
            description=description,
            category=category,
            severity=severity,
            weight_kg=weight_kg,
            height_cm=height_cm,
        )
        store.events.append(event)
        return event

    return _add


@pytest.fixture
def add_dosage(store):
    """Add a medication dosage to the fake store and return it."""

    def _add(
        at: datetime,
        medication_id: str = "med-1",
        patient_id: str = "patient-1",
        amount: float = 250.0,
        unit: str = "mg",
    ) -> MedicationDosage:
        dosage = MedicationDosage(
            id=f"dosage-{next(_ids)}",
            patient_id=patient_id,
            medication_id=medication_id,
            administration_time=at,
            dosage_amount=amount,
            dosage_unit=unit,
            schedule=DosageSchedule.AM,
            administered=True,
        )
        store.dosages.append(dosage)
        return dosage

    return _add


@pytest_asyncio.fixture
async def db():
    """Provide a fresh in-memory database for each test."""
    import app.database as db_mod

    # Close any existing connection
    if db_mod._db is not None:
        try:
            await db_mod._db.close()
        except Exception:
            pass
    db_mod._db = None

    # Override module-level config directly (avoids fragile importlib.reload)
    db_mod.DATABASE_PATH = ":memory:"
    db_mod.DATABASE_URL = ""
    db_mod.SEED_DEMO_DATA = False

    await init_db()
    database = await db_mod.get_db()
    yield database
    await close_db()


@pytest_asyncio.fixture
async def async_client(db):
    """Provide an async httpx client for async HTTP tests."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
