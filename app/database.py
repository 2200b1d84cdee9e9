from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable, Sequence
from urllib.parse import urlparse

import aiosqlite

from app.config import DATABASE_MAX_CONNECTIONS, DATABASE_PATH, DATABASE_URL, SEED_DEMO_DATA
from app.timeutil import to_db_time, utc_now

try:  # Optional: only required when DATABASE_URL is set (Cloud SQL / Postgres)
    import asyncpg  # type: ignore
except Exception:  # pragma: no cover - optional dependency
    asyncpg = None

logger = logging.getLogger(__name__)


class DatabaseAdapter:
    engine: str

    async def execute(self, query: str, params: Sequence | None = None) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def executemany(self, query: str, seq_params: Iterable[Sequence]) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def fetch_one(self, query: str, params: Sequence | None = None):  # pragma: no cover - interface
        raise NotImplementedError

    async def fetch_all(self, query: str, params: Sequence | None = None):  # pragma: no cover - interface
        raise NotImplementedError

    async def commit(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def close(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def executescript(self, script: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError


@dataclass
class SQLiteAdapter(DatabaseAdapter):
    conn: aiosqlite.Connection
    engine: str = "sqlite"

    async def execute(self, query: str, params: Sequence | None = None) -> None:
        await self.conn.execute(query, params or ())

    async def executemany(self, query: str, seq_params: Iterable[Sequence]) -> None:
        await self.conn.executemany(query, seq_params)

    async def fetch_one(self, query: str, params: Sequence | None = None):
        cursor = await self.conn.execute(query, params or ())
        return await cursor.fetchone()

    async def fetch_all(self, query: str, params: Sequence | None = None):
        cursor = await self.conn.execute(query, params or ())
        return await cursor.fetchall()

    async def commit(self) -> None:
        await self.conn.commit()

    async def close(self) -> None:
        await self.conn.close()

    async def executescript(self, script: str) -> None:
        await self.conn.executescript(script)


@dataclass
class PostgresAdapter(DatabaseAdapter):
    pool: "asyncpg.Pool"  # type: ignore[name-defined]
    engine: str = "postgres"

    @staticmethod
    def _translate_query(query: str) -> str:
        # Convert SQLite-style ? placeholders to asyncpg-style $1, $2, ...
        if "$1" in query:
            return query
        idx = 1
        out = []
        for ch in query:
            if ch == "?":
                out.append(f"${idx}")
                idx += 1
            else:
                out.append(ch)
        return "".join(out)

    async def execute(self, query: str, params: Sequence | None = None) -> None:
        q = self._translate_query(query)
        async with self.pool.acquire() as conn:
            await conn.execute(q, *(params or ()))

    async def executemany(self, query: str, seq_params: Iterable[Sequence]) -> None:
        q = self._translate_query(query)
        async with self.pool.acquire() as conn:
            await conn.executemany(q, seq_params)

    async def fetch_one(self, query: str, params: Sequence | None = None):
        q = self._translate_query(query)
        async with self.pool.acquire() as conn:
            return await conn.fetchrow(q, *(params or ()))

    async def fetch_all(self, query: str, params: Sequence | None = None):
        q = self._translate_query(query)
        async with self.pool.acquire() as conn:
            return await conn.fetch(q, *(params or ()))

    async def commit(self) -> None:
        # asyncpg autocommits per statement unless an explicit transaction is used.
        return

    async def close(self) -> None:
        await self.pool.close()

    async def executescript(self, script: str) -> None:
        # Not supported for Postgres; callers should split statements.
        raise NotImplementedError


_db: DatabaseAdapter | None = None


async def get_db() -> DatabaseAdapter:
    global _db
    if _db is None:
        if DATABASE_URL:
            if DATABASE_URL.startswith("sqlite"):
                sqlite_path = _sqlite_path_from_url(DATABASE_URL) or DATABASE_PATH
                conn = await aiosqlite.connect(sqlite_path)
                conn.row_factory = aiosqlite.Row
                _db = SQLiteAdapter(conn)
                logger.info("Connected to SQLite database at %s", sqlite_path)
            else:
                if asyncpg is None:
                    raise RuntimeError(
                        "DATABASE_URL is set but asyncpg is not installed. "
                        "Install asyncpg or unset DATABASE_URL."
                    )
                pool = await asyncpg.create_pool(
                    dsn=DATABASE_URL,
                    min_size=1,
                    max_size=DATABASE_MAX_CONNECTIONS,
                )
                _db = PostgresAdapter(pool)
                logger.info("Connected to Postgres database")
        else:
            conn = await aiosqlite.connect(DATABASE_PATH)
            conn.row_factory = aiosqlite.Row
            _db = SQLiteAdapter(conn)
            logger.info("Connected to SQLite database at %s", DATABASE_PATH)
    return _db


def _sqlite_path_from_url(url: str) -> str:
    parsed = urlparse(url)
    path = parsed.path or ""
    if not path or path == "/":
        return ""
    # sqlite:////absolute/path.db -> keep absolute path
    if url.startswith("sqlite:////"):
        return path
    # sqlite:///relative.db -> strip leading slash
    if path.startswith("/"):
        return path[1:]
    return path


# Timestamps are stored as fixed-width UTC ISO text (see app.timeutil.to_db_time)
# on both engines so range filters compare the same way everywhere.
_TABLES = [
    """
    CREATE TABLE IF NOT EXISTS patients (
        id TEXT PRIMARY KEY,
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        date_of_birth TEXT NOT NULL,
        notes TEXT,
        created_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS medications (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        generic_name TEXT,
        strength DOUBLE PRECISION,
        unit TEXT,
        manufacturer TEXT,
        description TEXT,
        active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS medical_events (
        id TEXT PRIMARY KEY,
        patient_id TEXT NOT NULL REFERENCES patients(id),
        medication_id TEXT,
        event_time TEXT NOT NULL,
        title TEXT NOT NULL,
        description TEXT,
        category TEXT NOT NULL,
        severity TEXT NOT NULL,
        duration_minutes INTEGER,
        weight_kg DOUBLE PRECISION,
        height_cm DOUBLE PRECISION,
        dosage_given DOUBLE PRECISION,
        created_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS medication_dosages (
        id TEXT PRIMARY KEY,
        patient_id TEXT NOT NULL REFERENCES patients(id),
        medication_id TEXT NOT NULL,
        administration_time TEXT NOT NULL,
        dosage_amount DOUBLE PRECISION NOT NULL,
        dosage_unit TEXT NOT NULL,
        schedule TEXT NOT NULL,
        administered INTEGER NOT NULL DEFAULT 0,
        notes TEXT,
        created_at TEXT NOT NULL
    );
    """,
]

_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_events_patient_time ON medical_events (patient_id, event_time)",
    "CREATE INDEX IF NOT EXISTS idx_dosages_patient_med_time "
    "ON medication_dosages (patient_id, medication_id, administration_time)",
]


async def init_db() -> None:
    db = await get_db()

    if db.engine == "sqlite":
        await db.executescript("".join(_TABLES))
    else:
        for stmt in _TABLES:
            await db.execute(stmt)
    for stmt in _INDEXES:
        await db.execute(stmt)

    await db.commit()

    if SEED_DEMO_DATA:
        await _seed_demo_data(db)


async def close_db() -> None:
    global _db
    if _db is not None:
        await _db.close()
        _db = None


DEMO_PATIENT_ID = "demo-patient"


async def _seed_demo_data(db: DatabaseAdapter) -> None:
    """Seed a demo patient with two weeks of dosing and events for UI previews."""
    existing = await db.fetch_one("SELECT id FROM patients WHERE id = ?", (DEMO_PATIENT_ID,))
    if existing:
        return

    now = utc_now().replace(minute=0, second=0, microsecond=0)
    created = to_db_time(now)

    await db.execute(
        "INSERT INTO patients (id, first_name, last_name, date_of_birth, notes, created_at) "
        "VALUES (?, ?, ?, ?, ?, ?)",
        (DEMO_PATIENT_ID, "Maria", "Lopez", "2015-04-12", "Epilepsy, twice-daily dosing", created),
    )
    await db.executemany(
        "INSERT INTO medications (id, name, generic_name, strength, unit, active, created_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?)",
        [
            ("demo-med-keppra", "Keppra", "Levetiracetam", 250.0, "mg", 1, created),
            ("demo-med-ibuprofen", "Nurofen", "Ibuprofen", 100.0, "mg", 1, created),
        ],
    )

    dosages = []
    for day in range(14):
        base = now - timedelta(days=day)
        for hour, schedule in ((8, "AM"), (20, "PM")):
            at = base.replace(hour=hour)
            dosages.append((
                f"demo-dose-{day}-{schedule.lower()}",
                DEMO_PATIENT_ID,
                "demo-med-keppra",
                to_db_time(at),
                250.0,
                "mg",
                schedule,
                1,
                created,
            ))
    for day in (2, 6, 9):
        at = (now - timedelta(days=day)).replace(hour=13)
        dosages.append((
            f"demo-dose-ibu-{day}",
            DEMO_PATIENT_ID,
            "demo-med-ibuprofen",
            to_db_time(at),
            100.0,
            "mg",
            "AS_NEEDED",
            1,
            created,
        ))
    await db.executemany(
        "INSERT INTO medication_dosages (id, patient_id, medication_id, administration_time, "
        "dosage_amount, dosage_unit, schedule, administered, created_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
        dosages,
    )

    events = [
        ("demo-event-1", 1, 10, "Focal seizure", "Left arm twitching", "SYMPTOM", "MODERATE"),
        ("demo-event-2", 3, 22, "Drowsiness", "Unusually sleepy after evening dose", "SIDE_EFFECT", "MILD"),
        ("demo-event-3", 5, 9, "Headache", None, "SYMPTOM", "MILD"),
        ("demo-event-4", 8, 15, "Rash", "Red rash on torso", "ADVERSE_REACTION", "MODERATE"),
        ("demo-event-5", 12, 3, "Tonic-clonic seizure", "Lasted about 2 minutes", "EMERGENCY", "SEVERE"),
        ("demo-event-6", 20, 11, "Neurology review", None, "APPOINTMENT", "MILD"),
    ]
    await db.executemany(
        "INSERT INTO medical_events (id, patient_id, event_time, title, description, "
        "category, severity, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
        [
            (
                event_id,
                DEMO_PATIENT_ID,
                to_db_time((now - timedelta(days=days_ago)).replace(hour=hour)),
                title,
                description,
                category,
                severity,
                created,
            )
            for event_id, days_ago, hour, title, description, category, severity in events
        ],
    )
    await db.commit()
    logger.info("Seeded demo patient %s", DEMO_PATIENT_ID)
