import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.config import LOG_LEVEL
from app.database import close_db, init_db
from app.routers import analytics, dosages, events, medications, patients

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting MedTrack...")
    await init_db()
    logger.info("Database initialized")
    yield
    await close_db()
    logger.info("MedTrack shut down")


app = FastAPI(
    title="MedTrack",
    description="Medical event and medication tracking with dosing/event correlation analytics",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(patients.router)
app.include_router(medications.router)
app.include_router(events.router)
app.include_router(dosages.router)
app.include_router(analytics.router)


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}
