import asyncio
import logging
from collections.abc import Awaitable
from datetime import datetime
from typing import TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query

from app.exceptions import InvalidArgument, InvalidRange, StoreUnavailable
from app.models.analytics import (
    AnalyticsOverview,
    DashboardSummary,
    MedicationCorrelationAnalysis,
    MedicationImpactAnalysis,
    TimelineAnalysis,
)
from app.services.correlation import CorrelationEngine
from app.services.dashboard import DashboardAggregator
from app.services.impact import ImpactAnalyzer
from app.services.store import MedicalStore, get_store
from app.services.timeline import TimelineBuilder

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analytics", tags=["analytics"])

T = TypeVar("T")


async def _run(operation: Awaitable[T]) -> T:
    try:
        return await operation
    except (InvalidArgument, InvalidRange) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None
    except StoreUnavailable:
        logger.error("Analytics request failed: store unavailable")
        raise HTTPException(status_code=503, detail="Data store unavailable") from None


@router.get("/dashboard/{patient_id}", response_model=DashboardSummary)
async def get_dashboard_summary(patient_id: str, store: MedicalStore = Depends(get_store)):
    """Whole-history counts and histograms for a patient."""
    return await _run(DashboardAggregator(store).summarize(patient_id))


@router.get(
    "/correlation/{patient_id}/medication/{medication_id}",
    response_model=MedicationCorrelationAnalysis,
)
async def get_medication_correlation(
    patient_id: str,
    medication_id: str,
    store: MedicalStore = Depends(get_store),
):
    """How often doses of one medication are followed by an event within 24h."""
    return await _run(CorrelationEngine(store).analyze_correlation(patient_id, medication_id))


@router.get(
    "/correlation/{patient_id}/all-medications",
    response_model=list[MedicationCorrelationAnalysis],
)
async def get_all_medication_correlations(patient_id: str, store: MedicalStore = Depends(get_store)):
    return await _run(CorrelationEngine(store).analyze_all_medications(patient_id))


@router.get("/timeline/{patient_id}", response_model=TimelineAnalysis)
async def get_timeline(
    patient_id: str,
    start_date: datetime = Query(...),
    end_date: datetime = Query(...),
    store: MedicalStore = Depends(get_store),
):
    """Events and dosages between two dates.

    Points are returned unsorted; sort by ``timestamp`` for display.
    """
    return await _run(TimelineBuilder(store).build_timeline(patient_id, start_date, end_date))


@router.get(
    "/timeline/{patient_id}/medication/{medication_id}",
    response_model=TimelineAnalysis,
)
async def get_medication_timeline(
    patient_id: str,
    medication_id: str,
    start_date: datetime = Query(...),
    end_date: datetime = Query(...),
    store: MedicalStore = Depends(get_store),
):
    """Events and dosages of one medication between two dates."""
    return await _run(
        TimelineBuilder(store).build_medication_timeline(patient_id, medication_id, start_date, end_date)
    )


@router.get(
    "/impact/{patient_id}/medication/{medication_id}",
    response_model=MedicationImpactAnalysis,
)
async def get_medication_impact(
    patient_id: str,
    medication_id: str,
    start_date: datetime = Query(...),
    end_date: datetime = Query(...),
    store: MedicalStore = Depends(get_store),
):
    return await _run(
        ImpactAnalyzer(store).analyze_impact(patient_id, medication_id, start_date, end_date)
    )


@router.get("/weekly-trends/{patient_id}", response_model=dict[str, DashboardSummary])
async def get_weekly_trends(patient_id: str, store: MedicalStore = Depends(get_store)):
    """Eight weekly summaries, ``week_1`` being the most recent seven days."""
    return await _run(DashboardAggregator(store).generate_weekly_summaries(patient_id))


@router.get("/overview/{patient_id}", response_model=AnalyticsOverview)
async def get_overview(patient_id: str, store: MedicalStore = Depends(get_store)):
    """Dashboard summary plus correlation for every medication the patient takes."""

    async def _overview() -> AnalyticsOverview:
        dashboard, correlations = await asyncio.gather(
            DashboardAggregator(store).summarize(patient_id),
            CorrelationEngine(store).analyze_all_medications(patient_id),
        )
        return AnalyticsOverview(dashboard_summary=dashboard, medication_correlations=correlations)

    return await _run(_overview())
