"""On-demand runs of the engine: triage, matching, projections, revenue discovery, scheduled sync"""

from datetime import timedelta
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from obligation_engine.api.v1.schemas import (
    MatchResponse,
    ProjectionRowSchema,
    ProjectionSummary,
    RevenueDiscoveryResponse,
    RevenueSourceSchema,
    SyncResponse,
    TriageResponse,
)
from obligation_engine.api.dependencies import get_clock
from obligation_engine.infrastructure.database.repositories import ProjectionRepository, RevenueSourceRepository
from obligation_engine.infrastructure.database.session import get_db
from obligation_engine.services.matcher import match_transactions
from obligation_engine.services.projections import generate_projections
from obligation_engine.services.revenue import discover_revenue_sources
from obligation_engine.services.scheduler import run_scheduled_sync
from obligation_engine.services.triage import run_triage
from obligation_engine.utils.date_utils import Clock, utc_today

router = APIRouter()


@router.post("/triage/run", response_model=TriageResponse)
def triage_run(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    return TriageResponse.model_validate(run_triage(db, clock))


@router.post("/transactions/match", response_model=MatchResponse)
def transactions_match(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    return MatchResponse.model_validate(match_transactions(db, clock))


@router.post("/projections/generate", response_model=ProjectionSummary)
def projections_generate(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    return ProjectionSummary.model_validate(generate_projections(db, clock))


@router.get("/projections", response_model=List[ProjectionRowSchema])
def projections_list(
    days: Optional[int] = Query(None, ge=1, le=365, description="Limit to the next N days"),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Persisted projection checkpoints from today onward"""
    today = utc_today(clock)
    end = today + timedelta(days=days) if days else None
    rows = ProjectionRepository(db).list_from(today, end)
    return [
        ProjectionRowSchema(
            projection_date=r.projection_date,
            projected_inflow_cents=r.projected_inflow_cents,
            projected_outflow_cents=r.projected_outflow_cents,
            projected_balance_cents=r.projected_balance_cents,
            obligations=r.obligations or [],
            confidence=r.confidence,
        )
        for r in rows
    ]


@router.post("/revenue/discover", response_model=RevenueDiscoveryResponse)
def revenue_discover(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    return RevenueDiscoveryResponse.model_validate(discover_revenue_sources(db, clock))


@router.get("/revenue", response_model=List[RevenueSourceSchema])
def revenue_list(db: Session = Depends(get_db)):
    return [
        RevenueSourceSchema(
            id=str(r.id),
            source=r.source,
            description=r.description,
            amount_cents=r.amount_cents,
            recurrence=r.recurrence,
            next_expected_date=r.next_expected_date,
            confidence=r.confidence,
            verified_by=r.verified_by,
            status=r.status,
        )
        for r in RevenueSourceRepository(db).list_all()
    ]


@router.post("/sync/run", response_model=SyncResponse)
def sync_run(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    """Run the scheduled pipeline once, on demand"""
    return SyncResponse.model_validate(run_scheduled_sync(db, clock, source="manual"))
