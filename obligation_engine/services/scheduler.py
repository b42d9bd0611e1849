"""
Scheduled pipeline: match -> triage -> project -> discover revenue -> plan.

Each phase runs in isolation. A failing phase is logged, counted and rolled
back, and the remaining phases still run. There is no transaction spanning
phases.
"""

import logging
import sys
import time
from typing import Callable, List, Tuple
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from obligation_engine.config import settings
from obligation_engine.domain.models import PhaseOutcome, PlanOptions, SyncRunResult
from obligation_engine.infrastructure.database.repositories import SyncLogRepository
from obligation_engine.infrastructure.database.session import SessionLocal
from obligation_engine.infrastructure.observability.logging import log_phase, setup_logging
from obligation_engine.infrastructure.observability.metrics import phase_duration_histogram, phase_failure_counter
from obligation_engine.services.matcher import match_transactions
from obligation_engine.services.planner import generate_payment_plan, save_payment_plan
from obligation_engine.services.projections import generate_projections
from obligation_engine.services.revenue import discover_revenue_sources
from obligation_engine.services.triage import run_triage
from obligation_engine.utils.date_utils import Clock, system_clock

logger = logging.getLogger(__name__)

Phase = Callable[[Session, Clock], int]


def _match_phase(db: Session, clock: Clock) -> int:
    return match_transactions(db, clock).matches_found


def _triage_phase(db: Session, clock: Clock) -> int:
    return run_triage(db, clock).recommendations_created


def _projection_phase(db: Session, clock: Clock) -> int:
    return generate_projections(db, clock).days_projected


def _revenue_phase(db: Session, clock: Clock) -> int:
    result = discover_revenue_sources(db, clock)
    return result.sources_discovered + result.sources_updated


def _plan_phase(db: Session, clock: Clock) -> int:
    result = generate_payment_plan(db, PlanOptions(strategy=settings.default_plan_strategy), clock)
    save_payment_plan(db, result, clock)
    return 1


PHASES: List[Tuple[str, Phase]] = [
    ("match_transactions", _match_phase),
    ("run_triage", _triage_phase),
    ("generate_projections", _projection_phase),
    ("discover_revenue_sources", _revenue_phase),
    ("generate_payment_plan", _plan_phase),
]


def _run_phase(db: Session, name: str, phase: Phase, clock: Clock) -> PhaseOutcome:
    start = time.time()
    try:
        records = phase(db, clock)
    except Exception as e:
        db.rollback()
        duration = time.time() - start
        phase_failure_counter.labels(phase=name).inc()
        phase_duration_histogram.labels(phase=name).observe(duration)
        log_phase(name, False, 0, duration * 1000, error=str(e))
        return PhaseOutcome(phase=name, succeeded=False, error=str(e))

    duration = time.time() - start
    phase_duration_histogram.labels(phase=name).observe(duration)
    log_phase(name, True, records, duration * 1000)
    return PhaseOutcome(phase=name, succeeded=True, records=records)


def run_scheduled_sync(
    db: Session,
    clock: Clock = system_clock,
    source: str = "daily_api",
    phases: List[Tuple[str, Phase]] | None = None,
) -> SyncRunResult:
    """
    Run every phase once and record the run in the sync log.

    The run ends "completed" even when individual phases fail; "error" is
    reserved for failures outside the phases (e.g. the sync log itself). The
    error status is written best-effort.
    """
    sync_logs = SyncLogRepository(db)
    outcomes: List[PhaseOutcome] = []
    log_id = None

    try:
        log_id = sync_logs.start(source, "scheduled", clock()).id
        db.commit()

        for name, phase in phases or PHASES:
            outcomes.append(_run_phase(db, name, phase, clock))

        records = sum(o.records for o in outcomes)
        sync_logs.finish(log_id, "completed", records, clock())
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Scheduled sync failed [{source}]: {e}", extra={"source": source})
        _record_error(db, log_id, str(e), clock)
        return SyncRunResult(
            source=source,
            status="error",
            records_synced=sum(o.records for o in outcomes),
            phases=outcomes,
        )

    logger.info(
        "Scheduled sync completed",
        extra={
            "source": source,
            "records_synced": records,
            "failed_phases": [o.phase for o in outcomes if not o.succeeded],
        },
    )
    return SyncRunResult(source=source, status="completed", records_synced=records, phases=outcomes)


def _record_error(db: Session, log_id, message: str, clock: Clock) -> None:
    """Best-effort terminal status; a failure here is logged and dropped"""
    if log_id is None:
        return
    try:
        SyncLogRepository(db).finish(log_id, "error", 0, clock(), error=message)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Could not record sync error: {e}", extra={"sync_log_id": str(log_id)})


def main() -> int:
    """Console entry point: run the scheduled pipeline once"""
    setup_logging(settings.log_level)
    db = SessionLocal()
    try:
        result = run_scheduled_sync(db)
    finally:
        db.close()
    return 0 if result.status == "completed" else 1


if __name__ == "__main__":
    sys.exit(main())
