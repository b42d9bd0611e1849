"""Triage orchestration - rescore, expire, and emit deduplicated recommendations"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Tuple
from sqlalchemy.orm import Session

from obligation_engine.config import settings
from obligation_engine.domain.models import Obligation, RecommendationDraft, TriageResult
from obligation_engine.domain.triage import (
    DEDUP_MODES,
    cash_shortfall_warning,
    compute_cash_position,
    dedup_key,
    dispute_recommendation,
    legal_recommendation,
    obligation_recommendations,
)
from obligation_engine.domain.urgency import compute_urgency_score
from obligation_engine.infrastructure.database.repositories import (
    AccountRepository,
    DisputeRepository,
    LegalDeadlineRepository,
    ObligationRepository,
    RecommendationRepository,
)
from obligation_engine.infrastructure.observability.metrics import overdue_flip_counter, record_recommendations
from obligation_engine.services.learning import compute_confidence
from obligation_engine.utils.date_utils import Clock, parse_date, system_clock, utc_today

CASH_WINDOW_DAYS = 30

logger = logging.getLogger(__name__)


def _rescore(db: Session, now: datetime, clock: Clock) -> Tuple[List[Tuple[Obligation, int]], int]:
    """Score open obligations and flip past-due pending ones; one batched write"""
    today = utc_today(clock)
    scored: List[Tuple[Obligation, int]] = []
    updates = []
    flipped = 0

    repo = ObligationRepository(db)
    for ob in repo.list_open():
        score = compute_urgency_score(ob, today)
        status = ob.status
        due = parse_date(ob.due_date)
        if status == "pending" and due is not None and due < today:
            status = "overdue"
            flipped += 1
        ob.urgency_score = score
        ob.status = status
        scored.append((ob, score))
        updates.append((ob.id, score, status))

    repo.apply_scores(updates, now)
    return scored, flipped


def rescore_obligations(db: Session, clock: Clock = system_clock) -> int:
    """Recalculate urgency for every open obligation; returns how many were scored"""
    scored, flipped = _rescore(db, clock(), clock)
    db.commit()
    overdue_flip_counter.inc(flipped)
    logger.info("Urgency recalculated", extra={"obligations_scored": len(scored), "overdue_flipped": flipped})
    return len(scored)


def run_triage(db: Session, clock: Clock = system_clock) -> TriageResult:
    """
    Main entry point: one full triage pass.

    1. Rescore open obligations, flip past-due pending ones to overdue
    2. Compute the 30-day cash position
    3. Expire active recommendations older than the expiry window
    4. Generate obligation, dispute, legal and cash-shortfall recommendations
    5. Insert those whose dedup key has no active recommendation, stamped
       with the learner's confidence

    Re-running immediately creates nothing new.
    """
    now = clock()
    today = utc_today(clock)
    mode = settings.recommendation_dedup_key
    if mode not in DEDUP_MODES:
        raise ValueError(f"Unknown recommendation dedup mode: {mode}")

    scored, flipped = _rescore(db, now, clock)

    position = compute_cash_position(
        AccountRepository(db).total_cash_cents(),
        ObligationRepository(db).total_due_through(today + timedelta(days=CASH_WINDOW_DAYS)),
    )

    rec_repo = RecommendationRepository(db)
    expired = rec_repo.expire_older_than(now - timedelta(days=settings.recommendation_expiry_days))

    drafts: List[RecommendationDraft] = []
    for ob, score in sorted(scored, key=lambda pair: pair[1], reverse=True):
        drafts.extend(obligation_recommendations(ob, score, position.surplus_cents, today))

    for dispute in DisputeRepository(db).list_open_with_action():
        rec = dispute_recommendation(dispute, today)
        if rec is not None:
            drafts.append(rec)

    for deadline in LegalDeadlineRepository(db).list_upcoming(now):
        rec = legal_recommendation(deadline, now)
        if rec is not None:
            drafts.append(rec)

    warning = cash_shortfall_warning(position)
    if warning is not None:
        drafts.append(warning)

    active_keys = rec_repo.active_dedup_keys()
    confidence_cache: Dict[Tuple[str, str], float] = {}
    created_types: List[str] = []
    for draft in drafts:
        key = dedup_key(draft, mode)
        if key in active_keys:
            continue

        cache_key = (draft.rec_type, draft.payee or "")
        if cache_key not in confidence_cache:
            confidence_cache[cache_key] = compute_confidence(db, draft.rec_type, draft.payee, clock)

        rec_repo.create(draft, key, confidence_cache[cache_key], settings.triage_model_version, now)
        active_keys.add(key)
        created_types.append(draft.rec_type)

    db.commit()

    overdue_flip_counter.inc(flipped)
    record_recommendations(created_types)
    logger.info(
        "Triage completed",
        extra={
            "step": "run_triage",
            "obligations_scored": len(scored),
            "recommendations_created": len(created_types),
            "overdue_flipped": flipped,
            "recommendations_expired": expired,
            "surplus_cents": position.surplus_cents,
        },
    )
    return TriageResult(
        obligations_scored=len(scored),
        recommendations_created=len(created_types),
        overdue_flipped=flipped,
        recommendations_expired=expired,
        cash_position=position,
    )
