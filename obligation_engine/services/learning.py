"""Confidence learning over persisted decision feedback"""

import logging
from datetime import timedelta
from typing import Optional
from sqlalchemy.orm import Session

from obligation_engine.domain.learning import blend_confidence
from obligation_engine.domain.models import DecisionStats
from obligation_engine.infrastructure.database.repositories import DecisionFeedbackRepository
from obligation_engine.utils.date_utils import Clock, system_clock

HISTORY_WINDOW_DAYS = 90
STATS_WINDOW_HOURS = 24
OUTCOME_STATUSES = ("succeeded", "failed", "partial")

logger = logging.getLogger(__name__)


def compute_confidence(
    db: Session,
    rec_type: str,
    payee: Optional[str] = None,
    clock: Clock = system_clock,
) -> float:
    """Confidence for a recommendation type (and payee) from the last 90 days of decisions"""
    repo = DecisionFeedbackRepository(db)
    since = clock() - timedelta(days=HISTORY_WINDOW_DAYS)

    type_counts = repo.counts_for_type(rec_type, since)
    payee_counts = repo.counts_for_payee(payee, since) if payee else None
    return blend_confidence(rec_type, type_counts, payee_counts)


def record_outcome(db: Session, feedback_id, status: str, clock: Clock = system_clock) -> bool:
    """
    Record how an approved action played out.

    Returns False when the feedback row does not exist.

    Raises:
        ValueError: status is not succeeded/failed/partial
    """
    if status not in OUTCOME_STATUSES:
        raise ValueError(f"Unknown outcome status: {status}")

    updated = DecisionFeedbackRepository(db).record_outcome(feedback_id, status, clock())
    if not updated:
        db.rollback()
        return False

    db.commit()
    logger.info("Outcome recorded", extra={"feedback_id": str(feedback_id), "outcome_status": status})
    return True


def get_decision_stats(
    db: Session,
    session_id: Optional[str] = None,
    clock: Clock = system_clock,
) -> DecisionStats:
    """Counts per decision and approved savings, for a session or the last 24 hours"""
    since = clock() - timedelta(hours=STATS_WINDOW_HOURS)
    counts, savings = DecisionFeedbackRepository(db).stats(session_id, since)
    return DecisionStats(
        approved=counts.approved,
        rejected=counts.rejected,
        deferred=counts.deferred,
        modified=counts.modified,
        total=counts.total,
        savings_cents=savings,
    )
