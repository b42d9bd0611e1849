"""Swipe queue - serve active recommendations and apply user decisions"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from sqlalchemy.orm import Session

from obligation_engine.infrastructure.database.models import DecisionFeedback, Obligation, Recommendation
from obligation_engine.infrastructure.database.repositories import (
    ActionLogRepository,
    DecisionFeedbackRepository,
    ObligationRepository,
    RecommendationRepository,
)
from obligation_engine.infrastructure.observability.metrics import queue_decision_counter
from obligation_engine.services.learning import compute_confidence
from obligation_engine.utils.date_utils import Clock, system_clock

DECISIONS = ("approved", "rejected", "deferred", "modified")
PAY_ACTIONS = ("pay_now", "pay_full", "pay_minimum")
MAX_PRIORITY = 10

logger = logging.getLogger(__name__)


@dataclass
class QueueItem:
    recommendation: Recommendation
    obligation: Optional[Obligation]
    live_confidence: float

    @property
    def confidence(self) -> float:
        """Confidence stamped at creation, else the live estimate"""
        if self.recommendation.confidence is not None:
            return self.recommendation.confidence
        return self.live_confidence


@dataclass
class DecisionOutcome:
    recommendation_id: str
    decision: str
    feedback_id: str
    next_item: Optional[Recommendation]


def list_queue(db: Session, limit: int = 10, clock: Clock = system_clock) -> List[QueueItem]:
    """Active recommendations by priority then age, enriched with live confidence"""
    rows = RecommendationRepository(db).list_active_queue(limit)
    cache: Dict[Tuple[str, str], float] = {}
    items = []
    for rec, obligation in rows:
        payee = obligation.payee if obligation is not None else None
        key = (rec.rec_type, payee or "")
        if key not in cache:
            cache[key] = compute_confidence(db, rec.rec_type, payee, clock)
        items.append(QueueItem(recommendation=rec, obligation=obligation, live_confidence=cache[key]))
    return items


def decide(
    db: Session,
    recommendation_id,
    decision: str,
    modified_action: Optional[str] = None,
    session_id: Optional[str] = None,
    clock: Clock = system_clock,
) -> Optional[DecisionOutcome]:
    """
    Record a decision on an active recommendation and carry it out.

    - approved / modified: recommendation completed, action logged; pay
      actions mark the obligation paid, defer marks it deferred if still open
    - rejected: recommendation dismissed
    - deferred: stays active one priority step lower (capped at 10)

    Returns None when the recommendation is unknown or already acted on.
    """
    if decision not in DECISIONS:
        raise ValueError(f"Unknown decision: {decision}")

    now = clock()
    rec_repo = RecommendationRepository(db)
    rec = rec_repo.get_active(recommendation_id)
    if rec is None:
        return None

    feedback = DecisionFeedbackRepository(db).create(
        rec,
        decision=decision,
        confidence=rec.confidence,
        session_id=session_id,
        modified_action=modified_action,
        now=now,
    )

    if decision in ("approved", "modified"):
        _execute(db, rec, modified_action, decision, now)
    elif decision == "rejected":
        rec.status = "dismissed"
        rec.acted_on_at = now
    else:
        rec.priority = min(rec.priority + 1, MAX_PRIORITY)

    db.commit()
    queue_decision_counter.labels(decision=decision).inc()
    logger.info(
        "Queue decision recorded",
        extra={"recommendation_id": str(rec.id), "decision": decision, "rec_type": rec.rec_type},
    )

    next_rows = rec_repo.list_active_queue(limit=2)
    next_item = next((r for r, _ in next_rows if r.id != rec.id), None)
    return DecisionOutcome(
        recommendation_id=str(rec.id),
        decision=decision,
        feedback_id=str(feedback.id),
        next_item=next_item,
    )


def _execute(db: Session, rec: Recommendation, modified_action: Optional[str], decision: str, now) -> None:
    rec.status = "completed"
    rec.acted_on_at = now

    action = modified_action or rec.action_type
    ActionLogRepository(db).add(
        action_type=action or "approved",
        target_type="recommendation",
        target_id=rec.id,
        description=f"Approved via action queue: {rec.title}",
        now=now,
        payload={"decision": decision, "original_action": rec.action_type, "modified_action": modified_action},
    )

    if rec.obligation_id is None:
        return
    obligations = ObligationRepository(db)
    if action in PAY_ACTIONS:
        obligations.mark_paid(rec.obligation_id, now, only_open=False)
    elif action == "defer":
        obligations.mark_deferred(rec.obligation_id, now)


def decision_history(db: Session, limit: int = 20) -> List[Tuple[DecisionFeedback, Recommendation]]:
    return DecisionFeedbackRepository(db).history(limit)
