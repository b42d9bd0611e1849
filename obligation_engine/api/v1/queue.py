"""Swipe queue endpoints - review recommendations and feed decisions back to the learner"""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from obligation_engine.api.v1.schemas import (
    DecideRequest,
    DecideResponse,
    DecisionStatsResponse,
    HistoryItem,
    HistoryResponse,
    NextItemSchema,
    OutcomeRequest,
    OutcomeResponse,
    QueueItemSchema,
)
from obligation_engine.api.dependencies import get_clock
from obligation_engine.infrastructure.database.session import get_db
from obligation_engine.services.learning import get_decision_stats, record_outcome
from obligation_engine.services.queue import decide, decision_history, list_queue
from obligation_engine.utils.date_utils import Clock

router = APIRouter()


def _str(value) -> Optional[str]:
    return str(value) if value is not None else None


@router.get("/queue", response_model=List[QueueItemSchema])
def queue(
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Next batch of actionable items, highest priority first"""
    items = []
    for item in list_queue(db, limit, clock):
        rec, ob = item.recommendation, item.obligation
        items.append(
            QueueItemSchema(
                id=str(rec.id),
                rec_type=rec.rec_type,
                priority=rec.priority,
                title=rec.title,
                reasoning=rec.reasoning,
                action_type=rec.action_type,
                estimated_savings_cents=rec.estimated_savings_cents,
                obligation_id=_str(rec.obligation_id),
                dispute_id=_str(rec.dispute_id),
                legal_deadline_id=_str(rec.legal_deadline_id),
                confidence=item.confidence,
                live_confidence=item.live_confidence,
                obligation_payee=ob.payee if ob else None,
                obligation_amount_cents=(
                    ob.amount_due_cents if ob and ob.amount_due_cents is not None
                    else (ob.amount_minimum_cents if ob else None)
                ),
                obligation_due_date=ob.due_date if ob else None,
                obligation_category=ob.category if ob else None,
                obligation_status=ob.status if ob else None,
            )
        )
    return items


@router.get("/queue/stats", response_model=DecisionStatsResponse)
def stats(
    session_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Decision counts for a session, or for the last 24 hours"""
    return DecisionStatsResponse.model_validate(get_decision_stats(db, session_id, clock))


@router.get("/queue/history", response_model=HistoryResponse)
def history(limit: int = Query(20, ge=1, le=200), db: Session = Depends(get_db)):
    return HistoryResponse(
        decisions=[
            HistoryItem(
                feedback_id=str(fb.id),
                recommendation_id=str(fb.recommendation_id),
                decision=fb.decision,
                title=rec.title,
                rec_type=rec.rec_type,
                original_action=fb.original_action,
                modified_action=fb.modified_action,
                outcome_status=fb.outcome_status,
                created_at=fb.created_at.isoformat(),
            )
            for fb, rec in decision_history(db, limit)
        ]
    )


@router.post("/queue/{recommendation_id}/decide", response_model=DecideResponse)
def decide_item(
    recommendation_id: str,
    request_body: DecideRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    outcome = decide(
        db,
        recommendation_id,
        request_body.decision,
        modified_action=request_body.modified_action,
        session_id=request_body.session_id,
        clock=clock,
    )
    if outcome is None:
        raise HTTPException(status_code=404, detail="Recommendation not found or already acted on")

    nxt = outcome.next_item
    return DecideResponse(
        decided=outcome.recommendation_id,
        decision=outcome.decision,
        feedback_id=outcome.feedback_id,
        next=(
            NextItemSchema(id=str(nxt.id), title=nxt.title, rec_type=nxt.rec_type, priority=nxt.priority)
            if nxt is not None
            else None
        ),
    )


@router.post("/queue/feedback/{feedback_id}/outcome", response_model=OutcomeResponse)
def outcome(
    feedback_id: str,
    request_body: OutcomeRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    if not record_outcome(db, feedback_id, request_body.status, clock):
        raise HTTPException(status_code=404, detail="Feedback not found")
    return OutcomeResponse(feedback_id=feedback_id, outcome_status=request_body.status)
