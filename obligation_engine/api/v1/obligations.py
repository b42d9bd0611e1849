"""Obligation endpoints - ad-hoc scoring, batch rescoring, manual payment"""

import uuid
import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from obligation_engine.api.v1.schemas import PayResponse, RecalculateResponse, ScoreRequest, ScoreResponse
from obligation_engine.api.dependencies import get_charge_client, get_clock, get_request_id
from obligation_engine.domain.exceptions import ChargeAPIError
from obligation_engine.domain.models import Obligation
from obligation_engine.domain.urgency import score_obligation
from obligation_engine.infrastructure.clients.charge import ChargeClient
from obligation_engine.infrastructure.database.session import get_db
from obligation_engine.services.payments import pay_obligation
from obligation_engine.services.triage import rescore_obligations
from obligation_engine.utils.date_utils import Clock, utc_today

router = APIRouter()


@router.post("/obligations/score", response_model=ScoreResponse)
def score(request_body: ScoreRequest, clock: Clock = Depends(get_clock)):
    """Score an obligation without persisting it"""
    obligation = Obligation(
        category=request_body.category,
        due_date=request_body.due_date,
        status=request_body.status,
        auto_pay=request_body.auto_pay,
        late_fee_cents=request_body.late_fee_cents,
        grace_period_days=request_body.grace_period_days,
    )
    value, level = score_obligation(obligation, utc_today(clock))
    return ScoreResponse(score=value, level=level)


@router.post("/obligations/recalculate-urgency", response_model=RecalculateResponse)
def recalculate_urgency(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    return RecalculateResponse(obligations_scored=rescore_obligations(db, clock))


@router.post("/obligations/{obligation_id}/pay", response_model=PayResponse)
async def pay(
    obligation_id: str,
    request: Request,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    charge_client: ChargeClient = Depends(get_charge_client),
):
    """
    Mark an obligation paid.

    Obligations with action_type "charge" go through the charge service
    first; a charge failure leaves the obligation untouched (502).
    """
    try:
        uuid.UUID(obligation_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid obligation ID format")

    try:
        paid = await pay_obligation(db, obligation_id, charge_client, clock)
    except ChargeAPIError as e:
        db.rollback()
        logging.error(f"Charge API error: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=502, detail="Charge service unavailable")

    if paid is None:
        raise HTTPException(status_code=404, detail="Obligation not found")

    obligation, charge_id = paid
    return PayResponse(
        obligation_id=str(obligation.id),
        payee=obligation.payee,
        status=obligation.status,
        charge_id=charge_id,
    )
