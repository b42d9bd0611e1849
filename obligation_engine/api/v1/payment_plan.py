"""Payment plan endpoints - generate, simulate, inspect and activate plans"""

import uuid
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from obligation_engine.api.v1.schemas import (
    ActivateResponse,
    PaymentPlanResponse,
    PlanOptionsRequest,
    ScheduleResponse,
)
from obligation_engine.api.dependencies import get_clock
from obligation_engine.config import settings
from obligation_engine.domain.exceptions import InvalidPlanOptionsError
from obligation_engine.domain.models import PlanOptions
from obligation_engine.infrastructure.database.models import PaymentPlan
from obligation_engine.infrastructure.database.session import get_db
from obligation_engine.services.planner import (
    activate_payment_plan,
    generate_payment_plan,
    get_current_plan,
    get_plan,
    save_payment_plan,
    simulate_scenario,
)
from obligation_engine.utils.date_utils import Clock

router = APIRouter()


def _options(body: PlanOptionsRequest) -> PlanOptions:
    return PlanOptions(
        strategy=body.strategy or settings.default_plan_strategy,
        horizon_days=body.horizon_days,
        defer_ids=list(body.defer_ids),
        pay_early_ids=list(body.pay_early_ids),
        custom_amounts=dict(body.custom_amounts),
    )


def _parse_plan_id(plan_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(plan_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid plan ID format")


def _stored_plan(plan: PaymentPlan) -> PaymentPlanResponse:
    return PaymentPlanResponse(
        plan_id=str(plan.id),
        status=plan.status,
        plan_type=plan.plan_type,
        horizon_days=plan.horizon_days,
        starting_balance_cents=plan.starting_balance_cents,
        ending_balance_cents=plan.ending_balance_cents,
        lowest_balance_cents=plan.lowest_balance_cents,
        lowest_balance_date=plan.lowest_balance_date,
        total_inflows_cents=plan.total_inflows_cents,
        total_outflows_cents=plan.total_outflows_cents,
        total_late_fees_avoided_cents=plan.total_late_fees_avoided_cents,
        total_late_fees_risked_cents=plan.total_late_fees_risked_cents,
        schedule=plan.schedule or [],
        warnings=plan.warnings or [],
        revenue_summary=plan.revenue_summary or [],
    )


@router.get("/payment-plan", response_model=PaymentPlanResponse)
def current_plan(db: Session = Depends(get_db)):
    """The active plan, else the newest draft"""
    plan = get_current_plan(db)
    if plan is None:
        raise HTTPException(status_code=404, detail="No payment plan found")
    return _stored_plan(plan)


@router.post("/payment-plan/generate", response_model=PaymentPlanResponse)
def generate(
    request_body: PlanOptionsRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Simulate with the given options and save the result as a draft"""
    try:
        result = generate_payment_plan(db, _options(request_body), clock)
    except InvalidPlanOptionsError as e:
        raise HTTPException(status_code=422, detail=str(e))

    plan_id = save_payment_plan(db, result, clock)
    response = PaymentPlanResponse.model_validate(result)
    response.plan_id = plan_id
    response.status = "draft"
    return response


@router.post("/payment-plan/simulate", response_model=PaymentPlanResponse)
def simulate(
    request_body: PlanOptionsRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """What-if simulation; nothing is saved"""
    try:
        result = simulate_scenario(db, _options(request_body), clock)
    except InvalidPlanOptionsError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return PaymentPlanResponse.model_validate(result)


@router.get("/payment-plan/{plan_id}/schedule", response_model=ScheduleResponse)
def schedule(plan_id: str, db: Session = Depends(get_db)):
    plan = get_plan(db, _parse_plan_id(plan_id))
    if plan is None:
        raise HTTPException(status_code=404, detail="Plan not found")
    return ScheduleResponse(plan_id=str(plan.id), schedule=plan.schedule or [], warnings=plan.warnings or [])


@router.post("/payment-plan/{plan_id}/activate", response_model=ActivateResponse)
def activate(plan_id: str, db: Session = Depends(get_db)):
    """Activate a plan; the previously active plan is abandoned"""
    plan = activate_payment_plan(db, _parse_plan_id(plan_id))
    if plan is None:
        raise HTTPException(status_code=404, detail="Plan not found")
    return ActivateResponse(plan_id=str(plan.id), status=plan.status)
