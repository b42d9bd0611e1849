"""Payment plan generation, persistence and activation"""

import logging
from dataclasses import asdict
from datetime import date
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from obligation_engine.config import settings
from obligation_engine.domain.models import PaymentPlanResult, PlanOptions
from obligation_engine.domain.planner import PlannerPolicy, simulate_payment_plan
from obligation_engine.infrastructure.database.models import PaymentPlan
from obligation_engine.infrastructure.database.repositories import (
    AccountRepository,
    ObligationRepository,
    PaymentPlanRepository,
    RevenueSourceRepository,
)
from obligation_engine.infrastructure.observability.metrics import payment_plan_counter
from obligation_engine.utils.date_utils import Clock, system_clock, utc_today

logger = logging.getLogger(__name__)


def planner_policy() -> PlannerPolicy:
    return PlannerPolicy(
        conservative_buffer_cents=settings.conservative_buffer_cents,
        escalation_multipliers=dict(settings.escalation_multipliers),
        credit_impact_threshold=settings.credit_impact_threshold,
        credit_impact_multiplier=settings.credit_impact_multiplier,
    )


def _jsonable(items: List[Any]) -> List[Dict[str, Any]]:
    """Dataclasses to JSON-safe dicts, dates as ISO strings"""
    rows = []
    for item in items:
        row = asdict(item)
        for key, value in row.items():
            if isinstance(value, date):
                row[key] = value.isoformat()
        rows.append(row)
    return rows


def _simulate(db: Session, options: PlanOptions, clock: Clock) -> PaymentPlanResult:
    return simulate_payment_plan(
        accounts=AccountRepository(db).list_cash_accounts(),
        obligations=ObligationRepository(db).list_open(),
        revenue_sources=RevenueSourceRepository(db).list_active(),
        options=options,
        today=utc_today(clock),
        policy=planner_policy(),
    )


def generate_payment_plan(
    db: Session,
    options: Optional[PlanOptions] = None,
    clock: Clock = system_clock,
) -> PaymentPlanResult:
    """
    Simulate a payment plan over real balances, open obligations and active revenue.

    Raises:
        InvalidPlanOptionsError: unknown strategy or horizon out of range
    """
    options = options or PlanOptions(strategy=settings.default_plan_strategy)
    result = _simulate(db, options, clock)

    payment_plan_counter.labels(strategy=result.plan_type).inc()
    logger.info(
        "Payment plan generated",
        extra={
            "step": "generate_payment_plan",
            "strategy": result.plan_type,
            "horizon_days": result.horizon_days,
            "schedule_entries": len(result.schedule),
            "warnings": len(result.warnings),
            "lowest_balance_cents": result.lowest_balance_cents,
        },
    )
    return result


def simulate_scenario(db: Session, options: PlanOptions, clock: Clock = system_clock) -> PaymentPlanResult:
    """What-if run with caller-supplied options; nothing is persisted"""
    return _simulate(db, options, clock)


def save_payment_plan(db: Session, result: PaymentPlanResult, clock: Clock = system_clock) -> str:
    """Persist a plan as draft; returns its id"""
    plan = PaymentPlanRepository(db).create(
        result,
        schedule=_jsonable(result.schedule),
        warnings=_jsonable(result.warnings),
        revenue_summary=_jsonable(result.revenue_summary),
        now=clock(),
    )
    db.commit()
    return str(plan.id)


def activate_payment_plan(db: Session, plan_id) -> Optional[PaymentPlan]:
    """
    Make a plan the single active one.

    Returns None when the plan does not exist; any previously active plan
    is abandoned in the same statement.
    """
    repo = PaymentPlanRepository(db)
    if not repo.activate(plan_id):
        db.rollback()
        return None

    db.commit()
    db.expire_all()
    plan = repo.get(plan_id)
    logger.info("Payment plan activated", extra={"plan_id": str(plan_id)})
    return plan


def get_current_plan(db: Session) -> Optional[PaymentPlan]:
    """The active plan, else the newest draft"""
    return PaymentPlanRepository(db).get_current()


def get_plan(db: Session, plan_id) -> Optional[PaymentPlan]:
    return PaymentPlanRepository(db).get(plan_id)
