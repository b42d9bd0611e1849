"""Generate and persist the day-by-day cash-flow projection"""

import logging
from collections import defaultdict
from datetime import timedelta
from typing import Dict
from sqlalchemy.orm import Session

from obligation_engine.config import settings
from obligation_engine.domain.models import CashflowProjectionRow, ProjectionResult
from obligation_engine.domain.projection import build_projection, forecast_confidence, should_persist
from obligation_engine.infrastructure.database.repositories import (
    AccountRepository,
    ObligationRepository,
    ProjectionRepository,
    TransactionRepository,
)
from obligation_engine.utils.date_utils import Clock, add_months, month_start, system_clock, utc_today

INFLOW_HISTORY_MONTHS = 3
STALE_AFTER = timedelta(days=1)

logger = logging.getLogger(__name__)


def average_monthly_inflow(db: Session, clock: Clock = system_clock) -> int:
    """Mean of per-calendar-month inflow totals over the last three months; 0 without history"""
    since = add_months(utc_today(clock), -INFLOW_HISTORY_MONTHS)
    monthly: Dict = defaultdict(int)
    for tx in TransactionRepository(db).list_inflows_since(since):
        monthly[month_start(tx.tx_date)] += tx.amount_cents
    if not monthly:
        return 0
    return round(sum(monthly.values()) / len(monthly))


def generate_projections(db: Session, clock: Clock = system_clock, days: int | None = None) -> ProjectionResult:
    """
    Project cash balance forward and persist checkpoint days.

    Persisted: day 0, weekly checkpoints, any day with outflows, the last day.
    Rows older than a day and rows for the rewritten dates are replaced.
    """
    now = clock()
    today = utc_today(clock)
    horizon = days or settings.projection_horizon_days

    result = build_projection(
        starting_balance_cents=AccountRepository(db).total_cash_cents(),
        obligations=ObligationRepository(db).list_open(),
        avg_monthly_inflow_cents=average_monthly_inflow(db, clock),
        today=today,
        days=horizon,
    )

    rows = [
        CashflowProjectionRow(
            projection_date=day.date,
            inflow_cents=day.inflow_cents,
            outflow_cents=day.outflow_cents,
            balance_cents=day.balance_cents,
            obligations=day.obligations,
            confidence=forecast_confidence(day.day_index),
        )
        for day in result.days
        if should_persist(day, horizon)
    ]
    ProjectionRepository(db).replace(rows, generated_at=now, stale_before=now - STALE_AFTER)
    db.commit()

    logger.info(
        "Projections generated",
        extra={
            "step": "generate_projections",
            "days_projected": result.days_projected,
            "rows_persisted": len(rows),
            "lowest_balance_cents": result.lowest_balance_cents,
            "lowest_balance_date": result.lowest_balance_date.isoformat(),
        },
    )
    return result
