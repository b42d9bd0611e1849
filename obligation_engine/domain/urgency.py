"""Urgency scoring engine - deterministic 0-100 priority for obligations"""

import math
from datetime import date, timedelta
from typing import Dict, Tuple

from obligation_engine.domain.models import Obligation
from obligation_engine.domain.money import safe_cents
from obligation_engine.utils.date_utils import parse_date

# Consequence severity by category
CATEGORY_WEIGHTS: Dict[str, int] = {
    "legal": 30,
    "mortgage": 25,
    "property_tax": 20,
    "federal_tax": 20,
    "utility": 15,
    "insurance": 15,
    "hoa": 12,
    "credit_card": 10,
    "loan": 10,
    "subscription": 5,
}
DEFAULT_CATEGORY_WEIGHT = 5

STATUS_PENALTIES: Dict[str, int] = {
    "paid": 50,
    "disputed": 10,
    "deferred": 15,
}

AUTO_PAY_PENALTY = 25


def sanitize_grace_days(value: float | int | None) -> int:
    if value is None:
        return 0
    try:
        days = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(days) or days < 0:
        return 0
    return int(days)


def time_pressure(days_until_due: int) -> int:
    """
    Map days until the effective due date to a time-pressure component.

    Negative values mean the obligation is overdue.
    """
    if days_until_due < -30:
        return 50  # severely overdue
    elif days_until_due < -7:
        return 45  # overdue > 1 week
    elif days_until_due < 0:
        return 40
    elif days_until_due == 0:
        return 35  # due today
    elif days_until_due <= 3:
        return 30
    elif days_until_due <= 7:
        return 20
    elif days_until_due <= 14:
        return 10
    return 0


def late_fee_bonus(late_fee_cents: float | int | None) -> int:
    """Late-fee tier: >$50 = 15, >$25 = 10, >$0 = 5"""
    fee = safe_cents(late_fee_cents)
    if fee > 5_000:
        return 15
    elif fee > 2_500:
        return 10
    elif fee > 0:
        return 5
    return 0


def compute_urgency_score(obligation: Obligation, today: date) -> int:
    """
    Calculate urgency from 0 (ignorable) to 100 (act now).

    Components:
    - Time pressure from days until due, after shifting by the grace period
    - Category weight (legal 30 ... subscription 5)
    - Late-fee tier bonus
    - Auto-pay and status reductions

    An invalid or missing due date only drops the time-pressure term; the
    scorer never raises on dirty input.
    """
    score = 0

    due = parse_date(obligation.due_date)
    if due is not None:
        effective_due = due + timedelta(days=sanitize_grace_days(obligation.grace_period_days))
        score += time_pressure((effective_due - today).days)

    score += CATEGORY_WEIGHTS.get(obligation.category, DEFAULT_CATEGORY_WEIGHT)
    score += late_fee_bonus(obligation.late_fee_cents)

    if obligation.auto_pay:
        score -= AUTO_PAY_PENALTY

    score -= STATUS_PENALTIES.get(obligation.status, 0)

    return min(100, max(0, score))


def urgency_level(score: int) -> str:
    """
    Map urgency score to a level.

    - 70+:   critical
    - 50-69: high
    - 30-49: medium
    - <30:   low
    """
    if score >= 70:
        return "critical"
    elif score >= 50:
        return "high"
    elif score >= 30:
        return "medium"
    return "low"


def score_obligation(obligation: Obligation, today: date) -> Tuple[int, str]:
    """Main entry point: score an obligation and label its urgency level"""
    score = compute_urgency_score(obligation, today)
    return score, urgency_level(score)
