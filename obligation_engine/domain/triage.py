"""Triage rules - turn scored obligations, disputes and deadlines into recommendations"""

import math
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from obligation_engine.domain.models import (
    CashPosition,
    Dispute,
    LegalDeadline,
    Obligation,
    RecommendationDraft,
)
from obligation_engine.domain.money import format_dollars, round_cents, safe_cents
from obligation_engine.domain.urgency import urgency_level
from obligation_engine.utils.date_utils import parse_date

NEGOTIATE_MIN_AMOUNT_CENTS = 10_000  # $100
NEGOTIATE_SAVINGS_RATE = 0.15
MINIMUM_PAYMENT_SURPLUS_CENTS = 50_000  # $500
NEVER_DEFER_CATEGORIES = ("mortgage", "legal")
LEGAL_LOOKAHEAD_DAYS = 14
DISPUTE_ACTION_WINDOW_DAYS = 30

DEDUP_MODES = ("title", "content")


def compute_cash_position(total_cash_cents: int, total_due_30d_cents: int) -> CashPosition:
    return CashPosition(
        total_cash_cents=total_cash_cents,
        total_due_30d_cents=total_due_30d_cents,
        surplus_cents=total_cash_cents - total_due_30d_cents,
    )


def obligation_recommendations(
    obligation: Obligation,
    score: int,
    surplus_cents: int,
    today: date,
) -> List[RecommendationDraft]:
    """
    Apply the rule ladder to one obligation. Rules are independent, so one
    obligation can yield several recommendations.

    - critical, not auto-pay                     -> pay now
    - high, negotiable, over $100                -> negotiate (15% savings estimate)
    - cash negative, medium, not auto-pay,
      not mortgage/legal                         -> defer
    - credit card, minimum < due, surplus < $500 -> pay minimum
    """
    recs: List[RecommendationDraft] = []
    level = urgency_level(score)
    amount = obligation.amount_cents
    payee = obligation.payee
    late_fee = safe_cents(obligation.late_fee_cents)
    due = parse_date(obligation.due_date)
    days_until = (due - today).days if due is not None else 0

    if level == "critical" and not obligation.auto_pay:
        if days_until < 0:
            fee_note = f" Late fee: {format_dollars(late_fee)}." if late_fee else ""
            reasoning = f"{payee} is {abs(days_until)} days overdue.{fee_note} Pay now to avoid further penalties."
        else:
            when = "due today" if days_until == 0 else f"due in {days_until} days"
            consequence = (
                "Missing mortgage payments damages credit score."
                if obligation.category == "mortgage"
                else "Avoid late fees by paying now."
            )
            reasoning = f"{payee} is {when}. {consequence}"
        recs.append(
            RecommendationDraft(
                rec_type="payment",
                priority=1,
                title=f"Pay {payee} immediately",
                reasoning=reasoning,
                action_type=obligation.action_type or "pay_now",
                obligation_id=obligation.id,
                estimated_savings_cents=late_fee or None,
                payee=payee,
            )
        )

    if level == "high" and obligation.negotiable and amount > NEGOTIATE_MIN_AMOUNT_CENTS:
        recs.append(
            RecommendationDraft(
                rec_type="negotiate",
                priority=3,
                title=f"Negotiate {payee} - potential savings",
                reasoning=(
                    f"{payee} is marked negotiable with {format_dollars(amount)} due. "
                    "Call to request a lower rate, waived fees, or payment plan."
                ),
                action_type="negotiate",
                obligation_id=obligation.id,
                estimated_savings_cents=round_cents(amount * NEGOTIATE_SAVINGS_RATE),
                payee=payee,
            )
        )

    if (
        surplus_cents < 0
        and level == "medium"
        and not obligation.auto_pay
        and obligation.category not in NEVER_DEFER_CATEGORIES
    ):
        recs.append(
            RecommendationDraft(
                rec_type="defer",
                priority=5,
                title=f"Defer {payee} - cash is tight",
                reasoning=(
                    f"Cash surplus is {format_dollars(surplus_cents, 0)}. {payee} ({format_dollars(amount)}) "
                    f"due in {days_until} days is lower priority. Consider deferring to protect critical payments."
                ),
                action_type="defer",
                obligation_id=obligation.id,
                payee=payee,
            )
        )

    minimum = obligation.amount_minimum_cents
    if (
        obligation.category == "credit_card"
        and minimum
        and obligation.amount_due_cents
        and amount > minimum
        and surplus_cents < MINIMUM_PAYMENT_SURPLUS_CENTS
    ):
        recs.append(
            RecommendationDraft(
                rec_type="strategy",
                priority=4,
                title=f"Pay minimum on {payee} ({format_dollars(minimum)})",
                reasoning=(
                    f"Cash is limited. Pay minimum {format_dollars(minimum)} instead of full "
                    f"{format_dollars(amount)} on {payee} to preserve cash for higher-priority obligations."
                ),
                action_type="pay_minimum",
                obligation_id=obligation.id,
                estimated_savings_cents=amount - minimum,
                payee=payee,
            )
        )

    return recs


def dispute_recommendation(dispute: Dispute, today: date) -> Optional[RecommendationDraft]:
    """Open disputes with a next step become a recommendation"""
    if not dispute.next_action:
        return None

    at_stake = dispute.amount_at_stake_cents
    stake_note = f" ({format_dollars(at_stake)} at stake)" if at_stake else ""
    action_soon = (
        dispute.next_action_date is not None
        and dispute.next_action_date < today + timedelta(days=DISPUTE_ACTION_WINDOW_DAYS)
    )
    return RecommendationDraft(
        rec_type="dispute",
        priority=2 if dispute.priority <= 2 else 4,
        title=f"{dispute.counterparty}: {dispute.next_action}",
        reasoning=f"Active dispute with {dispute.counterparty}{stake_note}. Next step: {dispute.next_action}.",
        action_type="execute_action" if action_soon else "plan_action",
        dispute_id=dispute.id,
        estimated_savings_cents=at_stake or None,
    )


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def legal_recommendation(deadline: LegalDeadline, now: datetime) -> Optional[RecommendationDraft]:
    """Deadlines within two weeks; within three days they jump to priority 1"""
    deadline_at = _as_utc(deadline.deadline_date)
    days_until = math.floor((deadline_at - _as_utc(now)).total_seconds() / 86400)
    if days_until < 0 or days_until > LEGAL_LOOKAHEAD_DAYS:
        return None

    return RecommendationDraft(
        rec_type="legal",
        priority=1 if days_until <= 3 else 2,
        title=f"Prepare for: {deadline.title}",
        reasoning=(
            f"{deadline.case_ref} - {deadline.title} in {days_until} days "
            f"({deadline_at.date().isoformat()}). Ensure documents are filed and preparation is complete."
        ),
        action_type="prepare_legal",
        legal_deadline_id=deadline.id,
    )


def cash_shortfall_warning(position: CashPosition) -> Optional[RecommendationDraft]:
    if position.surplus_cents >= 0:
        return None
    return RecommendationDraft(
        rec_type="warning",
        priority=1,
        title=f"Cash shortfall: {format_dollars(position.surplus_cents, 0)} in 30 days",
        reasoning=(
            f"Available cash ({format_dollars(position.total_cash_cents, 0)}) doesn't cover 30-day obligations "
            f"({format_dollars(position.total_due_30d_cents, 0)}). Review deferrals, negotiate payment plans, "
            "or accelerate receivables."
        ),
        action_type="review_cashflow",
    )


def dedup_key(rec: RecommendationDraft, mode: str = "title") -> str:
    """
    Key under which an active recommendation suppresses a new one.

    "title" compares the rendered title; "content" compares
    type, target and action so distinct targets never collide.
    """
    if mode == "content":
        target = rec.obligation_id or rec.dispute_id or rec.legal_deadline_id or "-"
        return f"{rec.rec_type}:{target}:{rec.action_type}"
    return rec.title
