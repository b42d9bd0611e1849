"""
Payment planner - strategy-driven day-by-day payment simulation.

Unlike the cash-flow projector, the planner makes a decision for every due
obligation (pay in full, pay the minimum, defer inside the grace period, or
flag at risk) and keeps running totals of fees avoided and risked.

Strategies:
    optimal      - minimize total cost (late fees)
    conservative - keep a cash buffer, pay minimums when paying in full would dip below it
    aggressive   - push payments into grace periods, maximize cash on hand
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional, Set, Tuple

from obligation_engine.domain.exceptions import InvalidPlanOptionsError
from obligation_engine.domain.models import (
    Account,
    Obligation,
    PaymentPlanResult,
    PlanOptions,
    PlanWarning,
    RevenueSource,
    RevenueSummary,
    ScheduleEntry,
)
from obligation_engine.domain.money import format_dollars, round_cents, safe_cents
from obligation_engine.domain.projection import occurs_on
from obligation_engine.domain.urgency import compute_urgency_score, sanitize_grace_days
from obligation_engine.utils.date_utils import add_months, clamp_day, month_start, parse_date

STRATEGIES = ("optimal", "conservative", "aggressive")
MAX_HORIZON_DAYS = 365

CRITICAL_ESCALATIONS = ("collections", "legal")


@dataclass
class PlannerPolicy:
    """Tunable weights; the service layer fills these from settings"""

    conservative_buffer_cents: int = 50_000
    escalation_multipliers: Dict[str, float] = field(
        default_factory=lambda: {"collections": 1.5, "service_shutoff": 1.3, "legal": 1.8}
    )
    credit_impact_threshold: int = 50
    credit_impact_multiplier: float = 1.2


def validate_options(options: PlanOptions) -> None:
    if options.strategy not in STRATEGIES:
        raise InvalidPlanOptionsError(f"Unknown strategy: {options.strategy}")
    if not 1 <= options.horizon_days <= MAX_HORIZON_DAYS:
        raise InvalidPlanOptionsError(f"horizon_days must be between 1 and {MAX_HORIZON_DAYS}")
    for obligation_id, amount in options.custom_amounts.items():
        if amount < 0:
            raise InvalidPlanOptionsError(f"Custom amount for {obligation_id} is negative")


def effective_priority(obligation: Obligation, today: date, policy: PlannerPolicy) -> float:
    """Urgency weighted by the severity of what happens if it goes unpaid"""
    score = obligation.urgency_score
    if score is None:
        score = compute_urgency_score(obligation, today)

    weight = policy.escalation_multipliers.get(obligation.escalation_type or "", 1.0)
    if obligation.credit_impact_score and obligation.credit_impact_score > policy.credit_impact_threshold:
        weight *= policy.credit_impact_multiplier

    return score * weight


def build_revenue_calendar(
    sources: List[RevenueSource],
    today: date,
    horizon_days: int,
) -> Dict[date, int]:
    """
    Expected inflow per date, weighted by each source's confidence.

    - monthly with a recurrence day: that day of every month in the horizon
    - monthly with only a next expected date: that date, then monthly after it
    - anything else: once, on the next expected date
    """
    end = today + timedelta(days=horizon_days)
    calendar: Dict[date, int] = defaultdict(int)

    for rev in sources:
        amount = round_cents(rev.amount_cents * rev.confidence)
        if amount <= 0:
            continue

        if rev.recurrence == "monthly" and rev.recurrence_day:
            first = month_start(today)
            for m in range(horizon_days // 28 + 2):
                anchor = add_months(first, m)
                day = anchor.replace(day=clamp_day(anchor.year, anchor.month, rev.recurrence_day))
                if today <= day < end:
                    calendar[day] += amount
        elif rev.recurrence == "monthly" and rev.next_expected_date:
            k = 0
            day = rev.next_expected_date
            while day < end:
                if day >= today:
                    calendar[day] += amount
                k += 1
                day = add_months(rev.next_expected_date, k)
        elif rev.next_expected_date and today <= rev.next_expected_date < end:
            calendar[rev.next_expected_date] += amount

    return dict(calendar)


def _scheduled_today(
    obligation: Obligation,
    day: date,
    day_index: int,
    today: date,
    options: PlanOptions,
) -> Tuple[bool, bool]:
    """
    Returns (due on this day, falls inside the grace window).

    Non-recurring obligations: past due or paid early -> day 0; under the
    aggressive strategy the payment moves to the end of the grace period.
    """
    due = parse_date(obligation.due_date)
    if due is None:
        return False, False

    if obligation.is_recurring:
        return occurs_on(obligation, day), False

    if due < today or obligation.id in options.pay_early_ids:
        return day_index == 0, False

    grace = sanitize_grace_days(obligation.grace_period_days)
    if options.strategy == "aggressive" and grace > 0:
        return day == due + timedelta(days=grace), True
    return day == due, False


def simulate_payment_plan(
    accounts: List[Account],
    obligations: List[Obligation],
    revenue_sources: List[RevenueSource],
    options: PlanOptions,
    today: date,
    policy: Optional[PlannerPolicy] = None,
) -> PaymentPlanResult:
    """
    Main entry point: walk the horizon day by day and decide every payment.

    Requirements:
    - Revenue for a day is posted before that day's obligations
    - Obligations are evaluated in descending effective priority
    - Grace-period deferral is usable once per obligation
    - ending balance == starting + inflows - outflows, exactly, in cents
    """
    validate_options(options)
    policy = policy or PlannerPolicy()
    strategy = options.strategy
    horizon = options.horizon_days
    end = today + timedelta(days=horizon)
    skip_ids = set(options.defer_ids)

    starting_balance = sum(a.current_balance_cents for a in accounts)
    default_account_id = accounts[0].id if accounts else None

    # Stable sort keeps the loaded due-date order among equal priorities
    ordered = sorted(
        (ob for ob in obligations if ob.id not in skip_ids),
        key=lambda ob: effective_priority(ob, today, policy),
        reverse=True,
    )
    revenue_by_date = build_revenue_calendar(revenue_sources, today, horizon)

    schedule: List[ScheduleEntry] = []
    warnings: List[PlanWarning] = []
    running_balance = starting_balance
    total_inflows = 0
    total_outflows = 0
    lowest_balance = starting_balance
    lowest_balance_date = today
    late_fees_avoided = 0
    late_fees_risked = 0

    grace_spent: Set[str] = set()
    reevaluate_on: Dict[date, Set[str]] = defaultdict(set)

    for day_index in range(horizon):
        day = today + timedelta(days=day_index)

        day_revenue = revenue_by_date.get(day, 0)
        if day_revenue > 0:
            running_balance += day_revenue
            total_inflows += day_revenue

        reevaluations = reevaluate_on.pop(day, set())

        for ob in ordered:
            is_due, grace_shift = _scheduled_today(ob, day, day_index, today, options)
            in_grace = grace_shift or ob.id in reevaluations
            if not is_due and ob.id not in reevaluations:
                continue

            amount = options.custom_amounts.get(ob.id, ob.amount_cents)
            if amount <= 0:
                continue

            minimum = ob.amount_minimum_cents if ob.amount_minimum_cents and ob.amount_minimum_cents > 0 else None
            late_fee = safe_cents(ob.late_fee_cents)
            grace = sanitize_grace_days(ob.grace_period_days)
            if in_grace:
                grace_spent.add(ob.id)

            escalation_risk: Optional[str] = None
            balance_before = running_balance

            if running_balance >= amount:
                if (
                    strategy == "conservative"
                    and minimum is not None
                    and running_balance - amount < policy.conservative_buffer_cents
                ):
                    pay_amount = min(minimum, amount)
                    action = "pay_minimum"
                else:
                    pay_amount = amount
                    action = "pay_full"
            elif minimum is not None and running_balance >= minimum:
                pay_amount = minimum
                action = "pay_minimum"
                if strategy == "optimal":
                    late_fees_avoided += late_fee
            elif strategy == "aggressive" and grace > 0 and ob.id not in grace_spent:
                pay_amount = 0
                action = "defer"
                in_grace = True
                grace_spent.add(ob.id)
                deadline = day + timedelta(days=grace)
                if deadline < end:
                    reevaluate_on[deadline].add(ob.id)
                warnings.append(
                    PlanWarning(
                        date=day,
                        message=f"{ob.payee}: using {grace}-day grace period. Must pay by {deadline.isoformat()}",
                        severity="warning",
                    )
                )
            else:
                pay_amount = 0
                action = "at_risk"
                escalation_risk = ob.escalation_type or "late_fee"
                late_fees_risked += late_fee
                risk = f"Risk: {ob.escalation_type}" if ob.escalation_type else f"Late fee: {format_dollars(late_fee)}"
                warnings.append(
                    PlanWarning(
                        date=day,
                        message=(
                            f"{ob.payee}: insufficient funds ({format_dollars(running_balance, 0)} available, "
                            f"{format_dollars(amount, 0)} due). {risk}"
                        ),
                        severity="critical" if ob.escalation_type in CRITICAL_ESCALATIONS else "warning",
                    )
                )

            if pay_amount > 0:
                running_balance -= pay_amount
                total_outflows += pay_amount

            schedule.append(
                ScheduleEntry(
                    date=day,
                    obligation_id=ob.id,
                    payee=ob.payee,
                    amount_cents=pay_amount,
                    account_id=ob.preferred_account_id or default_account_id,
                    action=action,
                    balance_before_cents=balance_before,
                    balance_after_cents=running_balance,
                    grace_used=in_grace,
                    escalation_risk=escalation_risk,
                )
            )

        if running_balance < lowest_balance:
            lowest_balance = running_balance
            lowest_balance_date = day

    revenue_summary = [
        RevenueSummary(source=r.description, monthly_cents=r.amount_cents, confidence=r.confidence)
        for r in revenue_sources
    ]

    return PaymentPlanResult(
        plan_type=strategy,
        horizon_days=horizon,
        starting_balance_cents=starting_balance,
        ending_balance_cents=running_balance,
        lowest_balance_cents=lowest_balance,
        lowest_balance_date=lowest_balance_date,
        total_inflows_cents=total_inflows,
        total_outflows_cents=total_outflows,
        total_late_fees_avoided_cents=late_fees_avoided,
        total_late_fees_risked_cents=late_fees_risked,
        schedule=schedule,
        warnings=warnings,
        revenue_summary=revenue_summary,
    )
