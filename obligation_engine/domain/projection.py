"""Cash-flow projection - day-by-day balance forecast over a fixed horizon"""

from datetime import date, timedelta
from typing import List

from obligation_engine.domain.models import Obligation, ProjectionDay, ProjectionResult
from obligation_engine.utils.date_utils import clamp_day, parse_date


def occurs_on(obligation: Obligation, day: date) -> bool:
    """
    Whether an obligation's recurrence lands on the given date.

    Recurring obligations only start once the date reaches their first due
    date. Monthly and quarterly days past the end of a month (e.g. the 31st)
    fall on the month's last day.
    """
    due = parse_date(obligation.due_date)
    if due is None:
        return False

    recurrence = obligation.recurrence
    if not obligation.is_recurring:
        return day == due
    if day < due:
        return False

    if recurrence == "monthly":
        return _on_recurrence_day(obligation, due, day)
    if recurrence == "quarterly":
        return (day.month - due.month) % 3 == 0 and _on_recurrence_day(obligation, due, day)
    if recurrence == "annual":
        return day.month == due.month and day.day == clamp_day(day.year, day.month, due.day)
    return False


def _on_recurrence_day(obligation: Obligation, due: date, day: date) -> bool:
    recurrence_day = obligation.recurrence_day or due.day
    return day.day == clamp_day(day.year, day.month, recurrence_day)


def forecast_confidence(day_index: int) -> float:
    """Confidence decays with forecast distance"""
    if day_index < 30:
        return 0.9
    elif day_index < 60:
        return 0.7
    return 0.5


def should_persist(day: ProjectionDay, days: int) -> bool:
    """Write the first day, weekly checkpoints, any day with outflows, and the last day"""
    return (
        day.day_index == 0
        or day.day_index % 7 == 0
        or day.outflow_cents > 0
        or day.day_index == days - 1
    )


def build_projection(
    starting_balance_cents: int,
    obligations: List[Obligation],
    avg_monthly_inflow_cents: int,
    today: date,
    days: int = 90,
) -> ProjectionResult:
    """
    Simulate the balance forward one day at a time.

    Inflow is spread flat: average monthly inflow / 30 per day.
    Non-recurring obligations that are already past due land on day 0.
    """
    daily_inflow = round(avg_monthly_inflow_cents / 30)

    running_balance = starting_balance_cents
    total_inflows = 0
    total_outflows = 0
    lowest_balance = starting_balance_cents
    lowest_balance_date = today
    projection_days: List[ProjectionDay] = []

    for day_index in range(days):
        day = today + timedelta(days=day_index)
        day_outflow = 0
        payees: List[str] = []

        for ob in obligations:
            amount = ob.amount_cents
            if amount <= 0:
                continue

            due = parse_date(ob.due_date)
            matches = occurs_on(ob, day)
            if not ob.is_recurring and due is not None and due < today and day_index == 0:
                matches = True

            if matches:
                day_outflow += amount
                payees.append(ob.payee)

        total_inflows += daily_inflow
        total_outflows += day_outflow
        running_balance = running_balance + daily_inflow - day_outflow

        if running_balance < lowest_balance:
            lowest_balance = running_balance
            lowest_balance_date = day

        projection_days.append(
            ProjectionDay(
                day_index=day_index,
                date=day,
                inflow_cents=daily_inflow,
                outflow_cents=day_outflow,
                balance_cents=running_balance,
                obligations=payees,
            )
        )

    return ProjectionResult(
        starting_balance_cents=starting_balance_cents,
        ending_balance_cents=running_balance,
        total_inflows_cents=total_inflows,
        total_outflows_cents=total_outflows,
        days_projected=days,
        lowest_balance_cents=lowest_balance,
        lowest_balance_date=lowest_balance_date,
        days=projection_days,
    )
