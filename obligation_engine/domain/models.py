"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional

NON_RECURRING = (None, "", "none", "one_time")


@dataclass
class Account:
    """Balance-bearing account; only read by the engine"""

    id: str
    account_type: str
    current_balance_cents: int = 0
    account_name: str = ""
    source: str = ""


@dataclass
class Obligation:
    """Bill, debt or duty with a due date"""

    id: str = ""
    payee: str = ""
    category: str = ""
    amount_due_cents: Optional[int] = None
    amount_minimum_cents: Optional[int] = None
    due_date: date | str | None = None
    recurrence: Optional[str] = None
    recurrence_day: Optional[int] = None
    status: str = "pending"
    auto_pay: bool = False
    negotiable: bool = False
    late_fee_cents: Optional[float] = None
    grace_period_days: Optional[float] = 0
    urgency_score: Optional[int] = None
    action_type: Optional[str] = None
    escalation_type: Optional[str] = None
    credit_impact_score: Optional[int] = None
    preferred_account_id: Optional[str] = None

    @property
    def amount_cents(self) -> int:
        """Amount due, falling back to the minimum; 0 when neither is set"""
        if self.amount_due_cents is not None:
            return self.amount_due_cents
        return self.amount_minimum_cents or 0

    @property
    def is_recurring(self) -> bool:
        return self.recurrence not in NON_RECURRING


@dataclass
class Transaction:
    """Observed money movement"""

    id: str
    account_id: Optional[str]
    amount_cents: int  # always a non-negative magnitude
    direction: str  # "inflow" or "outflow"
    tx_date: date
    description: str = ""
    counterparty: Optional[str] = None
    obligation_id: Optional[str] = None
    kind: Optional[str] = None  # e.g. "internalTransfer" from sync metadata


@dataclass
class RevenueSource:
    """Discovered or declared recurring inflow"""

    id: str
    description: str
    amount_cents: int
    confidence: float
    recurrence: Optional[str] = None
    recurrence_day: Optional[int] = None
    next_expected_date: Optional[date] = None
    source: str = ""
    account_id: Optional[str] = None


@dataclass
class Dispute:
    id: str
    title: str
    counterparty: str
    priority: int = 5
    amount_at_stake_cents: Optional[int] = None
    next_action: Optional[str] = None
    next_action_date: Optional[date] = None


@dataclass
class LegalDeadline:
    id: str
    title: str
    case_ref: str
    deadline_date: datetime


@dataclass
class RecommendationDraft:
    """Recommendation produced by the triage rule ladder, before persistence"""

    rec_type: str
    priority: int
    title: str
    reasoning: str
    action_type: str
    obligation_id: Optional[str] = None
    dispute_id: Optional[str] = None
    legal_deadline_id: Optional[str] = None
    estimated_savings_cents: Optional[int] = None
    payee: Optional[str] = None


@dataclass
class CashPosition:
    total_cash_cents: int
    total_due_30d_cents: int
    surplus_cents: int


@dataclass
class TriageResult:
    obligations_scored: int
    recommendations_created: int
    overdue_flipped: int
    recommendations_expired: int
    cash_position: CashPosition


@dataclass
class MatchRecord:
    transaction_id: str
    obligation_id: str
    payee: str
    amount_cents: int
    confidence: float


@dataclass
class MatchResult:
    transactions_scanned: int
    matches_found: int
    obligations_marked_paid: int
    matches: List[MatchRecord] = field(default_factory=list)


@dataclass
class ProjectionDay:
    day_index: int
    date: date
    inflow_cents: int
    outflow_cents: int
    balance_cents: int
    obligations: List[str] = field(default_factory=list)


@dataclass
class ProjectionResult:
    starting_balance_cents: int
    ending_balance_cents: int
    total_inflows_cents: int
    total_outflows_cents: int
    days_projected: int
    lowest_balance_cents: int
    lowest_balance_date: date
    days: List[ProjectionDay] = field(default_factory=list)


@dataclass
class CashflowProjectionRow:
    """Persisted checkpoint of a projection day"""

    projection_date: date
    inflow_cents: int
    outflow_cents: int
    balance_cents: int
    obligations: List[str]
    confidence: float


@dataclass
class InflowPattern:
    """Monthly-aggregated inflow history for one counterparty on one account"""

    counterparty: str
    account_id: Optional[str]
    source: str
    monthly_totals: Dict[date, int]

    @property
    def occurrence_count(self) -> int:
        return len(self.monthly_totals)

    @property
    def avg_amount_cents(self) -> int:
        if not self.monthly_totals:
            return 0
        return round(sum(self.monthly_totals.values()) / len(self.monthly_totals))

    @property
    def min_amount_cents(self) -> int:
        return min(self.monthly_totals.values(), default=0)

    @property
    def max_amount_cents(self) -> int:
        return max(self.monthly_totals.values(), default=0)

    @property
    def last_month(self) -> date:
        return max(self.monthly_totals)


@dataclass
class RevenueAssessment:
    counterparty: str
    account_id: Optional[str]
    source: str
    amount_cents: int
    confidence: float
    verified_by: str
    recurrence: str
    next_expected_date: date


@dataclass
class RevenueDiscoveryResult:
    sources_discovered: int
    sources_updated: int
    total_monthly_expected_cents: int


@dataclass
class PlanOptions:
    strategy: str = "optimal"
    horizon_days: int = 90
    defer_ids: List[str] = field(default_factory=list)
    pay_early_ids: List[str] = field(default_factory=list)
    custom_amounts: Dict[str, int] = field(default_factory=dict)  # obligation id -> cents


@dataclass
class ScheduleEntry:
    date: date
    obligation_id: str
    payee: str
    amount_cents: int
    account_id: Optional[str]
    action: str  # pay_full | pay_minimum | defer | at_risk
    balance_before_cents: int
    balance_after_cents: int
    grace_used: bool = False
    escalation_risk: Optional[str] = None


@dataclass
class PlanWarning:
    date: date
    message: str
    severity: str  # info | warning | critical


@dataclass
class RevenueSummary:
    source: str
    monthly_cents: int
    confidence: float


@dataclass
class PaymentPlanResult:
    plan_type: str
    horizon_days: int
    starting_balance_cents: int
    ending_balance_cents: int
    lowest_balance_cents: int
    lowest_balance_date: date
    total_inflows_cents: int
    total_outflows_cents: int
    total_late_fees_avoided_cents: int
    total_late_fees_risked_cents: int
    schedule: List[ScheduleEntry] = field(default_factory=list)
    warnings: List[PlanWarning] = field(default_factory=list)
    revenue_summary: List[RevenueSummary] = field(default_factory=list)


@dataclass
class DecisionCounts:
    """Decision tallies over the learning window"""

    approved: int = 0
    rejected: int = 0
    deferred: int = 0
    modified: int = 0

    @property
    def total(self) -> int:
        return self.approved + self.rejected + self.deferred + self.modified


@dataclass
class DecisionStats:
    approved: int
    rejected: int
    deferred: int
    modified: int
    total: int
    savings_cents: int


@dataclass
class PhaseOutcome:
    phase: str
    succeeded: bool
    records: int = 0
    error: Optional[str] = None


@dataclass
class SyncRunResult:
    source: str
    status: str  # completed | error
    records_synced: int
    phases: List[PhaseOutcome] = field(default_factory=list)
