"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import date
from typing import Dict, List, Literal, Optional


class ScoreRequest(BaseModel):
    """Request body for POST /v1/obligations/score"""

    category: str = Field(..., min_length=1, description="Obligation category, e.g. utility or legal")
    due_date: Optional[str] = Field(None, description="ISO date; invalid values skip the time-pressure term")
    status: str = "pending"
    auto_pay: bool = False
    late_fee_cents: Optional[float] = None
    grace_period_days: Optional[float] = 0


class ScoreResponse(BaseModel):
    score: int
    level: str


class RecalculateResponse(BaseModel):
    obligations_scored: int


class PayResponse(BaseModel):
    """Response for POST /v1/obligations/{id}/pay"""

    obligation_id: str
    payee: str
    status: str
    charge_id: Optional[str] = None


class CashPositionSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_cash_cents: int
    total_due_30d_cents: int
    surplus_cents: int


class TriageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    obligations_scored: int
    recommendations_created: int
    overdue_flipped: int
    recommendations_expired: int
    cash_position: CashPositionSchema


class MatchSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    transaction_id: str
    obligation_id: str
    payee: str
    amount_cents: int
    confidence: float


class MatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    transactions_scanned: int
    matches_found: int
    obligations_marked_paid: int
    matches: List[MatchSchema]


class ProjectionSummary(BaseModel):
    """Response for POST /v1/projections/generate"""

    model_config = ConfigDict(from_attributes=True)

    starting_balance_cents: int
    ending_balance_cents: int
    total_inflows_cents: int
    total_outflows_cents: int
    days_projected: int
    lowest_balance_cents: int
    lowest_balance_date: date


class ProjectionRowSchema(BaseModel):
    projection_date: date
    projected_inflow_cents: int
    projected_outflow_cents: int
    projected_balance_cents: int
    obligations: List[str]
    confidence: Optional[float] = None


class RevenueDiscoveryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sources_discovered: int
    sources_updated: int
    total_monthly_expected_cents: int


class RevenueSourceSchema(BaseModel):
    id: str
    source: str
    description: str
    amount_cents: int
    recurrence: Optional[str] = None
    next_expected_date: Optional[date] = None
    confidence: float
    verified_by: Optional[str] = None
    status: str


class PlanOptionsRequest(BaseModel):
    """Request body for payment plan generation and simulation"""

    strategy: Optional[str] = Field(None, description="optimal | conservative | aggressive")
    horizon_days: int = Field(90, ge=1, le=365)
    defer_ids: List[str] = Field(default_factory=list)
    pay_early_ids: List[str] = Field(default_factory=list)
    custom_amounts: Dict[str, int] = Field(default_factory=dict, description="Obligation id -> cents")


class ScheduleEntrySchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: date
    obligation_id: str
    payee: str
    amount_cents: int
    account_id: Optional[str] = None
    action: str
    balance_before_cents: int
    balance_after_cents: int
    grace_used: bool = False
    escalation_risk: Optional[str] = None


class PlanWarningSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: date
    message: str
    severity: str


class RevenueSummarySchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    source: str
    monthly_cents: int
    confidence: float


class PaymentPlanResponse(BaseModel):
    """A simulated plan; plan_id and status are set once it is persisted"""

    model_config = ConfigDict(from_attributes=True)

    plan_id: Optional[str] = None
    status: Optional[str] = None
    plan_type: str
    horizon_days: int
    starting_balance_cents: int
    ending_balance_cents: int
    lowest_balance_cents: int
    lowest_balance_date: Optional[date] = None
    total_inflows_cents: int
    total_outflows_cents: int
    total_late_fees_avoided_cents: int
    total_late_fees_risked_cents: int
    schedule: List[ScheduleEntrySchema]
    warnings: List[PlanWarningSchema]
    revenue_summary: List[RevenueSummarySchema] = Field(default_factory=list)


class ScheduleResponse(BaseModel):
    """Response for GET /v1/payment-plan/{plan_id}/schedule"""

    plan_id: str
    schedule: List[ScheduleEntrySchema]
    warnings: List[PlanWarningSchema]


class ActivateResponse(BaseModel):
    plan_id: str
    status: str


class QueueItemSchema(BaseModel):
    """Single actionable item in the swipe queue"""

    id: str
    rec_type: str
    priority: int
    title: str
    reasoning: str
    action_type: Optional[str] = None
    estimated_savings_cents: Optional[int] = None
    obligation_id: Optional[str] = None
    dispute_id: Optional[str] = None
    legal_deadline_id: Optional[str] = None
    confidence: float
    live_confidence: float
    obligation_payee: Optional[str] = None
    obligation_amount_cents: Optional[int] = None
    obligation_due_date: Optional[date] = None
    obligation_category: Optional[str] = None
    obligation_status: Optional[str] = None


class DecideRequest(BaseModel):
    """Request body for POST /v1/queue/{id}/decide"""

    decision: Literal["approved", "rejected", "deferred", "modified"]
    modified_action: Optional[str] = None
    session_id: Optional[str] = None


class NextItemSchema(BaseModel):
    id: str
    title: str
    rec_type: str
    priority: int


class DecideResponse(BaseModel):
    decided: str
    decision: str
    feedback_id: str
    next: Optional[NextItemSchema] = None


class DecisionStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    approved: int
    rejected: int
    deferred: int
    modified: int
    total: int
    savings_cents: int


class HistoryItem(BaseModel):
    """Single decision in the queue history"""

    feedback_id: str
    recommendation_id: str
    decision: str
    title: str
    rec_type: str
    original_action: Optional[str] = None
    modified_action: Optional[str] = None
    outcome_status: Optional[str] = None
    created_at: str


class HistoryResponse(BaseModel):
    decisions: List[HistoryItem]


class OutcomeRequest(BaseModel):
    status: Literal["succeeded", "failed", "partial"]


class OutcomeResponse(BaseModel):
    feedback_id: str
    outcome_status: str


class PhaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    phase: str
    succeeded: bool
    records: int
    error: Optional[str] = None


class SyncResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    source: str
    status: str
    records_synced: int
    phases: List[PhaseSchema]
