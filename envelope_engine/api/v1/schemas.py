"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import date
from typing import Dict, List, Optional

from envelope_engine.domain.exceptions import NoIncomeCapacity, NonConvergentPayment
from envelope_engine.domain.models import (
    AllocationPlan,
    FundingStatus,
    GapStatus,
    PaymentStrategy,
    PayoffComparison,
    PayoffProjection,
    StrategyComparison,
    StrategyResult,
)


class DomainSchema(BaseModel):
    """Base for responses built straight from domain dataclasses"""

    model_config = ConfigDict(from_attributes=True)


# Predictions


class BalancePointSchema(DomainSchema):
    date: date
    balance_cents: int


class DueEventSchema(DomainSchema):
    date: date
    required_cents: int
    balance_before_cents: int
    balance_after_cents: int
    status: FundingStatus
    shortfall_cents: int


class SuggestionSchema(DomainSchema):
    type: str
    message: str
    action_amount_cents: Optional[int] = None


class PredictionResponse(DomainSchema):
    """Response for GET /v1/envelopes/{envelope_id}/prediction"""

    envelope_id: str
    status: FundingStatus
    current_balance_cents: int
    projected_balance_cents: int
    target_amount_cents: int
    total_funding_cents: int
    shortfall_cents: int
    status_date: Optional[date] = None
    days_until_due: Optional[int] = None
    points: List[BalancePointSchema]
    due_events: List[DueEventSchema]
    suggestions: List[SuggestionSchema]


class PredictionListResponse(BaseModel):
    """Response for GET /v1/predictions"""

    user_id: str
    horizon_end: date
    predictions: List[PredictionResponse]


# Opening balance


class OpeningBalanceRequest(BaseModel):
    """Request body for POST /v1/opening-balance"""

    target_amount_cents: int = Field(..., ge=0, description="Amount due on each due date")
    frequency: str = Field(..., description="Envelope cadence, e.g. monthly")
    due_date: date = Field(..., description="Known due date; rolled forward when in the past")
    per_cycle_allocation_cents: int = Field(..., ge=0, description="Amount committed each pay")
    pay_cycle: str = Field(..., description="Pay frequency, e.g. fortnightly")
    next_pay_date: Optional[date] = Field(None, description="Next pay date (default: today)")


class OpeningBalanceResponse(DomainSchema):
    opening_balance_needed_cents: int
    is_fully_funded: bool
    cycles_until_due: int
    naturally_accumulated_cents: int
    first_due_date: date
    warning: Optional[str] = None


# Allocations


class WarningSchema(BaseModel):
    """Non-fatal condition reported alongside a result"""

    type: str
    message: str
    shortfall_cents: Optional[int] = None
    envelope_ids: List[str] = Field(default_factory=list)

    @classmethod
    def from_capacity(cls, warning: NoIncomeCapacity) -> "WarningSchema":
        return cls(
            type="no_income_capacity",
            message=str(warning),
            shortfall_cents=warning.shortfall_cents,
            envelope_ids=list(warning.envelope_ids),
        )

    @classmethod
    def from_payoff(cls, warning: Optional[NonConvergentPayment]) -> Optional["WarningSchema"]:
        if warning is None:
            return None
        return cls(type="non_convergent_payment", message=str(warning))


class SuggestedAllocationSchema(DomainSchema):
    envelope_id: str
    ideal_per_pay_cents: int
    allocated_per_pay_cents: int
    allocations_by_income_source_id: Dict[str, int]
    shortfall_cents: int
    is_fully_funded: bool
    is_locked: bool


class AllocationPlanResponse(BaseModel):
    """Response for GET /v1/allocations/suggestions"""

    user_id: str
    reference_frequency: str
    suggestions: List[SuggestedAllocationSchema]
    remaining_capacity_cents: Dict[str, int]
    warnings: List[WarningSchema]

    @classmethod
    def from_plan(cls, user_id: str, plan: AllocationPlan) -> "AllocationPlanResponse":
        return cls(
            user_id=user_id,
            reference_frequency=plan.reference_frequency.value,
            suggestions=[SuggestedAllocationSchema.model_validate(s) for s in plan.suggestions],
            remaining_capacity_cents=plan.remaining_capacity_cents,
            warnings=[WarningSchema.from_capacity(w) for w in plan.warnings],
        )


class AllocationRequest(BaseModel):
    """Request body for POST /v1/allocations"""

    user_id: str = Field(..., min_length=1, description="User identifier")
    envelope_id: str = Field(..., min_length=1)
    income_source_id: str = Field(..., min_length=1)
    amount_cents: int = Field(..., ge=0, description="Amount per pay event of the income source")
    is_surplus: bool = Field(False, description="Intentional over-allocation beyond the ideal")


class AllocationResponse(DomainSchema):
    envelope_id: str
    income_source_id: str
    amount_cents: int
    is_locked: bool
    is_surplus: bool


class LockResponse(BaseModel):
    """Response for POST /v1/allocations/{envelope_id}/lock and /unlock"""

    envelope_id: str
    is_locked: bool
    allocations_changed: int


class GapRecordSchema(DomainSchema):
    envelope_id: str
    ideal_per_pay_cents: int
    pay_cycles_elapsed: int
    expected_balance_cents: int
    actual_balance_cents: int
    gap_cents: int
    status: GapStatus
    is_locked: bool


class GapAnalysisResponse(BaseModel):
    """Response for GET /v1/allocations/gap-analysis"""

    user_id: str
    reference_frequency: str
    slight_deviation_cents: int
    records: List[GapRecordSchema]


# Debt payoff


class PayoffMonthSchema(DomainSchema):
    month: int
    date: date
    payment_cents: int
    interest_cents: int
    principal_cents: int
    balance_cents: int


class PayoffResponse(BaseModel):
    """Single-balance payoff projection"""

    account_id: Optional[str] = None
    monthly_payment_cents: int
    apr: float
    starting_balance_cents: int
    projected_payoff_date: Optional[date] = None
    months_to_payoff: Optional[int] = None
    total_interest_cents: int
    converges: bool
    warning: Optional[WarningSchema] = None
    schedule: List[PayoffMonthSchema]

    @classmethod
    def from_projection(cls, projection: PayoffProjection) -> "PayoffResponse":
        return cls(
            account_id=projection.account_id,
            monthly_payment_cents=projection.monthly_payment_cents,
            apr=projection.apr,
            starting_balance_cents=projection.starting_balance_cents,
            projected_payoff_date=projection.projected_payoff_date,
            months_to_payoff=projection.months_to_payoff,
            total_interest_cents=projection.total_interest_cents,
            converges=projection.converges,
            warning=WarningSchema.from_payoff(projection.warning),
            schedule=[PayoffMonthSchema.model_validate(row) for row in projection.schedule],
        )


class PayoffRequest(BaseModel):
    """Request body for POST /v1/debts/payoff"""

    balance_cents: int = Field(..., ge=0)
    apr: float = Field(..., ge=0, description="Annual rate as a fraction, 0.1999 = 19.99%")
    monthly_payment_cents: int = Field(..., ge=0)
    extra_principal_cents: int = Field(0, ge=0)
    alternative_payment_cents: Optional[int] = Field(None, ge=0, description="What-if monthly payment")
    target_months: Optional[int] = Field(None, gt=0, description="Solve for the payment clearing the debt in N months")


class PayoffComparisonSchema(BaseModel):
    alternative: PayoffResponse
    months_saved: Optional[int] = None
    interest_saved_cents: Optional[int] = None
    additional_monthly_payment_cents: int

    @classmethod
    def from_comparison(cls, comparison: PayoffComparison) -> "PayoffComparisonSchema":
        return cls(
            alternative=PayoffResponse.from_projection(comparison.alternative),
            months_saved=comparison.months_saved,
            interest_saved_cents=comparison.interest_saved_cents,
            additional_monthly_payment_cents=comparison.additional_monthly_payment_cents,
        )


class PayoffCalculatorResponse(BaseModel):
    """Response for POST /v1/debts/payoff"""

    projection: PayoffResponse
    minimum_payment_cents: int
    comparison: Optional[PayoffComparisonSchema] = None
    payment_for_target_months_cents: Optional[int] = None


class AccountPayoffSchema(DomainSchema):
    account_id: str
    payoff_month: Optional[int] = None
    payoff_date: Optional[date] = None
    interest_paid_cents: int


class StrategyResultSchema(BaseModel):
    strategy: PaymentStrategy
    monthly_budget_cents: int
    months_to_payoff: Optional[int] = None
    debt_free_date: Optional[date] = None
    total_interest_cents: int
    payoff_order: List[str]
    accounts: List[AccountPayoffSchema]
    converges: bool
    warning: Optional[WarningSchema] = None

    @classmethod
    def from_result(cls, result: StrategyResult) -> "StrategyResultSchema":
        return cls(
            strategy=result.strategy,
            monthly_budget_cents=result.monthly_budget_cents,
            months_to_payoff=result.months_to_payoff,
            debt_free_date=result.debt_free_date,
            total_interest_cents=result.total_interest_cents,
            payoff_order=result.payoff_order,
            accounts=[AccountPayoffSchema.model_validate(a) for a in result.accounts],
            converges=result.converges,
            warning=WarningSchema.from_payoff(result.warning),
        )


class StrategyComparisonResponse(BaseModel):
    """Response for GET /v1/debts/strategies"""

    user_id: str
    avalanche: StrategyResultSchema
    snowball: StrategyResultSchema
    interest_difference_cents: int
    months_difference: Optional[int] = None
    recommended: PaymentStrategy

    @classmethod
    def from_comparison(cls, user_id: str, comparison: StrategyComparison) -> "StrategyComparisonResponse":
        return cls(
            user_id=user_id,
            avalanche=StrategyResultSchema.from_result(comparison.avalanche),
            snowball=StrategyResultSchema.from_result(comparison.snowball),
            interest_difference_cents=comparison.interest_difference_cents,
            months_difference=comparison.months_difference,
            recommended=comparison.recommended,
        )
