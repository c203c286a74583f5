"""Domain models - pure Python dataclasses representing budget entities"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, List, Optional

from envelope_engine.domain.exceptions import NoIncomeCapacity, NonConvergentPayment


class Frequency(str, Enum):
    """Recurrence of an income source or envelope"""

    WEEKLY = "weekly"
    FORTNIGHTLY = "fortnightly"
    TWICE_MONTHLY = "twice_monthly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"
    NONE = "none"  # one-off envelope

    @property
    def is_recurring(self) -> bool:
        return self is not Frequency.NONE


class Priority(str, Enum):
    ESSENTIAL = "essential"
    IMPORTANT = "important"
    DISCRETIONARY = "discretionary"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.ESSENTIAL: 0,
    Priority.IMPORTANT: 1,
    Priority.DISCRETIONARY: 2,
}


class EnvelopeSubtype(str, Enum):
    BILL = "bill"
    SPENDING = "spending"
    SAVINGS = "savings"
    GOAL = "goal"
    TRACKING = "tracking"
    DEBT = "debt"

    @property
    def accumulates(self) -> bool:
        """Savings and goals keep their balance on the due date instead of paying it out"""
        return self in (EnvelopeSubtype.SAVINGS, EnvelopeSubtype.GOAL)


class FundingStatus(str, Enum):
    ON_TRACK = "on_track"
    BEHIND = "behind"
    CRITICAL = "critical"

    @property
    def severity(self) -> int:
        return _FUNDING_SEVERITY[self]


_FUNDING_SEVERITY = {
    FundingStatus.ON_TRACK: 0,
    FundingStatus.BEHIND: 1,
    FundingStatus.CRITICAL: 2,
}


class GapStatus(str, Enum):
    ON_TRACK = "on_track"
    SLIGHT_DEVIATION = "slight_deviation"
    NEEDS_ATTENTION = "needs_attention"


class PaymentStrategy(str, Enum):
    MINIMUM_ONLY = "minimum_only"
    AVALANCHE = "avalanche"
    SNOWBALL = "snowball"
    CUSTOM = "custom"


@dataclass
class IncomeSource:
    """Recurring inflow, amount is per pay event"""

    id: str
    name: str
    amount_cents: int
    frequency: Frequency
    next_pay_date: date
    is_active: bool = True


@dataclass
class Envelope:
    """Budget bucket with a target and optional due date"""

    id: str
    name: str
    target_amount_cents: int
    frequency: Frequency
    subtype: EnvelopeSubtype = EnvelopeSubtype.BILL
    priority: Priority = Priority.IMPORTANT
    current_balance_cents: int = 0  # may be negative (overspent)
    due_date: Optional[date] = None
    due_day: Optional[int] = None  # day-of-month for recurring bills

    @property
    def has_due_date(self) -> bool:
        return self.due_date is not None or self.due_day is not None


@dataclass
class IncomeAllocation:
    """Amount sent to an envelope on each pay event of an income source"""

    envelope_id: str
    income_source_id: str
    amount_cents: int
    is_locked: bool = False
    is_surplus: bool = False  # intentional over-allocation


@dataclass
class BalancePoint:
    date: date
    balance_cents: int


@dataclass
class DueEvent:
    """Projected state of an envelope on one of its due dates"""

    date: date
    required_cents: int
    balance_before_cents: int
    balance_after_cents: int
    status: FundingStatus
    shortfall_cents: int


@dataclass
class Suggestion:
    type: str  # increase_allocation | one_time_income | reduce_bill | extend_due_date | lifestyle_change
    message: str
    action_amount_cents: Optional[int] = None


@dataclass
class EnvelopePrediction:
    """Projected balance path and funding risk for one envelope"""

    envelope_id: str
    status: FundingStatus
    current_balance_cents: int
    projected_balance_cents: int
    target_amount_cents: int
    total_funding_cents: int
    shortfall_cents: int
    status_date: Optional[date]
    days_until_due: Optional[int]
    points: List[BalancePoint] = field(default_factory=list)
    due_events: List[DueEvent] = field(default_factory=list)
    suggestions: List[Suggestion] = field(default_factory=list)


@dataclass
class OpeningBalanceResult:
    opening_balance_needed_cents: int
    is_fully_funded: bool
    cycles_until_due: int
    naturally_accumulated_cents: int
    first_due_date: date
    warning: Optional[str] = None


@dataclass
class SuggestedAllocation:
    """Suggested split of one envelope's per-pay funding across income sources"""

    envelope_id: str
    ideal_per_pay_cents: int
    allocated_per_pay_cents: int
    allocations_by_income_source_id: Dict[str, int]
    shortfall_cents: int
    is_locked: bool = False

    @property
    def is_fully_funded(self) -> bool:
        return self.shortfall_cents == 0


@dataclass
class AllocationPlan:
    reference_frequency: Frequency
    suggestions: List[SuggestedAllocation]
    remaining_capacity_cents: Dict[str, int]
    warnings: List[NoIncomeCapacity] = field(default_factory=list)

    @property
    def has_capacity_shortfall(self) -> bool:
        return bool(self.warnings)


@dataclass
class GapRecord:
    envelope_id: str
    ideal_per_pay_cents: int
    pay_cycles_elapsed: int
    expected_balance_cents: int
    actual_balance_cents: int
    gap_cents: int
    status: GapStatus
    is_locked: bool = False


@dataclass
class DebtAccount:
    """Revolving debt such as a credit card"""

    id: str
    name: str
    balance_cents: int
    apr: float  # annual rate as a fraction, 0.1999 = 19.99%
    minimum_payment_cents: int
    monthly_payment_cents: int
    extra_principal_cents: int = 0
    payoff_priority: Optional[int] = None  # custom strategy ordering


@dataclass
class PayoffMonth:
    month: int
    date: date
    payment_cents: int
    interest_cents: int
    principal_cents: int
    balance_cents: int


@dataclass
class PayoffProjection:
    account_id: Optional[str]
    monthly_payment_cents: int
    apr: float
    starting_balance_cents: int
    projected_payoff_date: Optional[date]
    total_interest_cents: int
    months_to_payoff: Optional[int]
    schedule: List[PayoffMonth] = field(default_factory=list)
    warning: Optional[NonConvergentPayment] = None

    @property
    def converges(self) -> bool:
        return self.warning is None

    @property
    def total_paid_cents(self) -> int:
        return sum(row.payment_cents for row in self.schedule)


@dataclass
class PayoffComparison:
    current: PayoffProjection
    alternative: PayoffProjection
    months_saved: Optional[int]
    interest_saved_cents: Optional[int]
    additional_monthly_payment_cents: int


@dataclass
class AccountPayoff:
    account_id: str
    payoff_month: Optional[int]
    payoff_date: Optional[date]
    interest_paid_cents: int


@dataclass
class StrategyResult:
    strategy: PaymentStrategy
    monthly_budget_cents: int
    months_to_payoff: Optional[int]
    debt_free_date: Optional[date]
    total_interest_cents: int
    payoff_order: List[str]
    accounts: List[AccountPayoff]
    warning: Optional[NonConvergentPayment] = None

    @property
    def converges(self) -> bool:
        return self.warning is None


@dataclass
class StrategyComparison:
    avalanche: StrategyResult
    snowball: StrategyResult
    interest_difference_cents: int
    months_difference: Optional[int]
    recommended: PaymentStrategy
