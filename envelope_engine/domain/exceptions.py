"""Domain-specific exceptions"""

from typing import List, Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidFrequency(DomainException):
    """Frequency descriptor is not one of the supported cycles"""

    def __init__(self, value: object, message: Optional[str] = None):
        self.value = value
        super().__init__(message or f"Unrecognized frequency: {value!r}")


class InvalidAmount(DomainException):
    """Amount is negative where a non-negative value is required"""

    def __init__(self, field: str, value: object):
        self.field = field
        self.value = value
        super().__init__(f"{field} must be non-negative, got {value}")


class AllocationOverflow(DomainException):
    """Assigning an allocation would exceed the available per-pay amount"""

    def __init__(self, message: str, income_source_id: str, envelope_id: str, excess_cents: int):
        self.income_source_id = income_source_id
        self.envelope_id = envelope_id
        self.excess_cents = excess_cents
        super().__init__(message)


class NoIncomeCapacity(DomainException):
    """
    Essential envelope demand exceeds total income.

    Returned inside an AllocationPlan, not raised: the partial plan is still
    valid and the caller shows this as an over-allocation warning.
    """

    def __init__(self, shortfall_cents: int, envelope_ids: List[str]):
        self.shortfall_cents = shortfall_cents
        self.envelope_ids = envelope_ids
        super().__init__(
            f"Essential envelopes need {shortfall_cents} cents more per pay than income provides"
        )


class NonConvergentPayment(DomainException):
    """
    Payment never pays the balance off.

    Returned inside a PayoffProjection / StrategyResult with the payoff date
    left empty.
    """

    def __init__(self, message: str, monthly_interest_cents: int = 0, monthly_payment_cents: int = 0):
        self.monthly_interest_cents = monthly_interest_cents
        self.monthly_payment_cents = monthly_payment_cents
        super().__init__(message)


class AllocationLocked(DomainException):
    """Allocation is locked and cannot be changed until it is unlocked"""

    def __init__(self, envelope_id: str, income_source_id: str):
        self.envelope_id = envelope_id
        self.income_source_id = income_source_id
        super().__init__(f"Allocation for envelope {envelope_id} from {income_source_id} is locked")
