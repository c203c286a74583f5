"""
Ideal allocation solver - splits income across envelopes to meet bill targets.

The ideal per-pay amount of an envelope depends only on its target, its
frequency and the pay cycle: it never changes with due dates or balances.
Every envelope is expressed "per reference pay event", where the reference
cycle is the most frequent active income source, so no envelope needs a
fractional number of pay events.
"""

from fractions import Fraction
from math import floor
from typing import Dict, Iterable, List, Optional, Sequence, Union

from envelope_engine.domain.calendar import occurrences_per_year, parse_frequency
from envelope_engine.domain.exceptions import (
    AllocationLocked,
    AllocationOverflow,
    InvalidAmount,
    NoIncomeCapacity,
)
from envelope_engine.domain.models import (
    AllocationPlan,
    Envelope,
    Frequency,
    IncomeAllocation,
    IncomeSource,
    Priority,
    SuggestedAllocation,
)
from envelope_engine.utils.money import round_half_up


def normalize_amount(
    amount_cents: int,
    from_frequency: Union[str, Frequency],
    to_frequency: Union[str, Frequency],
) -> int:
    """
    Convert an amount per from_frequency event into the amount per to_frequency event.

    Example:
        $3000 monthly, paid fortnightly -> 3000 * 12 / 26 = $1384.62
    """
    annual = amount_cents * occurrences_per_year(from_frequency)
    return round_half_up(Fraction(annual, occurrences_per_year(to_frequency)))


def ideal_per_pay(envelope: Envelope, reference: Union[str, Frequency]) -> int:
    """Steady-state amount to set aside each reference pay so the envelope meets its target"""
    return normalize_amount(envelope.target_amount_cents, envelope.frequency, reference)


def reference_frequency(
    income_sources: Iterable[IncomeSource],
    default: Union[str, Frequency] = Frequency.FORTNIGHTLY,
) -> Frequency:
    """Most frequent active pay cycle, or default when there is no active income"""
    active = [parse_frequency(s.frequency) for s in income_sources if s.is_active]
    if not active:
        return parse_frequency(default)
    return max(active, key=occurrences_per_year)


def split_proportionally(total_cents: int, weights: Dict[str, Fraction]) -> Dict[str, int]:
    """
    Split whole cents by weight using largest remainders, so parts always sum to total.

    Ties in remainder go to the earlier key.
    """
    weight_sum = sum(weights.values())
    if weight_sum <= 0:
        return {key: 0 for key in weights}

    exact = {key: Fraction(total_cents) * weight / weight_sum for key, weight in weights.items()}
    parts = {key: floor(value) for key, value in exact.items()}
    leftover = total_cents - sum(parts.values())

    by_remainder = sorted(weights, key=lambda key: exact[key] - parts[key], reverse=True)
    for key in by_remainder[:leftover]:
        parts[key] += 1
    return parts


class _Capacity:
    """Remaining per-pay amount of each income source"""

    def __init__(self, sources: Sequence[IncomeSource], reference: Frequency):
        self.reference_per_year = occurrences_per_year(reference)
        self.per_year = {s.id: occurrences_per_year(s.frequency) for s in sources}
        self.remaining = {s.id: s.amount_cents for s in sources}
        # income each source contributes per reference pay event
        self.weights = {
            s.id: Fraction(s.amount_cents * self.per_year[s.id], self.reference_per_year) for s in sources
        }

    def total_reference(self) -> Fraction:
        return sum(self.weights.values(), Fraction(0))

    def to_source(self, source_id: str, reference_cents: int) -> int:
        # floored so converted draws never add up past the reference demand
        return floor(Fraction(reference_cents * self.reference_per_year, self.per_year[source_id]))

    def to_reference(self, drawn: Dict[str, int]) -> int:
        total = sum(
            (Fraction(amount * self.per_year[sid], self.reference_per_year) for sid, amount in drawn.items()),
            Fraction(0),
        )
        return round_half_up(total)

    def available(self) -> Dict[str, Fraction]:
        return {sid: self.weights[sid] for sid, left in self.remaining.items() if left > 0}

    def claim(self, source_id: str, amount_cents: int) -> int:
        taken = min(amount_cents, self.remaining[source_id])
        self.remaining[source_id] -= taken
        return taken


def _fund_envelope(demand_cents: int, capacity: _Capacity) -> tuple[Dict[str, int], bool]:
    """
    Claim demand (reference basis) from non-exhausted sources, redistributing what a
    capped source cannot cover. Returns (drawn per source, capacity_limited).
    """
    drawn: Dict[str, int] = {}
    capacity_limited = False
    outstanding = demand_cents

    # each pass exhausts at least one source or settles the demand
    for _ in range(len(capacity.remaining) + 1):
        available = capacity.available()
        if outstanding <= 0:
            break
        if not available:
            capacity_limited = True
            break

        exhausted = False
        for source_id, share in split_proportionally(outstanding, available).items():
            if share <= 0:
                continue
            wanted = capacity.to_source(source_id, share)
            taken = capacity.claim(source_id, wanted)
            if taken < wanted:
                exhausted = True
            if taken:
                drawn[source_id] = drawn.get(source_id, 0) + taken

        outstanding = demand_cents - capacity.to_reference(drawn)
        if not exhausted:
            break
        capacity_limited = True

    return drawn, capacity_limited


def suggest_allocations(
    income_sources: Sequence[IncomeSource],
    envelopes: Sequence[Envelope],
    locked_envelope_ids: Iterable[str] = (),
    existing_allocations: Sequence[IncomeAllocation] = (),
    default_pay_cycle: Union[str, Frequency] = Frequency.FORTNIGHTLY,
) -> AllocationPlan:
    """
    Main entry point: suggested per-pay split of each income source across envelopes.

    - Locked envelopes keep their existing allocations and claim capacity first
    - Remaining envelopes claim capacity essential -> important -> discretionary
      (input order within a priority), each split across sources in proportion
      to their income per reference pay
    - An envelope that cannot be covered gets a partial allocation and a shortfall
    - Nothing drawn from a source ever exceeds its per-pay amount

    Essential shortfalls are reported as a NoIncomeCapacity warning on the plan,
    never raised.

    Raises:
        InvalidAmount: negative income or target amount
        InvalidFrequency: unknown frequency on any input
        AllocationOverflow: locked allocations already exceed a source's amount
    """
    for source in income_sources:
        if source.amount_cents < 0:
            raise InvalidAmount("amount_cents", source.amount_cents)
    for envelope in envelopes:
        if envelope.target_amount_cents < 0:
            raise InvalidAmount("target_amount_cents", envelope.target_amount_cents)
    frequencies = {e.id: parse_frequency(e.frequency) for e in envelopes}
    priorities = {e.id: Priority(e.priority) for e in envelopes}

    active = [s for s in income_sources if s.is_active]
    reference = reference_frequency(active, default_pay_cycle)
    capacity = _Capacity(active, reference)
    locked = set(locked_envelope_ids)
    results: Dict[str, SuggestedAllocation] = {}

    for envelope in envelopes:
        if envelope.id not in locked:
            continue
        drawn: Dict[str, int] = {}
        for allocation in existing_allocations:
            if allocation.envelope_id != envelope.id or allocation.income_source_id not in capacity.remaining:
                continue
            if allocation.amount_cents > capacity.remaining[allocation.income_source_id]:
                raise AllocationOverflow(
                    f"Locked allocations exceed income source {allocation.income_source_id}",
                    income_source_id=allocation.income_source_id,
                    envelope_id=envelope.id,
                    excess_cents=allocation.amount_cents - capacity.remaining[allocation.income_source_id],
                )
            capacity.claim(allocation.income_source_id, allocation.amount_cents)
            drawn[allocation.income_source_id] = drawn.get(allocation.income_source_id, 0) + allocation.amount_cents

        funded = capacity.to_reference(drawn)
        ideal = ideal_per_pay(envelope, reference) if frequencies[envelope.id].is_recurring else funded
        results[envelope.id] = SuggestedAllocation(
            envelope_id=envelope.id,
            ideal_per_pay_cents=ideal,
            allocated_per_pay_cents=funded,
            allocations_by_income_source_id=drawn,
            shortfall_cents=max(0, ideal - funded),
            is_locked=True,
        )

    unlocked = [
        e for e in envelopes
        if e.id not in locked and frequencies[e.id].is_recurring and e.target_amount_cents > 0
    ]
    for envelope in sorted(unlocked, key=lambda e: priorities[e.id].rank):
        demand = ideal_per_pay(envelope, reference)
        drawn, capacity_limited = _fund_envelope(demand, capacity)
        funded = capacity.to_reference(drawn)
        results[envelope.id] = SuggestedAllocation(
            envelope_id=envelope.id,
            ideal_per_pay_cents=demand,
            allocated_per_pay_cents=funded,
            allocations_by_income_source_id=drawn,
            # sub-cent frequency conversion residue is not a shortfall
            shortfall_cents=max(0, demand - funded) if capacity_limited else 0,
        )

    suggestions = [results[e.id] for e in envelopes if e.id in results]

    warnings = []
    essential_short = [
        s for s in suggestions
        if s.shortfall_cents > 0 and priorities[s.envelope_id] is Priority.ESSENTIAL
    ]
    if essential_short:
        warnings.append(
            NoIncomeCapacity(
                shortfall_cents=sum(s.shortfall_cents for s in essential_short),
                envelope_ids=[s.envelope_id for s in essential_short],
            )
        )

    return AllocationPlan(
        reference_frequency=reference,
        suggestions=suggestions,
        remaining_capacity_cents=dict(capacity.remaining),
        warnings=warnings,
    )


def assign_allocation(
    allocation: IncomeAllocation,
    current_allocations: Sequence[IncomeAllocation],
    income_sources: Sequence[IncomeSource],
    envelope_ideal_per_pay_cents: Optional[int] = None,
    reference: Optional[Union[str, Frequency]] = None,
) -> List[IncomeAllocation]:
    """
    Validate a manual allocation and return the updated allocation set.

    Replaces any existing allocation for the same envelope and income source.

    Raises:
        InvalidAmount: negative amount
        AllocationLocked: the existing allocation for this pair is locked
        AllocationOverflow: the source would pay out more than it earns per pay,
            or the envelope would exceed its ideal per pay without is_surplus
    """
    if allocation.amount_cents < 0:
        raise InvalidAmount("amount_cents", allocation.amount_cents)

    sources_by_id = {s.id: s for s in income_sources}
    source = sources_by_id.get(allocation.income_source_id)
    if source is None:
        raise ValueError(f"Unknown income source {allocation.income_source_id}")

    def same_pair(a: IncomeAllocation) -> bool:
        return a.envelope_id == allocation.envelope_id and a.income_source_id == allocation.income_source_id

    existing = next((a for a in current_allocations if same_pair(a)), None)
    if existing is not None and existing.is_locked:
        raise AllocationLocked(allocation.envelope_id, allocation.income_source_id)

    others = [a for a in current_allocations if not same_pair(a)]

    source_total = allocation.amount_cents + sum(
        a.amount_cents for a in others if a.income_source_id == source.id
    )
    if source_total > source.amount_cents:
        excess = source_total - source.amount_cents
        raise AllocationOverflow(
            f"Allocations from {source.name} would total {source_total} cents, "
            f"{excess} more than its {source.amount_cents} per pay",
            income_source_id=source.id,
            envelope_id=allocation.envelope_id,
            excess_cents=excess,
        )

    if envelope_ideal_per_pay_cents is not None and not allocation.is_surplus:
        reference_cycle = parse_frequency(reference or source.frequency)
        envelope_allocations = [a for a in others if a.envelope_id == allocation.envelope_id] + [allocation]
        envelope_total = round_half_up(
            sum(
                (
                    Fraction(
                        a.amount_cents * occurrences_per_year(sources_by_id[a.income_source_id].frequency),
                        occurrences_per_year(reference_cycle),
                    )
                    for a in envelope_allocations
                    if a.income_source_id in sources_by_id
                ),
                Fraction(0),
            )
        )
        if envelope_total > envelope_ideal_per_pay_cents:
            excess = envelope_total - envelope_ideal_per_pay_cents
            raise AllocationOverflow(
                f"Envelope {allocation.envelope_id} would receive {excess} cents per pay over its ideal; "
                "flag the allocation as surplus to over-allocate intentionally",
                income_source_id=source.id,
                envelope_id=allocation.envelope_id,
                excess_cents=excess,
            )

    return others + [allocation]
