"""Unit tests for the ideal allocation solver"""

import random
import pytest
from datetime import date
from envelope_engine.domain.allocation import (
    assign_allocation,
    ideal_per_pay,
    normalize_amount,
    reference_frequency,
    split_proportionally,
    suggest_allocations,
)
from envelope_engine.domain.exceptions import AllocationLocked, AllocationOverflow, InvalidAmount
from envelope_engine.domain.models import Envelope, Frequency, IncomeAllocation, IncomeSource, Priority

PAYDAY = date(2026, 1, 2)


def source(id: str, amount_cents: int, frequency: Frequency = Frequency.FORTNIGHTLY, **kwargs) -> IncomeSource:
    return IncomeSource(id=id, name=id, amount_cents=amount_cents, frequency=frequency, next_pay_date=PAYDAY, **kwargs)


def envelope(id: str, target_cents: int, frequency: Frequency = Frequency.FORTNIGHTLY, **kwargs) -> Envelope:
    return Envelope(id=id, name=id, target_amount_cents=target_cents, frequency=frequency, **kwargs)


def test_normalize_amount():
    # $3000 monthly paid fortnightly
    assert normalize_amount(300000, "monthly", "fortnightly") == 138462
    assert normalize_amount(10000, "weekly", "monthly") == 43333
    assert normalize_amount(10000, "fortnightly", "fortnightly") == 10000


def test_ideal_is_independent_of_balance_and_due_date():
    bill = envelope("rent", 60000, Frequency.MONTHLY, due_day=1, current_balance_cents=50000)
    assert ideal_per_pay(bill, Frequency.FORTNIGHTLY) == 27692


def test_reference_frequency_is_most_frequent_active_source():
    assert reference_frequency([source("a", 1, Frequency.MONTHLY), source("b", 1, Frequency.WEEKLY)]) is Frequency.WEEKLY
    assert reference_frequency([source("a", 1, Frequency.WEEKLY, is_active=False)]) is Frequency.FORTNIGHTLY
    assert reference_frequency([], "monthly") is Frequency.MONTHLY


def test_split_proportionally_sums_exactly():
    assert split_proportionally(100, {"a": 1, "b": 1, "c": 1}) == {"a": 34, "b": 33, "c": 33}
    assert split_proportionally(10000, {"a": 60000, "b": 40000}) == {"a": 6000, "b": 4000}
    assert split_proportionally(50, {"a": 0}) == {"a": 0}


def test_essential_demand_beyond_income_warns_and_partially_funds():
    """Three $200 essential bills against a $500 paycheck"""
    envelopes = [envelope(f"e{i}", 20000, priority=Priority.ESSENTIAL) for i in (1, 2, 3)]

    plan = suggest_allocations([source("pay", 50000)], envelopes)

    assert [s.allocated_per_pay_cents for s in plan.suggestions] == [20000, 20000, 10000]
    assert [s.is_fully_funded for s in plan.suggestions] == [True, True, False]
    assert plan.suggestions[2].shortfall_cents == 10000
    assert plan.remaining_capacity_cents == {"pay": 0}
    assert plan.has_capacity_shortfall
    assert plan.warnings[0].shortfall_cents == 10000
    assert plan.warnings[0].envelope_ids == ["e3"]


def test_higher_priority_claims_capacity_first():
    envelopes = [
        envelope("fun", 20000, priority=Priority.DISCRETIONARY),
        envelope("power", 20000, priority=Priority.ESSENTIAL),
    ]

    plan = suggest_allocations([source("pay", 30000)], envelopes)

    fun, power = plan.suggestions
    assert power.allocated_per_pay_cents == 20000
    assert fun.allocated_per_pay_cents == 10000
    assert fun.shortfall_cents == 10000
    assert plan.warnings == []


def test_demand_split_in_proportion_to_income():
    plan = suggest_allocations([source("a", 60000), source("b", 40000)], [envelope("phone", 10000)])

    assert plan.suggestions[0].allocations_by_income_source_id == {"a": 6000, "b": 4000}
    assert plan.remaining_capacity_cents == {"a": 54000, "b": 36000}


def test_mixed_frequencies_convert_to_each_source():
    """Weekly reference; the monthly source gives its share per monthly pay"""
    sources = [source("weekly", 50000, Frequency.WEEKLY), source("monthly", 100000, Frequency.MONTHLY)]

    plan = suggest_allocations(sources, [envelope("rent", 52000, Frequency.MONTHLY)])

    suggestion = plan.suggestions[0]
    assert plan.reference_frequency is Frequency.WEEKLY
    assert suggestion.ideal_per_pay_cents == 12000
    assert suggestion.allocations_by_income_source_id == {"weekly": 8211, "monthly": 16419}
    assert suggestion.allocated_per_pay_cents == 12000
    assert suggestion.is_fully_funded


def test_converted_draws_never_exceed_the_ideal():
    """Three monthly sources each round their share; together they must not overshoot"""
    sources = [source("pay", 60000)] + [source(f"m{i}", 130000, Frequency.MONTHLY) for i in (1, 2, 3)]

    plan = suggest_allocations(sources, [envelope("bills", 36012)])

    suggestion = plan.suggestions[0]
    assert suggestion.ideal_per_pay_cents == 36012
    assert suggestion.allocations_by_income_source_id == {"pay": 9003, "m1": 19506, "m2": 19506, "m3": 19506}
    assert suggestion.allocated_per_pay_cents == 36011
    assert suggestion.shortfall_cents == 0


def test_accepts_plain_string_frequencies_and_priorities():
    sources = [IncomeSource(id="pay", name="Job", amount_cents=50000, frequency="fortnightly", next_pay_date=PAYDAY)]
    envelopes = [
        Envelope(id="fun", name="Fun", target_amount_cents=20000, frequency="fortnightly", priority="discretionary"),
        Envelope(id="rent", name="Rent", target_amount_cents=65000, frequency="monthly", priority="essential"),
        Envelope(id="gift", name="Gift", target_amount_cents=5000, frequency="none"),
    ]

    plan = suggest_allocations(sources, envelopes, {"fun"}, [IncomeAllocation("fun", "pay", 20000, is_locked=True)])

    assert plan.reference_frequency is Frequency.FORTNIGHTLY
    fun, rent = plan.suggestions
    assert fun.is_locked
    assert rent.ideal_per_pay_cents == 30000
    assert rent.allocated_per_pay_cents == 30000
    assert plan.remaining_capacity_cents == {"pay": 0}
    assert plan.warnings == []


def test_exhausted_source_redistributes_to_others():
    """A locked envelope has drained most of source a; b picks up the rest of a's share"""
    sources = [source("a", 10000), source("b", 30000)]
    envelopes = [envelope("locked", 8000), envelope("car", 20000)]
    existing = [IncomeAllocation("locked", "a", 8000, is_locked=True)]

    plan = suggest_allocations(sources, envelopes, {"locked"}, existing)

    car = plan.suggestions[1]
    assert car.allocations_by_income_source_id == {"a": 2000, "b": 18000}
    assert car.is_fully_funded
    assert plan.remaining_capacity_cents == {"a": 0, "b": 12000}


def test_locked_allocations_consume_capacity_first():
    envelopes = [
        envelope("unlocked", 30000, priority=Priority.ESSENTIAL),
        envelope("locked", 30000, priority=Priority.DISCRETIONARY),
    ]
    existing = [IncomeAllocation("locked", "pay", 30000, is_locked=True)]

    plan = suggest_allocations([source("pay", 50000)], envelopes, {"locked"}, existing)

    unlocked, locked = plan.suggestions
    assert locked.is_locked
    assert locked.allocations_by_income_source_id == {"pay": 30000}
    assert unlocked.allocated_per_pay_cents == 20000
    assert plan.warnings[0].envelope_ids == ["unlocked"]


def test_locked_allocations_beyond_income_are_rejected():
    existing = [IncomeAllocation("locked", "pay", 60000, is_locked=True)]
    with pytest.raises(AllocationOverflow):
        suggest_allocations([source("pay", 50000)], [envelope("locked", 60000)], {"locked"}, existing)


def test_non_recurring_and_zero_target_envelopes_are_skipped():
    envelopes = [envelope("gift", 5000, Frequency.NONE), envelope("empty", 0), envelope("phone", 1000)]

    plan = suggest_allocations([source("pay", 50000)], envelopes)

    assert [s.envelope_id for s in plan.suggestions] == ["phone"]


def test_no_income_uses_default_cycle():
    plan = suggest_allocations([], [envelope("rent", 60000, Frequency.MONTHLY, priority=Priority.ESSENTIAL)])

    assert plan.reference_frequency is Frequency.FORTNIGHTLY
    assert plan.suggestions[0].allocated_per_pay_cents == 0
    assert plan.suggestions[0].shortfall_cents == 27692
    assert plan.has_capacity_shortfall


def test_rejects_negative_amounts():
    with pytest.raises(InvalidAmount):
        suggest_allocations([source("pay", -1)], [])
    with pytest.raises(InvalidAmount):
        suggest_allocations([source("pay", 1)], [envelope("e", -1)])


def test_sources_never_pay_out_more_than_they_earn():
    rng = random.Random(20260102)
    recurring = [f for f in Frequency if f.is_recurring]

    for _ in range(200):
        sources = [
            source(f"s{i}", rng.randint(0, 200000), rng.choice(recurring), is_active=rng.random() > 0.1)
            for i in range(rng.randint(0, 3))
        ]
        envelopes = [
            envelope(f"e{i}", rng.randint(0, 100000), rng.choice(list(Frequency)), priority=rng.choice(list(Priority)))
            for i in range(rng.randint(0, 6))
        ]

        plan = suggest_allocations(sources, envelopes)

        for s in sources:
            if not s.is_active:
                assert s.id not in plan.remaining_capacity_cents
                continue
            drawn = sum(sug.allocations_by_income_source_id.get(s.id, 0) for sug in plan.suggestions)
            assert drawn <= s.amount_cents
            assert plan.remaining_capacity_cents[s.id] == s.amount_cents - drawn
        for sug in plan.suggestions:
            assert sug.shortfall_cents >= 0
            assert all(amount > 0 for amount in sug.allocations_by_income_source_id.values())
            if not sug.is_locked:
                assert sug.allocated_per_pay_cents <= sug.ideal_per_pay_cents


def test_assign_rejects_source_overflow():
    current = [IncomeAllocation("rent", "pay", 30000)]

    with pytest.raises(AllocationOverflow) as exc_info:
        assign_allocation(IncomeAllocation("phone", "pay", 25000), current, [source("pay", 50000)])

    assert exc_info.value.excess_cents == 5000
    assert exc_info.value.income_source_id == "pay"


def test_assign_replaces_existing_pair():
    current = [IncomeAllocation("rent", "pay", 30000), IncomeAllocation("phone", "pay", 5000)]

    updated = assign_allocation(IncomeAllocation("rent", "pay", 45000), current, [source("pay", 50000)])

    assert sorted((a.envelope_id, a.amount_cents) for a in updated) == [("phone", 5000), ("rent", 45000)]


def test_assign_respects_locks():
    current = [IncomeAllocation("rent", "pay", 30000, is_locked=True)]
    with pytest.raises(AllocationLocked):
        assign_allocation(IncomeAllocation("rent", "pay", 10000), current, [source("pay", 50000)])


def test_assign_over_ideal_requires_surplus_flag():
    with pytest.raises(AllocationOverflow) as exc_info:
        assign_allocation(IncomeAllocation("phone", "pay", 25000), [], [source("pay", 50000)], envelope_ideal_per_pay_cents=20000)
    assert exc_info.value.excess_cents == 5000

    surplus = IncomeAllocation("phone", "pay", 25000, is_surplus=True)
    assert assign_allocation(surplus, [], [source("pay", 50000)], envelope_ideal_per_pay_cents=20000) == [surplus]


def test_assign_invalid_inputs():
    with pytest.raises(InvalidAmount):
        assign_allocation(IncomeAllocation("phone", "pay", -1), [], [source("pay", 50000)])
    with pytest.raises(ValueError):
        assign_allocation(IncomeAllocation("phone", "missing", 1), [], [source("pay", 50000)])
