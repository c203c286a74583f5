"""Unit tests for the cashflow prediction engine"""

import pytest
from datetime import date, timedelta
from envelope_engine.domain.exceptions import InvalidAmount
from envelope_engine.domain.models import (
    Envelope,
    EnvelopeSubtype,
    Frequency,
    FundingStatus,
    IncomeAllocation,
    IncomeSource,
)
from envelope_engine.domain.prediction import classify_due_event, generate_suggestions, predict, predict_all

TODAY = date(2026, 1, 2)
HORIZON = TODAY + timedelta(days=90)


def rent(**overrides) -> Envelope:
    fields = dict(id="rent", name="Rent", target_amount_cents=60000, frequency=Frequency.MONTHLY, due_day=1)
    fields.update(overrides)
    return Envelope(**fields)


def test_two_paychecks_keep_rent_on_track(fortnightly_paychecks):
    """$150 from each of a $1000 and a $400 fortnightly paycheck toward $600 rent due on the 1st"""
    allocations = [
        IncomeAllocation(envelope_id="rent", income_source_id="pay-a", amount_cents=15000),
        IncomeAllocation(envelope_id="rent", income_source_id="pay-b", amount_cents=15000),
    ]

    prediction = predict(rent(), allocations, fortnightly_paychecks, 0, HORIZON, TODAY)

    assert prediction.status is FundingStatus.ON_TRACK
    assert [e.date for e in prediction.due_events] == [date(2026, 2, 1), date(2026, 3, 1), date(2026, 4, 1)]
    assert all(e.balance_before_cents == 90000 for e in prediction.due_events)
    assert all(e.balance_after_cents == 30000 for e in prediction.due_events)
    assert prediction.total_funding_cents == 7 * 30000
    assert prediction.projected_balance_cents == 30000
    assert prediction.shortfall_cents == 0
    assert prediction.days_until_due == 30
    assert prediction.suggestions == []


def test_unfunded_bill_is_critical():
    bill = rent(frequency=Frequency.NONE, due_day=None, due_date=date(2026, 1, 10), target_amount_cents=50000)

    prediction = predict(bill, [], [], 0, HORIZON, TODAY)

    assert prediction.status is FundingStatus.CRITICAL
    assert prediction.status_date == date(2026, 1, 10)
    assert prediction.shortfall_cents == 50000
    assert [s.type for s in prediction.suggestions] == [
        "one_time_income", "reduce_bill", "extend_due_date", "lifestyle_change",
    ]


def test_partially_funded_bill_is_behind():
    source = IncomeSource(id="pay", name="Job", amount_cents=80000, frequency=Frequency.FORTNIGHTLY, next_pay_date=TODAY)
    bill = rent(frequency=Frequency.NONE, due_day=None, due_date=date(2026, 1, 20), target_amount_cents=30000)
    allocations = [IncomeAllocation(envelope_id="rent", income_source_id="pay", amount_cents=5000)]

    prediction = predict(bill, allocations, [source], 10000, HORIZON, TODAY)

    assert prediction.status is FundingStatus.BEHIND
    assert prediction.shortfall_cents == 10000
    increase = prediction.suggestions[0]
    assert increase.type == "increase_allocation"
    assert increase.action_amount_cents == 5000


def test_pay_on_due_date_arrives_before_bill():
    source = IncomeSource(id="pay", name="Job", amount_cents=50000, frequency=Frequency.MONTHLY, next_pay_date=date(2026, 1, 10))
    bill = rent(frequency=Frequency.NONE, due_day=None, due_date=date(2026, 1, 10), target_amount_cents=50000)
    allocations = [IncomeAllocation(envelope_id="rent", income_source_id="pay", amount_cents=50000)]

    prediction = predict(bill, allocations, [source], 0, HORIZON, TODAY)

    assert prediction.status is FundingStatus.ON_TRACK
    assert prediction.due_events[0].balance_before_cents == 50000


def test_savings_keep_balance_on_due_dates(fortnightly_paychecks):
    savings = rent(id="emergency", subtype=EnvelopeSubtype.SAVINGS, target_amount_cents=10000)
    allocations = [IncomeAllocation(envelope_id="emergency", income_source_id="pay-a", amount_cents=1000)]

    prediction = predict(savings, allocations, fortnightly_paychecks, 20000, HORIZON, TODAY)

    assert prediction.status is FundingStatus.ON_TRACK
    assert len(prediction.due_events) == 3
    assert prediction.total_funding_cents == 7 * 1000
    assert prediction.projected_balance_cents == 27000


def test_due_date_without_funding_is_critical_even_when_balance_covers():
    """$100 monthly bill on the 1st, $500 already saved, nothing allocated"""
    bill = rent(id="phone", target_amount_cents=10000)

    prediction = predict(bill, [], [], 50000, HORIZON, TODAY)

    assert all(e.status is FundingStatus.ON_TRACK for e in prediction.due_events)
    assert prediction.status is FundingStatus.CRITICAL
    assert prediction.status_date == date(2026, 2, 1)
    assert prediction.shortfall_cents == 0
    assert prediction.projected_balance_cents == 20000

    # nothing to fund
    assert predict(rent(target_amount_cents=0), [], [], 0, HORIZON, TODAY).status is FundingStatus.ON_TRACK


def test_allocations_outside_horizon_do_not_count_as_funding():
    source = IncomeSource(id="pay", name="Job", amount_cents=50000, frequency=Frequency.MONTHLY, next_pay_date=date(2026, 6, 1))
    allocations = [IncomeAllocation(envelope_id="rent", income_source_id="pay", amount_cents=30000)]

    prediction = predict(rent(), allocations, [source], 200000, HORIZON, TODAY)

    assert prediction.total_funding_cents == 0
    assert prediction.status is FundingStatus.CRITICAL


def test_envelope_without_due_date_only_accumulates():
    source = IncomeSource(id="pay", name="Job", amount_cents=40000, frequency=Frequency.WEEKLY, next_pay_date=TODAY)
    groceries = rent(id="groceries", due_day=None, subtype=EnvelopeSubtype.SPENDING)
    allocations = [IncomeAllocation(envelope_id="groceries", income_source_id="pay", amount_cents=1000)]

    prediction = predict(groceries, allocations, [source], 0, date(2026, 1, 30), TODAY)

    assert prediction.status is FundingStatus.ON_TRACK
    assert prediction.due_events == []
    assert prediction.days_until_due is None
    assert prediction.projected_balance_cents == 5000
    # today's pay folds into the opening point
    assert prediction.points[0].date == TODAY
    assert prediction.points[0].balance_cents == 1000
    assert len(prediction.points) == 5


def test_inactive_sources_and_stale_anchors(fortnightly_paychecks):
    stale = IncomeSource(id="old", name="Old job", amount_cents=99999, frequency=Frequency.FORTNIGHTLY,
                         next_pay_date=date(2025, 12, 19), is_active=False)
    rolled = IncomeSource(id="pay-a", name="Main job", amount_cents=15000, frequency=Frequency.FORTNIGHTLY,
                          next_pay_date=date(2025, 12, 19))
    allocations = [
        IncomeAllocation(envelope_id="rent", income_source_id="old", amount_cents=99999),
        IncomeAllocation(envelope_id="rent", income_source_id="pay-a", amount_cents=15000),
    ]

    prediction = predict(rent(), allocations, [stale, rolled], 0, date(2026, 1, 31), TODAY)

    assert prediction.total_funding_cents == 3 * 15000
    assert [p.date for p in prediction.points] == [date(2026, 1, 2), date(2026, 1, 16), date(2026, 1, 30)]


def test_rejects_negative_amounts():
    with pytest.raises(InvalidAmount):
        predict(rent(target_amount_cents=-1), [], [], 0, HORIZON, TODAY)
    with pytest.raises(InvalidAmount):
        predict(rent(), [IncomeAllocation("rent", "pay", -5)], [], 0, HORIZON, TODAY)


def test_classify_due_event():
    assert classify_due_event(500, 500, False) is FundingStatus.ON_TRACK
    assert classify_due_event(499, 500, True) is FundingStatus.BEHIND
    assert classify_due_event(499, 500, False) is FundingStatus.CRITICAL
    assert classify_due_event(0, 500, True) is FundingStatus.CRITICAL
    assert classify_due_event(-100, 500, True) is FundingStatus.CRITICAL


def test_generate_suggestions_rounds_increase_up():
    suggestions = generate_suggestions(10001, 3, 2)
    assert suggestions[0].action_amount_cents == 5001
    assert "extend_due_date" not in [s.type for s in suggestions]
    assert generate_suggestions(0, 30, 2) == []


def test_predict_all_uses_balance_overrides(fortnightly_paychecks):
    envelopes = [rent(), rent(id="phone", target_amount_cents=5000)]

    predictions = predict_all(envelopes, [], fortnightly_paychecks, HORIZON, TODAY, balances={"rent": 60000})

    assert [p.envelope_id for p in predictions] == ["rent", "phone"]
    # $600 covers February only
    assert predictions[0].due_events[0].status is FundingStatus.ON_TRACK
    assert predictions[0].status is FundingStatus.CRITICAL
    assert predictions[1].current_balance_cents == 0
