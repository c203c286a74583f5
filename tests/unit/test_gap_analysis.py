"""Unit tests for gap analysis"""

import pytest
from envelope_engine.domain.allocation import suggest_allocations
from envelope_engine.domain.exceptions import InvalidAmount
from envelope_engine.domain.gap_analysis import analyze_budget, analyze_gap, classify_gap
from envelope_engine.domain.models import Envelope, Frequency, GapStatus


@pytest.fixture
def phone() -> Envelope:
    return Envelope(id="phone", name="Phone", target_amount_cents=10000, frequency=Frequency.FORTNIGHTLY)


@pytest.mark.parametrize(
    "actual, gap, status",
    [
        (30000, 0, GapStatus.ON_TRACK),
        (35000, 5000, GapStatus.ON_TRACK),
        (29999, -1, GapStatus.SLIGHT_DEVIATION),
        (25000, -5000, GapStatus.SLIGHT_DEVIATION),
        (24999, -5001, GapStatus.NEEDS_ATTENTION),
    ],
)
def test_gap_bands(phone, actual, gap, status):
    record = analyze_gap(phone, 10000, 3, actual)

    assert record.expected_balance_cents == 30000
    assert record.gap_cents == gap
    assert record.status is status


def test_threshold_is_configurable(phone):
    assert analyze_gap(phone, 10000, 3, 28500, slight_deviation_cents=1000).status is GapStatus.NEEDS_ATTENTION
    assert classify_gap(-1000, 1000) is GapStatus.SLIGHT_DEVIATION


def test_new_envelope_with_overspend_needs_attention(phone):
    record = analyze_gap(phone, 10000, 0, -6000, is_locked=True)

    assert record.expected_balance_cents == 0
    assert record.status is GapStatus.NEEDS_ATTENTION
    assert record.is_locked


def test_rejects_negative_inputs(phone):
    with pytest.raises(InvalidAmount):
        analyze_gap(phone, 10000, -1, 0)
    with pytest.raises(InvalidAmount):
        analyze_gap(phone, -1, 1, 0)


def test_analyze_budget_covers_envelopes_with_ideal(phone, fortnightly_paychecks):
    one_off = Envelope(id="gift", name="Gift", target_amount_cents=5000, frequency=Frequency.NONE)
    plan = suggest_allocations(fortnightly_paychecks, [phone, one_off])

    records = analyze_budget([phone, one_off], plan, {"phone": 2}, balances={"phone": 18000})

    assert [r.envelope_id for r in records] == ["phone"]
    assert records[0].expected_balance_cents == 20000
    assert records[0].gap_cents == -2000
    assert records[0].status is GapStatus.SLIGHT_DEVIATION
