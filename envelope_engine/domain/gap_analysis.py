"""Gap analysis - compares where each envelope should be with where it actually is"""

from typing import Dict, List, Mapping, Optional, Sequence

from envelope_engine.domain.exceptions import InvalidAmount
from envelope_engine.domain.models import AllocationPlan, Envelope, GapRecord, GapStatus

DEFAULT_SLIGHT_DEVIATION_CENTS = 5000


def classify_gap(gap_cents: int, slight_deviation_cents: int = DEFAULT_SLIGHT_DEVIATION_CENTS) -> GapStatus:
    """
    Band a gap into a status.

    gap >= 0                         -> on_track
    -threshold <= gap < 0            -> slight_deviation
    gap < -threshold                 -> needs_attention
    """
    if gap_cents >= 0:
        return GapStatus.ON_TRACK
    if gap_cents >= -slight_deviation_cents:
        return GapStatus.SLIGHT_DEVIATION
    return GapStatus.NEEDS_ATTENTION


def analyze_gap(
    envelope: Envelope,
    ideal_per_pay_cents: int,
    pay_cycles_elapsed: int,
    actual_balance_cents: int,
    is_locked: bool = False,
    slight_deviation_cents: int = DEFAULT_SLIGHT_DEVIATION_CENTS,
) -> GapRecord:
    """
    Expected vs actual balance of one envelope.

    Args:
        envelope: Envelope being analyzed
        ideal_per_pay_cents: Steady-state allocation per reference pay
        pay_cycles_elapsed: Pay events since funding started
        actual_balance_cents: Current balance
        is_locked: Whether the envelope's allocation is locked
        slight_deviation_cents: Largest shortfall still considered a slight deviation

    Raises:
        InvalidAmount: negative ideal, cycle count or threshold
    """
    if ideal_per_pay_cents < 0:
        raise InvalidAmount("ideal_per_pay_cents", ideal_per_pay_cents)
    if pay_cycles_elapsed < 0:
        raise InvalidAmount("pay_cycles_elapsed", pay_cycles_elapsed)
    if slight_deviation_cents < 0:
        raise InvalidAmount("slight_deviation_cents", slight_deviation_cents)

    expected = ideal_per_pay_cents * pay_cycles_elapsed
    gap = actual_balance_cents - expected

    return GapRecord(
        envelope_id=envelope.id,
        ideal_per_pay_cents=ideal_per_pay_cents,
        pay_cycles_elapsed=pay_cycles_elapsed,
        expected_balance_cents=expected,
        actual_balance_cents=actual_balance_cents,
        gap_cents=gap,
        status=classify_gap(gap, slight_deviation_cents),
        is_locked=is_locked,
    )


def analyze_budget(
    envelopes: Sequence[Envelope],
    plan: AllocationPlan,
    pay_cycles_elapsed: Mapping[str, int],
    balances: Optional[Dict[str, int]] = None,
    slight_deviation_cents: int = DEFAULT_SLIGHT_DEVIATION_CENTS,
) -> List[GapRecord]:
    """
    Gap records for every envelope that has an ideal per pay in the plan.

    Envelopes missing from pay_cycles_elapsed are treated as just started (0 cycles).
    """
    balances = balances or {}
    by_envelope = {s.envelope_id: s for s in plan.suggestions}

    records = []
    for envelope in envelopes:
        suggestion = by_envelope.get(envelope.id)
        if suggestion is None:
            continue
        records.append(
            analyze_gap(
                envelope,
                suggestion.ideal_per_pay_cents,
                pay_cycles_elapsed.get(envelope.id, 0),
                balances.get(envelope.id, envelope.current_balance_cents),
                is_locked=suggestion.is_locked,
                slight_deviation_cents=slight_deviation_cents,
            )
        )
    return records
