"""Opening balance calculation for newly set up envelopes"""

from datetime import date, timedelta
from typing import Optional, Union

from envelope_engine.domain.calendar import count_occurrences, next_occurrence_on_or_after, parse_frequency
from envelope_engine.domain.exceptions import InvalidAmount
from envelope_engine.domain.models import Frequency, OpeningBalanceResult
from envelope_engine.utils.money import format_cents


def compute_opening_balance(
    target_amount_cents: int,
    frequency: Union[str, Frequency],
    due_date: date,
    per_cycle_allocation_cents: int,
    pay_cycle: Union[str, Frequency],
    today: date,
    next_pay_date: Optional[date] = None,
) -> OpeningBalanceResult:
    """
    Lump sum needed today so steady per-pay funding does not miss the first due date.

    Works backward from the first due date on or after today:
        naturally_accumulated = per_cycle_allocation * pay events in (today, first due]
        opening_balance_needed = max(0, target - naturally_accumulated)

    A pay landing on the due date itself counts, since it arrives before the
    bill is taken. A pay landing today does not count.

    Args:
        target_amount_cents: Amount due on each due date
        frequency: Envelope recurrence, used to roll a past due date forward
        due_date: Known (possibly past) due date
        per_cycle_allocation_cents: Amount committed to the envelope each pay
        pay_cycle: Frequency of the funding pay events
        today: Calculation date (setup date)
        next_pay_date: Next known pay date (default: today)

    Raises:
        InvalidAmount: negative target or allocation
        InvalidFrequency: unknown envelope frequency or pay cycle
    """
    if target_amount_cents < 0:
        raise InvalidAmount("target_amount_cents", target_amount_cents)
    if per_cycle_allocation_cents < 0:
        raise InvalidAmount("per_cycle_allocation_cents", per_cycle_allocation_cents)

    frequency = parse_frequency(frequency)
    pay_cycle = parse_frequency(pay_cycle)

    if frequency is Frequency.NONE:
        first_due = max(due_date, today)
    else:
        first_due = next_occurrence_on_or_after(frequency, due_date, today)

    pay_anchor = next_occurrence_on_or_after(pay_cycle, next_pay_date or today, today)
    cycles = count_occurrences(pay_cycle, pay_anchor, today + timedelta(days=1), first_due)

    accumulated = cycles * per_cycle_allocation_cents
    needed = max(0, target_amount_cents - accumulated)

    warning = None
    if per_cycle_allocation_cents == 0 and target_amount_cents > 0:
        warning = (
            f"No per-pay allocation: this envelope can never reach {format_cents(target_amount_cents)} "
            "without an opening balance or an allocation"
        )

    return OpeningBalanceResult(
        opening_balance_needed_cents=needed,
        is_fully_funded=needed == 0,
        cycles_until_due=cycles,
        naturally_accumulated_cents=accumulated,
        first_due_date=first_due,
        warning=warning,
    )
