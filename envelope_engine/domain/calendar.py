"""Pay cycle calendar - turns a frequency and anchor date into occurrence dates"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator, Union

from envelope_engine.domain.exceptions import InvalidFrequency
from envelope_engine.domain.models import Frequency
from envelope_engine.utils.date_utils import add_months, with_day_clamped

# Hard stop for occurrence generation, whatever the horizon (~19 years of weekly pays)
MAX_OCCURRENCES = 1000

_ALIASES = {
    "twice-monthly": Frequency.TWICE_MONTHLY,
    "annual": Frequency.ANNUALLY,
}

_DAY_STEPS = {
    Frequency.WEEKLY: 7,
    Frequency.FORTNIGHTLY: 14,
}

_MONTH_STEPS = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
    Frequency.ANNUALLY: 12,
}

_PER_YEAR = {
    Frequency.WEEKLY: 52,
    Frequency.FORTNIGHTLY: 26,
    Frequency.TWICE_MONTHLY: 24,
    Frequency.MONTHLY: 12,
    Frequency.QUARTERLY: 4,
    Frequency.ANNUALLY: 1,
}


def parse_frequency(value: Union[str, Frequency]) -> Frequency:
    """
    Convert a stored or user-supplied frequency into the closed enum.

    Raises:
        InvalidFrequency: value is not a supported cycle
    """
    if isinstance(value, Frequency):
        return value
    if not isinstance(value, str):
        raise InvalidFrequency(value)

    normalized = value.strip().lower()
    if normalized in _ALIASES:
        return _ALIASES[normalized]
    try:
        return Frequency(normalized)
    except ValueError:
        raise InvalidFrequency(value) from None


def occurrences_per_year(frequency: Frequency) -> int:
    """Number of occurrences of a recurring frequency in a year"""
    frequency = parse_frequency(frequency)
    if frequency is Frequency.NONE:
        raise InvalidFrequency(frequency.value, "Non-recurring frequency has no yearly rate")
    return _PER_YEAR[frequency]


def _twice_monthly_days(anchor: date) -> tuple[int, int]:
    # 1st-15th anchors pair with +15 days, later anchors with -15 (15th/30th -> 15th + month end)
    first = anchor.day if anchor.day <= 15 else anchor.day - 15
    return first, first + 15


@dataclass(frozen=True)
class OccurrenceSchedule:
    """
    Restartable sequence of dates for a frequency between anchor and horizon_end.

    Each iteration starts from the anchor again, so a schedule can be walked
    more than once (e.g. counted and then listed).
    """

    frequency: Frequency
    anchor: date
    horizon_end: date

    def __iter__(self) -> Iterator[date]:
        if self.anchor > self.horizon_end:
            return

        if self.frequency is Frequency.NONE:
            yield self.anchor
            return

        if self.frequency is Frequency.TWICE_MONTHLY:
            yield from self._twice_monthly()
            return

        for i in range(MAX_OCCURRENCES):
            if self.frequency in _DAY_STEPS:
                current = self.anchor + timedelta(days=i * _DAY_STEPS[self.frequency])
            else:
                # Always offset from the anchor so Jan 31 -> Feb 28 -> Mar 31, never Mar 28
                current = add_months(self.anchor, i * _MONTH_STEPS[self.frequency])
            if current > self.horizon_end:
                return
            yield current

    def _twice_monthly(self) -> Iterator[date]:
        first, second = _twice_monthly_days(self.anchor)
        count = 0
        month_offset = 0
        while count < MAX_OCCURRENCES:
            month_start = add_months(self.anchor.replace(day=1), month_offset)
            for day in (first, second):
                current = with_day_clamped(month_start.year, month_start.month, day)
                if current < self.anchor:
                    continue
                if current > self.horizon_end or count >= MAX_OCCURRENCES:
                    return
                yield current
                count += 1
            month_offset += 1


def occurrences(frequency: Union[str, Frequency], anchor: date, horizon_end: date) -> OccurrenceSchedule:
    """
    Occurrence dates of a frequency from anchor through horizon_end (inclusive).

    Returns an empty schedule when anchor is after horizon_end.

    Raises:
        InvalidFrequency: frequency is not one of the supported cycles
    """
    return OccurrenceSchedule(parse_frequency(frequency), anchor, horizon_end)


def next_occurrence_on_or_after(frequency: Union[str, Frequency], anchor: date, day: date) -> date:
    """
    Roll a possibly stale anchor forward to its first occurrence on or after day.

    Non-recurring anchors are returned unchanged.
    """
    frequency = parse_frequency(frequency)
    if anchor >= day or frequency is Frequency.NONE:
        return anchor

    if frequency in _DAY_STEPS:
        step = _DAY_STEPS[frequency]
        cycles = -(-(day - anchor).days // step)
        return anchor + timedelta(days=cycles * step)

    for current in OccurrenceSchedule(frequency, anchor, day + timedelta(days=366)):
        if current >= day:
            return current
    raise ValueError(f"Anchor {anchor} is more than {MAX_OCCURRENCES} cycles before {day}")


def next_due_date(due_day: int, today: date) -> date:
    """Next date on or after today carrying due_day, clamped to month end (31 -> Feb 28)"""
    if not 1 <= due_day <= 31:
        raise ValueError(f"due_day must be between 1 and 31, got {due_day}")

    this_month = with_day_clamped(today.year, today.month, due_day)
    if this_month >= today:
        return this_month
    following = add_months(today.replace(day=1), 1)
    return with_day_clamped(following.year, following.month, due_day)


def count_occurrences(frequency: Union[str, Frequency], anchor: date, start: date, end: date) -> int:
    """Number of occurrences falling in [start, end]"""
    return sum(1 for d in occurrences(frequency, anchor, end) if d >= start)


def pay_cycles_elapsed(frequency: Union[str, Frequency], since: date, today: date) -> int:
    """Pay events after since, up to and including today"""
    if today <= since:
        return 0
    return count_occurrences(frequency, since, since + timedelta(days=1), today)


def day_of_month_occurrences(
    due_day: int,
    frequency: Union[str, Frequency],
    today: date,
    horizon_end: date,
) -> list[date]:
    """
    Due dates for a bill stored as a day-of-month.

    Month-based cycles re-apply the day every time, so a 31st due day lands on
    Apr 30 and then May 31 again rather than sticking at the 30th.
    """
    frequency = parse_frequency(frequency)
    first = next_due_date(due_day, today)
    if frequency not in _MONTH_STEPS:
        return list(occurrences(frequency, first, horizon_end))

    step = _MONTH_STEPS[frequency]
    dates = []
    for i in range(MAX_OCCURRENCES):
        month_start = add_months(first.replace(day=1), i * step)
        current = with_day_clamped(month_start.year, month_start.month, due_day)
        if current > horizon_end:
            break
        dates.append(current)
    return dates
