"""Cashflow prediction engine - projects envelope balances against pay days and due dates"""

from datetime import date
from typing import Dict, List, Optional, Sequence

from envelope_engine.domain.calendar import (
    day_of_month_occurrences,
    next_occurrence_on_or_after,
    occurrences,
    parse_frequency,
)
from envelope_engine.domain.exceptions import InvalidAmount
from envelope_engine.domain.models import (
    BalancePoint,
    DueEvent,
    Envelope,
    EnvelopePrediction,
    EnvelopeSubtype,
    Frequency,
    FundingStatus,
    IncomeAllocation,
    IncomeSource,
    Suggestion,
)
from envelope_engine.utils.money import format_cents

# Same-day ordering: money lands before the bill is taken
_FUNDING = 0
_DUE = 1


def due_dates_within(envelope: Envelope, today: date, horizon_end: date) -> List[date]:
    """
    Due dates of an envelope from today through horizon_end.

    - day-of-month bills repeat on that day (clamped to month end)
    - recurring calendar due dates are rolled forward from a stale date
    - a one-off due date is a single event; an overdue one is due today
    """
    if not envelope.has_due_date:
        return []

    frequency = parse_frequency(envelope.frequency)
    if envelope.due_day is not None:
        return day_of_month_occurrences(envelope.due_day, frequency, today, horizon_end)

    if frequency is Frequency.NONE:
        first = max(envelope.due_date, today)
    else:
        first = next_occurrence_on_or_after(frequency, envelope.due_date, today)
    return list(occurrences(frequency, first, horizon_end))


def funding_events(
    envelope_id: str,
    allocations: Sequence[IncomeAllocation],
    income_sources: Sequence[IncomeSource],
    today: date,
    horizon_end: date,
) -> List[tuple[date, int, str]]:
    """(pay date, amount, income source id) for every allocated pay event in the horizon"""
    sources_by_id = {source.id: source for source in income_sources}
    events = []

    for allocation in allocations:
        if allocation.envelope_id != envelope_id or allocation.amount_cents <= 0:
            continue
        source = sources_by_id.get(allocation.income_source_id)
        if source is None or not source.is_active:
            continue

        frequency = parse_frequency(source.frequency)
        first_pay = next_occurrence_on_or_after(frequency, source.next_pay_date, today)
        for pay_date in occurrences(frequency, first_pay, horizon_end):
            events.append((pay_date, allocation.amount_cents, source.id))

    return events


def classify_due_event(balance_before_cents: int, required_cents: int, funded_since_last_due: bool) -> FundingStatus:
    """
    Funding risk at a single due date.

    - on_track: balance covers the bill
    - behind: something saved and money still arriving, but not enough
    - critical: nothing saved, or no funding arrived before the bill
    """
    if balance_before_cents >= required_cents:
        return FundingStatus.ON_TRACK
    if balance_before_cents > 0 and funded_since_last_due:
        return FundingStatus.BEHIND
    return FundingStatus.CRITICAL


def generate_suggestions(shortfall_cents: int, days_until_due: int, pays_before_due: int) -> List[Suggestion]:
    """Actionable ways to close a funding gap"""
    if shortfall_cents <= 0:
        return []

    suggestions = []

    if pays_before_due > 0:
        increase = -(-shortfall_cents // pays_before_due)
        suggestions.append(
            Suggestion(
                type="increase_allocation",
                message=f"Increase allocation by {format_cents(increase)} per pay to close gap",
                action_amount_cents=increase,
            )
        )

    suggestions.append(
        Suggestion(
            type="one_time_income",
            message=f"Find one-time income of {format_cents(shortfall_cents)} (sell items, extra shifts, etc.)",
            action_amount_cents=shortfall_cents,
        )
    )
    suggestions.append(Suggestion(type="reduce_bill", message="Reduce bill amount or find cheaper alternative"))

    if days_until_due > 7:
        suggestions.append(
            Suggestion(type="extend_due_date", message="Contact provider about payment plan or later due date")
        )

    suggestions.append(
        Suggestion(type="lifestyle_change", message="Consider lifestyle changes to reduce this expense")
    )
    return suggestions


def predict(
    envelope: Envelope,
    allocations: Sequence[IncomeAllocation],
    income_sources: Sequence[IncomeSource],
    current_balance_cents: int,
    horizon_end: date,
    today: date,
) -> EnvelopePrediction:
    """
    Main entry point: walk funding and due events to project an envelope's balance.

    Overall status is the most severe due-event status in the horizon; among
    equally severe events the soonest one drives status_date and shortfall.
    Envelopes without a due date are always on_track; one with a due date and
    a positive target but no allocated funding in the horizon is critical.

    Raises:
        InvalidAmount: negative target or allocation
        InvalidFrequency: envelope or income source carries an unknown cycle
    """
    if envelope.target_amount_cents < 0:
        raise InvalidAmount("target_amount_cents", envelope.target_amount_cents)
    for allocation in allocations:
        if allocation.amount_cents < 0:
            raise InvalidAmount("amount_cents", allocation.amount_cents)

    required = envelope.target_amount_cents
    pays_out = not EnvelopeSubtype(envelope.subtype).accumulates

    funding = funding_events(envelope.id, allocations, income_sources, today, horizon_end)
    events: List[tuple[date, int, int]] = [(pay_date, _FUNDING, amount) for pay_date, amount, _ in funding]
    events.extend((due, _DUE, required) for due in due_dates_within(envelope, today, horizon_end))
    events.sort(key=lambda e: (e[0], e[1]))

    balance = current_balance_cents
    total_funding = 0
    funded_since_last_due = False
    points = [BalancePoint(date=today, balance_cents=balance)]
    due_events: List[DueEvent] = []
    funding_dates_before: Dict[date, int] = {}
    funding_dates_seen = set()

    for event_date, kind, amount in events:
        if kind == _FUNDING:
            balance += amount
            total_funding += amount
            funded_since_last_due = True
            funding_dates_seen.add(event_date)
        else:
            before = balance
            status = classify_due_event(before, amount, funded_since_last_due)
            balance = before - amount if pays_out else before
            due_events.append(
                DueEvent(
                    date=event_date,
                    required_cents=amount,
                    balance_before_cents=before,
                    balance_after_cents=balance,
                    status=status,
                    shortfall_cents=max(0, amount - before),
                )
            )
            funding_dates_before[event_date] = len(funding_dates_seen)
            funded_since_last_due = False

        if points[-1].date == event_date:
            points[-1] = BalancePoint(date=event_date, balance_cents=balance)
        else:
            points.append(BalancePoint(date=event_date, balance_cents=balance))

    status = FundingStatus.ON_TRACK
    status_date: Optional[date] = None
    shortfall = 0
    suggestions: List[Suggestion] = []

    if due_events:
        worst = max(event.status.severity for event in due_events)
        driver = next(event for event in due_events if event.status.severity == worst)
        # a bill with nothing allocated to it is critical whatever the balance
        unfunded = not funding and required > 0
        if unfunded and driver.status is not FundingStatus.CRITICAL:
            driver = due_events[0]
        status = FundingStatus.CRITICAL if unfunded else driver.status
        status_date = driver.date
        shortfall = driver.shortfall_cents
        suggestions = generate_suggestions(
            shortfall,
            (driver.date - today).days,
            funding_dates_before[driver.date],
        )

    return EnvelopePrediction(
        envelope_id=envelope.id,
        status=status,
        current_balance_cents=current_balance_cents,
        projected_balance_cents=balance,
        target_amount_cents=required,
        total_funding_cents=total_funding,
        shortfall_cents=shortfall,
        status_date=status_date,
        days_until_due=(due_events[0].date - today).days if due_events else None,
        points=points,
        due_events=due_events,
        suggestions=suggestions,
    )


def predict_all(
    envelopes: Sequence[Envelope],
    allocations: Sequence[IncomeAllocation],
    income_sources: Sequence[IncomeSource],
    horizon_end: date,
    today: date,
    balances: Optional[Dict[str, int]] = None,
) -> List[EnvelopePrediction]:
    """Predictions for every envelope; balances override each envelope's stored balance"""
    balances = balances or {}
    return [
        predict(
            envelope,
            [a for a in allocations if a.envelope_id == envelope.id],
            income_sources,
            balances.get(envelope.id, envelope.current_balance_cents),
            horizon_end,
            today,
        )
        for envelope in envelopes
    ]
