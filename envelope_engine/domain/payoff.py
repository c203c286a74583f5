"""
Debt payoff projection - amortizes revolving balances month by month.

Interest accrues monthly at apr / 12 on the outstanding balance and is rounded
half-up to the cent before the payment is applied.
"""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Union

from envelope_engine.domain.exceptions import InvalidAmount, NonConvergentPayment
from envelope_engine.domain.models import (
    AccountPayoff,
    DebtAccount,
    PaymentStrategy,
    PayoffComparison,
    PayoffMonth,
    PayoffProjection,
    StrategyComparison,
    StrategyResult,
)
from envelope_engine.utils.date_utils import add_months
from envelope_engine.utils.money import format_cents, rate, round_half_up, round_up

DEFAULT_MAX_MONTHS = 600
DEFAULT_MINIMUM_PERCENT = 2.0
DEFAULT_MINIMUM_FLOOR_CENTS = 2500
DEFAULT_SAVINGS_THRESHOLD_CENTS = 5000

# Custom strategy: accounts without a priority go last
_UNRANKED = 999


def monthly_interest(balance_cents: int, apr: float) -> int:
    """Interest charged on balance for one month"""
    return round_half_up(Decimal(balance_cents) * rate(apr) / 12)


def project_payoff(
    starting_balance_cents: int,
    apr: float,
    monthly_payment_cents: int,
    start_date: date,
    extra_principal_cents: int = 0,
    account_id: Optional[str] = None,
    max_months: int = DEFAULT_MAX_MONTHS,
) -> PayoffProjection:
    """
    Month-by-month payoff schedule for a single balance.

    The last payment is trimmed to exactly what is owed. A payment that does
    not exceed the first month's interest never pays the balance down; the
    projection then carries a NonConvergentPayment warning and no payoff date.
    Running past max_months is reported the same way.

    Requirements:
    - payoff date is start_date plus months_to_payoff calendar months
    - total interest is the sum of every month's interest

    Raises:
        InvalidAmount: negative balance, payment, extra principal or apr
    """
    if starting_balance_cents < 0:
        raise InvalidAmount("starting_balance_cents", starting_balance_cents)
    if monthly_payment_cents < 0:
        raise InvalidAmount("monthly_payment_cents", monthly_payment_cents)
    if extra_principal_cents < 0:
        raise InvalidAmount("extra_principal_cents", extra_principal_cents)
    if apr < 0:
        raise InvalidAmount("apr", apr)

    payment = monthly_payment_cents + extra_principal_cents

    def result(months, payoff_date, total_interest, schedule, warning=None):
        return PayoffProjection(
            account_id=account_id,
            monthly_payment_cents=payment,
            apr=apr,
            starting_balance_cents=starting_balance_cents,
            projected_payoff_date=payoff_date,
            total_interest_cents=total_interest,
            months_to_payoff=months,
            schedule=schedule,
            warning=warning,
        )

    if starting_balance_cents == 0:
        return result(0, start_date, 0, [])

    first_interest = monthly_interest(starting_balance_cents, apr)
    if payment <= first_interest:
        warning = NonConvergentPayment(
            f"Payment of {format_cents(payment)} does not cover monthly interest of "
            f"{format_cents(first_interest)}; the balance will never be paid off",
            monthly_interest_cents=first_interest,
            monthly_payment_cents=payment,
        )
        return result(None, None, 0, [], warning)

    balance = starting_balance_cents
    total_interest = 0
    schedule: List[PayoffMonth] = []

    for month in range(1, max_months + 1):
        interest = monthly_interest(balance, apr)
        owed = balance + interest
        paid = min(payment, owed)
        balance = owed - paid
        total_interest += interest
        schedule.append(
            PayoffMonth(
                month=month,
                date=add_months(start_date, month),
                payment_cents=paid,
                interest_cents=interest,
                principal_cents=paid - interest,
                balance_cents=balance,
            )
        )
        if balance == 0:
            return result(month, add_months(start_date, month), total_interest, schedule)

    warning = NonConvergentPayment(
        f"Balance not paid off within {max_months} months at {format_cents(payment)} per month",
        monthly_interest_cents=monthly_interest(balance, apr),
        monthly_payment_cents=payment,
    )
    return result(None, None, total_interest, schedule, warning)


def minimum_payment(
    balance_cents: int,
    apr: float,
    percentage: float = DEFAULT_MINIMUM_PERCENT,
    floor_cents: int = DEFAULT_MINIMUM_FLOOR_CENTS,
) -> int:
    """
    Issuer-style minimum payment.

    Greater of percentage of the balance, a month's interest plus $1, and the
    floor; never more than the balance itself.
    """
    if balance_cents <= 0:
        return 0
    by_percentage = round_half_up(Decimal(balance_cents) * Decimal(str(percentage)) / 100)
    covers_interest = monthly_interest(balance_cents, apr) + 100
    return min(balance_cents, max(by_percentage, covers_interest, floor_cents))


def payment_for_payoff_in_months(balance_cents: int, apr: float, months: int) -> int:
    """
    Level monthly payment that clears the balance in the given number of months.

    Standard annuity formula, rounded up to the cent so the target is met:
        P = B * r / (1 - (1 + r) ** -n),  r = apr / 12
    """
    if months <= 0:
        raise ValueError(f"months must be positive, got {months}")
    if balance_cents < 0:
        raise InvalidAmount("balance_cents", balance_cents)
    if balance_cents == 0:
        return 0

    r = rate(apr) / 12
    if r == 0:
        return round_up(Decimal(balance_cents) / months)
    return round_up(Decimal(balance_cents) * r / (1 - (1 + r) ** -months))


def compare_payments(
    balance_cents: int,
    apr: float,
    current_payment_cents: int,
    alternative_payment_cents: int,
    start_date: date,
    max_months: int = DEFAULT_MAX_MONTHS,
) -> PayoffComparison:
    """What-if: time and interest saved by paying alternative instead of current each month"""
    current = project_payoff(balance_cents, apr, current_payment_cents, start_date, max_months=max_months)
    alternative = project_payoff(balance_cents, apr, alternative_payment_cents, start_date, max_months=max_months)

    months_saved = None
    interest_saved = None
    if current.converges and alternative.converges:
        months_saved = current.months_to_payoff - alternative.months_to_payoff
        interest_saved = current.total_interest_cents - alternative.total_interest_cents

    return PayoffComparison(
        current=current,
        alternative=alternative,
        months_saved=months_saved,
        interest_saved_cents=interest_saved,
        additional_monthly_payment_cents=alternative_payment_cents - current_payment_cents,
    )


def strategy_order(accounts: Sequence[DebtAccount], strategy: Union[str, PaymentStrategy]) -> List[DebtAccount]:
    """Order in which surplus payments are directed"""
    strategy = PaymentStrategy(strategy)
    if strategy is PaymentStrategy.AVALANCHE:
        return sorted(accounts, key=lambda a: -a.apr)
    if strategy is PaymentStrategy.SNOWBALL:
        return sorted(accounts, key=lambda a: a.balance_cents)
    if strategy is PaymentStrategy.CUSTOM:
        return sorted(accounts, key=lambda a: a.payoff_priority if a.payoff_priority is not None else _UNRANKED)
    return list(accounts)


def _required_minimum(account: DebtAccount, balance_cents: int, percentage: float, floor_cents: int) -> int:
    if account.minimum_payment_cents > 0:
        return min(account.minimum_payment_cents, balance_cents)
    return minimum_payment(balance_cents, account.apr, percentage, floor_cents)


def simulate_strategy(
    accounts: Sequence[DebtAccount],
    strategy: Union[str, PaymentStrategy],
    start_date: date,
    monthly_budget_cents: Optional[int] = None,
    max_months: int = DEFAULT_MAX_MONTHS,
    minimum_percent: float = DEFAULT_MINIMUM_PERCENT,
    minimum_floor_cents: int = DEFAULT_MINIMUM_FLOOR_CENTS,
) -> StrategyResult:
    """
    Simulate paying down several cards together under one strategy.

    Each month every card accrues interest and receives its minimum payment.
    Whatever is left of the monthly budget goes to cards in strategy order, so
    a paid-off card's payment rolls to the next one. minimum_only never
    redirects anything.

    Requirements:
    - default budget is the sum of each account's monthly payment plus extra principal
    - minimums are always paid, even when they exceed the budget
    - total debt that stops falling, or running past max_months, is non-convergent

    Raises:
        InvalidAmount: negative balance or budget
    """
    strategy = PaymentStrategy(strategy)
    for account in accounts:
        if account.balance_cents < 0:
            raise InvalidAmount("balance_cents", account.balance_cents)
    if monthly_budget_cents is None:
        monthly_budget_cents = sum(a.monthly_payment_cents + a.extra_principal_cents for a in accounts)
    if monthly_budget_cents < 0:
        raise InvalidAmount("monthly_budget_cents", monthly_budget_cents)

    balances: Dict[str, int] = {a.id: a.balance_cents for a in accounts}
    interest_paid: Dict[str, int] = {a.id: 0 for a in accounts}
    paid_off_in: Dict[str, Optional[int]] = {a.id: 0 if a.balance_cents == 0 else None for a in accounts}
    order = strategy_order(accounts, strategy)
    payoff_order: List[str] = []
    month = 0
    warning = None

    while any(balances.values()):
        if month >= max_months:
            warning = NonConvergentPayment(
                f"Debts not paid off within {max_months} months on a budget of "
                f"{format_cents(monthly_budget_cents)}",
                monthly_payment_cents=monthly_budget_cents,
            )
            break
        month += 1
        debt_before = sum(balances.values())

        month_interest = 0
        for account in accounts:
            if balances[account.id] == 0:
                continue
            interest = monthly_interest(balances[account.id], account.apr)
            balances[account.id] += interest
            interest_paid[account.id] += interest
            month_interest += interest

        spent = 0
        for account in accounts:
            if balances[account.id] == 0:
                continue
            payment = _required_minimum(account, balances[account.id], minimum_percent, minimum_floor_cents)
            balances[account.id] -= payment
            spent += payment

        if strategy is not PaymentStrategy.MINIMUM_ONLY:
            surplus = max(0, monthly_budget_cents - spent)
            for account in order:
                if surplus == 0:
                    break
                payment = min(surplus, balances[account.id])
                balances[account.id] -= payment
                surplus -= payment

        for account in order:
            if balances[account.id] == 0 and paid_off_in[account.id] is None:
                paid_off_in[account.id] = month
                payoff_order.append(account.id)

        if sum(balances.values()) >= debt_before:
            warning = NonConvergentPayment(
                f"Payments of {format_cents(spent)} do not cover monthly interest of "
                f"{format_cents(month_interest)}; total debt is not falling",
                monthly_interest_cents=month_interest,
                monthly_payment_cents=spent,
            )
            break

    converged = warning is None
    return StrategyResult(
        strategy=strategy,
        monthly_budget_cents=monthly_budget_cents,
        months_to_payoff=month if converged else None,
        debt_free_date=add_months(start_date, month) if converged else None,
        total_interest_cents=sum(interest_paid.values()),
        payoff_order=payoff_order,
        accounts=[
            AccountPayoff(
                account_id=a.id,
                payoff_month=paid_off_in[a.id],
                payoff_date=add_months(start_date, paid_off_in[a.id]) if paid_off_in[a.id] is not None else None,
                interest_paid_cents=interest_paid[a.id],
            )
            for a in accounts
        ],
        warning=warning,
    )


def compare_strategies(
    accounts: Sequence[DebtAccount],
    start_date: date,
    monthly_budget_cents: Optional[int] = None,
    max_months: int = DEFAULT_MAX_MONTHS,
    savings_threshold_cents: int = DEFAULT_SAVINGS_THRESHOLD_CENTS,
    minimum_percent: float = DEFAULT_MINIMUM_PERCENT,
    minimum_floor_cents: int = DEFAULT_MINIMUM_FLOOR_CENTS,
) -> StrategyComparison:
    """
    Avalanche vs snowball on the same budget.

    Avalanche is recommended when it saves more than savings_threshold_cents in
    interest; otherwise snowball, for the quicker early wins.
    """
    avalanche = simulate_strategy(
        accounts, PaymentStrategy.AVALANCHE, start_date, monthly_budget_cents,
        max_months, minimum_percent, minimum_floor_cents,
    )
    snowball = simulate_strategy(
        accounts, PaymentStrategy.SNOWBALL, start_date, monthly_budget_cents,
        max_months, minimum_percent, minimum_floor_cents,
    )

    interest_difference = snowball.total_interest_cents - avalanche.total_interest_cents
    months_difference = None
    if avalanche.converges and snowball.converges:
        months_difference = snowball.months_to_payoff - avalanche.months_to_payoff

    return StrategyComparison(
        avalanche=avalanche,
        snowball=snowball,
        interest_difference_cents=interest_difference,
        months_difference=months_difference,
        recommended=(
            PaymentStrategy.AVALANCHE if interest_difference > savings_threshold_cents else PaymentStrategy.SNOWBALL
        ),
    )
