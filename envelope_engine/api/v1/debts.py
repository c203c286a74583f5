"""/v1/debts - Payoff projections and multi-card strategies"""

import time
import logging
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from envelope_engine.api.dependencies import get_request_id, get_settings, get_today
from envelope_engine.api.v1.schemas import (
    PayoffCalculatorResponse,
    PayoffComparisonSchema,
    PayoffRequest,
    PayoffResponse,
    StrategyComparisonResponse,
)
from envelope_engine.config import Settings
from envelope_engine.domain.exceptions import InvalidAmount
from envelope_engine.domain.payoff import (
    compare_payments,
    compare_strategies,
    minimum_payment,
    payment_for_payoff_in_months,
    project_payoff,
)
from envelope_engine.infrastructure.database.repositories import DebtAccountRepository
from envelope_engine.infrastructure.database.session import get_db
from envelope_engine.infrastructure.observability.logging import log_calculation
from envelope_engine.infrastructure.observability.metrics import record_payoff

router = APIRouter()


@router.get("/debts/{account_id}/payoff", response_model=PayoffResponse)
def get_account_payoff(
    account_id: str,
    request: Request,
    user_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
    config: Settings = Depends(get_settings),
):
    """
    Project payoff of a stored account at its current monthly payment plus extra principal.

    A payment that never covers interest is not an error: the response carries
    converges=false and a warning instead of a payoff date.
    """
    start_time = time.time()
    request_id = get_request_id(request)

    record = DebtAccountRepository(db).get(user_id, account_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Debt account not found")
    account = DebtAccountRepository.to_domain(record)

    try:
        projection = project_payoff(
            account.balance_cents,
            account.apr,
            account.monthly_payment_cents,
            today,
            extra_principal_cents=account.extra_principal_cents,
            account_id=account.id,
            max_months=config.payoff_max_months,
        )
    except InvalidAmount as e:
        logging.warning(f"Invalid debt account: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    record_payoff(projection)
    log_calculation(
        request_id,
        user_id,
        "payoff",
        (time.time() - start_time) * 1000,
        account_id=account_id,
        converges=projection.converges,
        months_to_payoff=projection.months_to_payoff,
    )
    return PayoffResponse.from_projection(projection)


@router.post("/debts/payoff", response_model=PayoffCalculatorResponse)
def calculate_payoff(
    request_body: PayoffRequest,
    request: Request,
    today: date = Depends(get_today),
    config: Settings = Depends(get_settings),
):
    """Stateless payoff calculator with optional what-if payment and target payoff horizon"""
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        projection = project_payoff(
            request_body.balance_cents,
            request_body.apr,
            request_body.monthly_payment_cents,
            today,
            extra_principal_cents=request_body.extra_principal_cents,
            max_months=config.payoff_max_months,
        )

        comparison = None
        if request_body.alternative_payment_cents is not None:
            comparison = compare_payments(
                request_body.balance_cents,
                request_body.apr,
                projection.monthly_payment_cents,
                request_body.alternative_payment_cents,
                today,
                max_months=config.payoff_max_months,
            )

        target_payment = None
        if request_body.target_months is not None:
            target_payment = payment_for_payoff_in_months(
                request_body.balance_cents, request_body.apr, request_body.target_months
            )
    except InvalidAmount as e:
        logging.warning(f"Invalid payoff input: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    record_payoff(projection)
    log_calculation(
        request_id,
        None,
        "payoff",
        (time.time() - start_time) * 1000,
        converges=projection.converges,
        months_to_payoff=projection.months_to_payoff,
    )
    return PayoffCalculatorResponse(
        projection=PayoffResponse.from_projection(projection),
        minimum_payment_cents=minimum_payment(
            request_body.balance_cents,
            request_body.apr,
            config.minimum_payment_percent,
            config.minimum_payment_floor_cents,
        ),
        comparison=PayoffComparisonSchema.from_comparison(comparison) if comparison else None,
        payment_for_target_months_cents=target_payment,
    )


@router.get("/debts/strategies", response_model=StrategyComparisonResponse)
def get_payoff_strategies(
    request: Request,
    user_id: str = Query(..., min_length=1),
    monthly_budget_cents: Optional[int] = Query(None, ge=0),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
    config: Settings = Depends(get_settings),
):
    """
    Compare avalanche and snowball across all of a user's debt accounts.

    Without monthly_budget_cents the budget is what the user pays today across
    all accounts (monthly payment plus extra principal).
    """
    start_time = time.time()
    request_id = get_request_id(request)

    repo = DebtAccountRepository(db)
    accounts = [repo.to_domain(r) for r in repo.list_by_user(user_id)]

    try:
        comparison = compare_strategies(
            accounts,
            today,
            monthly_budget_cents=monthly_budget_cents,
            max_months=config.payoff_max_months,
            savings_threshold_cents=config.strategy_savings_threshold_cents,
            minimum_percent=config.minimum_payment_percent,
            minimum_floor_cents=config.minimum_payment_floor_cents,
        )
    except InvalidAmount as e:
        logging.warning(f"Invalid debt accounts: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    record_payoff(comparison.avalanche)
    record_payoff(comparison.snowball)
    log_calculation(
        request_id,
        user_id,
        "strategy_comparison",
        (time.time() - start_time) * 1000,
        account_count=len(accounts),
        recommended=comparison.recommended.value,
        interest_difference_cents=comparison.interest_difference_cents,
    )
    return StrategyComparisonResponse.from_comparison(user_id, comparison)
