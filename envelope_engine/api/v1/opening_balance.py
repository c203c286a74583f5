"""POST /v1/opening-balance - Lump sum needed to start an envelope on track"""

import time
import logging
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Request

from envelope_engine.api.dependencies import get_request_id, get_today
from envelope_engine.api.v1.schemas import OpeningBalanceRequest, OpeningBalanceResponse
from envelope_engine.domain.exceptions import InvalidAmount, InvalidFrequency
from envelope_engine.domain.opening_balance import compute_opening_balance
from envelope_engine.infrastructure.observability.logging import log_calculation

router = APIRouter()


@router.post("/opening-balance", response_model=OpeningBalanceResponse)
def calculate_opening_balance(
    request_body: OpeningBalanceRequest,
    request: Request,
    today: date = Depends(get_today),
):
    """Stateless calculator: nothing is read from or written to the database"""
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        result = compute_opening_balance(
            target_amount_cents=request_body.target_amount_cents,
            frequency=request_body.frequency,
            due_date=request_body.due_date,
            per_cycle_allocation_cents=request_body.per_cycle_allocation_cents,
            pay_cycle=request_body.pay_cycle,
            today=today,
            next_pay_date=request_body.next_pay_date,
        )
    except (InvalidFrequency, InvalidAmount) as e:
        logging.warning(f"Invalid opening balance input: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    log_calculation(
        request_id,
        None,
        "opening_balance",
        (time.time() - start_time) * 1000,
        opening_balance_needed_cents=result.opening_balance_needed_cents,
        cycles_until_due=result.cycles_until_due,
    )
    return OpeningBalanceResponse.model_validate(result)
