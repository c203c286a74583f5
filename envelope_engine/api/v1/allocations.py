"""/v1/allocations - Suggested splits, manual assignment, locking and gap analysis"""

import time
import logging
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from envelope_engine.api.dependencies import get_request_id, get_settings, get_today
from envelope_engine.api.v1.schemas import (
    AllocationPlanResponse,
    AllocationRequest,
    AllocationResponse,
    GapAnalysisResponse,
    GapRecordSchema,
    LockResponse,
)
from envelope_engine.config import Settings
from envelope_engine.domain.allocation import (
    assign_allocation,
    ideal_per_pay,
    reference_frequency,
    suggest_allocations,
)
from envelope_engine.domain.calendar import pay_cycles_elapsed
from envelope_engine.domain.exceptions import (
    AllocationLocked,
    AllocationOverflow,
    InvalidAmount,
    InvalidFrequency,
)
from envelope_engine.domain.gap_analysis import analyze_budget
from envelope_engine.domain.models import IncomeAllocation
from envelope_engine.infrastructure.database.repositories import (
    AllocationRepository,
    EnvelopeRepository,
    load_budget,
)
from envelope_engine.infrastructure.database.session import get_db
from envelope_engine.infrastructure.observability.logging import log_calculation
from envelope_engine.infrastructure.observability.metrics import allocation_overflow_counter, record_allocation_plan

router = APIRouter()


def _plan_for_user(db: Session, user_id: str, config: Settings):
    sources, envelopes, allocations = load_budget(db, user_id)
    locked_ids = {a.envelope_id for a in allocations if a.is_locked} | EnvelopeRepository(db).locked_ids(user_id)
    plan = suggest_allocations(
        sources,
        envelopes,
        locked_envelope_ids=locked_ids,
        existing_allocations=[a for a in allocations if a.is_locked],
        default_pay_cycle=config.default_pay_cycle,
    )
    return plan, envelopes


@router.get("/allocations/suggestions", response_model=AllocationPlanResponse)
def get_allocation_suggestions(
    request: Request,
    user_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
):
    """
    Suggest how each income source should be split across envelopes.

    Locked envelopes keep their current allocations. When essential envelopes
    cannot all be covered the plan is still returned, with a warning.
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        plan, _ = _plan_for_user(db, user_id, config)
    except (InvalidFrequency, InvalidAmount) as e:
        logging.warning(f"Invalid budget data: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))
    except AllocationOverflow as e:
        logging.warning(f"Locked allocations exceed income: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail=str(e))

    record_allocation_plan(plan)
    log_calculation(
        request_id,
        user_id,
        "allocation_plan",
        (time.time() - start_time) * 1000,
        reference_frequency=plan.reference_frequency.value,
        envelope_count=len(plan.suggestions),
        capacity_shortfall=plan.has_capacity_shortfall,
    )
    return AllocationPlanResponse.from_plan(user_id, plan)


@router.post("/allocations", response_model=AllocationResponse)
def create_allocation(
    request_body: AllocationRequest,
    request: Request,
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
):
    """
    Assign a per-pay amount from an income source to an envelope.

    Rejected with 409 when the source would pay out more than it earns, when the
    envelope would exceed its ideal without is_surplus, or when the allocation is locked.
    """
    request_id = get_request_id(request)
    user_id = request_body.user_id

    sources, envelopes, allocations = load_budget(db, user_id)
    envelope = next((e for e in envelopes if e.id == request_body.envelope_id), None)
    if envelope is None:
        raise HTTPException(status_code=404, detail="Envelope not found")
    if not any(s.id == request_body.income_source_id for s in sources):
        raise HTTPException(status_code=404, detail="Income source not found")

    allocation = IncomeAllocation(
        envelope_id=request_body.envelope_id,
        income_source_id=request_body.income_source_id,
        amount_cents=request_body.amount_cents,
        is_surplus=request_body.is_surplus,
    )

    try:
        if EnvelopeRepository(db).get(user_id, envelope.id).allocation_locked:
            raise AllocationLocked(allocation.envelope_id, allocation.income_source_id)
        reference = reference_frequency(sources, config.default_pay_cycle)
        ideal = ideal_per_pay(envelope, reference) if envelope.frequency.is_recurring else None
        assign_allocation(
            allocation,
            allocations,
            sources,
            envelope_ideal_per_pay_cents=ideal,
            reference=reference,
        )
        record = AllocationRepository(db).upsert(user_id, allocation)
        db.commit()

    except (AllocationOverflow, AllocationLocked) as e:
        db.rollback()
        allocation_overflow_counter.inc()
        logging.warning(f"Allocation rejected: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail=str(e))

    except (InvalidFrequency, InvalidAmount) as e:
        db.rollback()
        logging.warning(f"Invalid allocation: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    logging.info(
        "Allocation assigned",
        extra={
            "request_id": request_id,
            "user_id": user_id,
            "envelope_id": allocation.envelope_id,
            "income_source_id": allocation.income_source_id,
            "amount_cents": allocation.amount_cents,
        },
    )
    return AllocationResponse.model_validate(record)


def _set_lock(envelope_id: str, user_id: str, locked: bool, request: Request, db: Session) -> LockResponse:
    request_id = get_request_id(request)

    envelopes = EnvelopeRepository(db)
    record = envelopes.get(user_id, envelope_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Envelope not found")

    try:
        envelopes.set_allocation_locked(record, locked)
        changed = AllocationRepository(db).set_locked(user_id, envelope_id, locked)
        db.commit()
    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    logging.info(
        "Allocation locked" if locked else "Allocation unlocked",
        extra={"request_id": request_id, "user_id": user_id, "envelope_id": envelope_id},
    )
    return LockResponse(envelope_id=envelope_id, is_locked=locked, allocations_changed=changed)


@router.post("/allocations/{envelope_id}/lock", response_model=LockResponse)
def lock_allocation(
    envelope_id: str,
    request: Request,
    user_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
):
    """Freeze an envelope's allocations; suggestions keep them as they are, even when there are none yet"""
    return _set_lock(envelope_id, user_id, True, request, db)


@router.post("/allocations/{envelope_id}/unlock", response_model=LockResponse)
def unlock_allocation(
    envelope_id: str,
    request: Request,
    user_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
):
    return _set_lock(envelope_id, user_id, False, request, db)


@router.get("/allocations/gap-analysis", response_model=GapAnalysisResponse)
def get_gap_analysis(
    request: Request,
    user_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
    config: Settings = Depends(get_settings),
):
    """
    Compare each envelope's balance with what steady funding should have built.

    Pay cycles are counted on the reference pay cycle since the envelope's
    funding started (its creation date when not recorded).
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        plan, envelopes = _plan_for_user(db, user_id, config)
        cycles = {
            record.id: pay_cycles_elapsed(
                plan.reference_frequency,
                record.funding_started_on or record.created_at.date(),
                today,
            )
            for record in EnvelopeRepository(db).list_by_user(user_id)
        }
        records = analyze_budget(
            envelopes,
            plan,
            cycles,
            slight_deviation_cents=config.gap_slight_deviation_cents,
        )
    except (InvalidFrequency, InvalidAmount) as e:
        logging.warning(f"Invalid budget data: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))
    except AllocationOverflow as e:
        logging.warning(f"Locked allocations exceed income: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail=str(e))

    log_calculation(
        request_id,
        user_id,
        "gap_analysis",
        (time.time() - start_time) * 1000,
        envelope_count=len(records),
        needs_attention_count=sum(1 for r in records if r.status.value == "needs_attention"),
    )
    return GapAnalysisResponse(
        user_id=user_id,
        reference_frequency=plan.reference_frequency.value,
        slight_deviation_cents=config.gap_slight_deviation_cents,
        records=[GapRecordSchema.model_validate(r) for r in records],
    )
