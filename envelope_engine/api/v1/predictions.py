"""GET /v1/envelopes/{envelope_id}/prediction, GET /v1/predictions - Cashflow projections"""

import time
import logging
from datetime import date, timedelta
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from envelope_engine.api.dependencies import get_request_id, get_settings, get_today
from envelope_engine.api.v1.schemas import PredictionListResponse, PredictionResponse
from envelope_engine.config import Settings
from envelope_engine.domain.exceptions import InvalidAmount, InvalidFrequency
from envelope_engine.domain.prediction import predict, predict_all
from envelope_engine.infrastructure.database.repositories import EnvelopeRepository, load_budget
from envelope_engine.infrastructure.database.session import get_db
from envelope_engine.infrastructure.observability.logging import log_calculation
from envelope_engine.infrastructure.observability.metrics import record_predictions

router = APIRouter()


@router.get("/envelopes/{envelope_id}/prediction", response_model=PredictionResponse)
def get_envelope_prediction(
    envelope_id: str,
    request: Request,
    user_id: str = Query(..., min_length=1),
    horizon_days: Optional[int] = Query(None, gt=0, le=730),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
    config: Settings = Depends(get_settings),
):
    """
    Project one envelope's balance across pay days and due dates.

    Returns:
        Balance path, per-due-date status and suggestions when a shortfall is projected
    """
    start_time = time.time()
    request_id = get_request_id(request)

    if EnvelopeRepository(db).get(user_id, envelope_id) is None:
        raise HTTPException(status_code=404, detail="Envelope not found")

    horizon_end = today + timedelta(days=horizon_days or config.projection_horizon_days)

    try:
        sources, envelopes, allocations = load_budget(db, user_id)
        envelope = next(e for e in envelopes if e.id == envelope_id)
        prediction = predict(
            envelope,
            [a for a in allocations if a.envelope_id == envelope_id],
            sources,
            envelope.current_balance_cents,
            horizon_end,
            today,
        )
    except (InvalidFrequency, InvalidAmount) as e:
        logging.warning(f"Invalid budget data: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    record_predictions([prediction])
    log_calculation(
        request_id,
        user_id,
        "prediction",
        (time.time() - start_time) * 1000,
        envelope_id=envelope_id,
        funding_status=prediction.status.value,
        shortfall_cents=prediction.shortfall_cents,
    )
    return PredictionResponse.model_validate(prediction)


@router.get("/predictions", response_model=PredictionListResponse)
def list_predictions(
    request: Request,
    user_id: str = Query(..., min_length=1),
    horizon_days: Optional[int] = Query(None, gt=0, le=730),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
    config: Settings = Depends(get_settings),
):
    """Predictions for every envelope of a user"""
    start_time = time.time()
    request_id = get_request_id(request)
    horizon_end = today + timedelta(days=horizon_days or config.projection_horizon_days)

    try:
        sources, envelopes, allocations = load_budget(db, user_id)
        predictions = predict_all(envelopes, allocations, sources, horizon_end, today)
    except (InvalidFrequency, InvalidAmount) as e:
        logging.warning(f"Invalid budget data: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    record_predictions(predictions)
    log_calculation(
        request_id,
        user_id,
        "prediction_batch",
        (time.time() - start_time) * 1000,
        envelope_count=len(predictions),
        critical_count=sum(1 for p in predictions if p.status.value == "critical"),
    )
    return PredictionListResponse(
        user_id=user_id,
        horizon_end=horizon_end,
        predictions=[PredictionResponse.model_validate(p) for p in predictions],
    )
