"""Prometheus metrics for monitoring funding health, allocation capacity, and debt projections"""

from typing import Iterable

from prometheus_client import Counter, Histogram

from envelope_engine.domain.models import AllocationPlan, EnvelopePrediction, PayoffProjection, StrategyResult

# Prediction metrics
prediction_status_counter = Counter(
    "envelope_prediction_total",
    "Envelope funding predictions made",
    ["status"],  # on_track | behind | critical
)

# Allocation metrics
allocation_plan_counter = Counter(
    "envelope_allocation_plan_total",
    "Allocation plans suggested",
    ["capacity"],  # sufficient | shortfall
)

allocation_overflow_counter = Counter(
    "envelope_allocation_overflow_total",
    "Manual allocations rejected for exceeding income",
)

# Debt metrics
payoff_projection_counter = Counter(
    "envelope_payoff_projection_total",
    "Debt payoff projections made",
    ["kind", "outcome"],  # single | strategy ; converges | non_convergent
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_predictions(predictions: Iterable[EnvelopePrediction]) -> None:
    """Record the funding status of each prediction"""
    for prediction in predictions:
        prediction_status_counter.labels(status=prediction.status.value).inc()


def record_allocation_plan(plan: AllocationPlan) -> None:
    """Record whether a plan could cover all essential envelopes"""
    capacity = "shortfall" if plan.has_capacity_shortfall else "sufficient"
    allocation_plan_counter.labels(capacity=capacity).inc()


def record_payoff(result: PayoffProjection | StrategyResult) -> None:
    """Record payoff convergence for monitoring under-water debts"""
    kind = "strategy" if isinstance(result, StrategyResult) else "single"
    outcome = "converges" if result.converges else "non_convergent"
    payoff_projection_counter.labels(kind=kind, outcome=outcome).inc()
