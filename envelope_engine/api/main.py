"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from envelope_engine.api.middleware import RequestIDMiddleware, MetricsMiddleware
from envelope_engine.api.v1 import allocations, debts, opening_balance, predictions
from envelope_engine.infrastructure.observability.logging import setup_logging
from envelope_engine.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Envelope Engine",
        description="Envelope funding predictions, income allocation and debt payoff projections",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(predictions.router, prefix="/v1", tags=["predictions"])
    app.include_router(opening_balance.router, prefix="/v1", tags=["opening-balance"])
    app.include_router(allocations.router, prefix="/v1", tags=["allocations"])
    app.include_router(debts.router, prefix="/v1", tags=["debts"])

    return app


app = create_app()
