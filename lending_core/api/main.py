"""FastAPI application factory for the reference loan API"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from lending_core.api.middleware import RequestIDMiddleware, MetricsMiddleware
from lending_core.api.routes import loans
from lending_core.domain.exceptions import CalculationError
from lending_core.infrastructure.database.session import init_db
from lending_core.infrastructure.observability.logging import setup_logging
from lending_core.config import settings

# Setup structured logging
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Lending Core Loan API",
        description="Form metadata, loan terms and application intake for cash and PayGo loans",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.exception_handler(CalculationError)
    async def calculation_error_handler(request: Request, exc: CalculationError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(loans.router, prefix="/api", tags=["loans"])

    return app


app = create_app()
