"""FastAPI application factory"""

import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from matchmaking_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from matchmaking_gateway.api.v1 import search, calls
from matchmaking_gateway.domain.exceptions import DomainException
from matchmaking_gateway.infrastructure.observability.logging import setup_logging
from matchmaking_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level, settings.service_name)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Matchmaking Gateway",
        description="Compatibility search, match suggestions and masked calling",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Routes translate expected domain errors themselves; anything reaching here is a data fault
    @app.exception_handler(DomainException)
    async def domain_error_handler(request: Request, exc: DomainException):
        request_id = getattr(request.state, "request_id", "unknown")
        logging.error(
            f"Unhandled {type(exc).__name__}: {exc}",
            extra={"request_id": request_id, "path": request.url.path},
        )
        return JSONResponse(status_code=500, content={"detail": "Internal error", "request_id": request_id})

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(search.router, prefix="/v1", tags=["search"])
    app.include_router(calls.router, prefix="/v1", tags=["calls"])

    return app


app = create_app()
