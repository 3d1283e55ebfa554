# apps/api/trackhub/main.py
"""
Track-Hub FastAPI Application Entry Point
Middleware, lifespan, observability, routers and the domain error handler.
"""

import logging
import time

from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from trackhub.core.config import settings
from trackhub.core.errors import TrackHubError
from trackhub.db.session import lifespan
from trackhub.middleware.rate_limit import limiter, rate_limit_exceeded_handler
from trackhub.monitoring.metrics import (
    http_request_duration_seconds,
    http_requests_total,
    registry,
)
from trackhub.routers import billing, meetings, projects, questions, repository, users

# ────────────────────────────────────────────────
# Structured Logging Setup
# ────────────────────────────────────────────────
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[logging.StreamHandler()],
)
logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────
# Request metrics middleware
# ────────────────────────────────────────────────
async def record_request_metrics(request: Request, call_next):
    start = time.perf_counter()
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        # Route template keeps label cardinality bounded
        route = request.scope.get("route")
        path = getattr(route, "path", "unmatched")
        http_requests_total.labels(
            method=request.method, path=path, status=status_code
        ).inc()
        http_request_duration_seconds.labels(
            method=request.method, path=path, status=status_code
        ).observe(time.perf_counter() - start)


# ────────────────────────────────────────────────
# Exception handlers
# ────────────────────────────────────────────────
async def trackhub_error_handler(request: Request, exc: TrackHubError):
    """Domain errors: the message is surfaced verbatim."""
    logger.info(
        f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}",
        extra={"status_code": exc.status_code},
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def unhandled_exception_handler(request: Request, exc: Exception):
    user = getattr(request.state, "user", None)
    logger.exception(
        f"Unhandled exception: {exc}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "user_id": getattr(user, "id", None),
            "environment": settings.ENVIRONMENT,
        },
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ────────────────────────────────────────────────
# FastAPI Application
# ────────────────────────────────────────────────
def create_app() -> FastAPI:
    app = FastAPI(
        title="Track-Hub API",
        description="GitHub-linked projects, credits, Q&A, meetings and repository commits",
        version=settings.APP_VERSION,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url=None,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Users", "description": "Account sync"},
            {"name": "Projects", "description": "Admission, catalogue, commit history"},
            {"name": "Repository", "description": "Branches, commits, GitHub token"},
            {"name": "Questions", "description": "Saved Q&A"},
            {"name": "Meetings", "description": "Meetings and extracted issues"},
            {"name": "Billing", "description": "Credits and Stripe"},
            {"name": "Health", "description": "Health & readiness checks"},
        ],
    )

    # Rate limiting (per-route decorators read app.state.limiter)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(TrackHubError, trackhub_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ── Middleware (last added runs first) ──
    app.add_middleware(BaseHTTPMiddleware, dispatch=record_request_metrics)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin).rstrip("/") for origin in settings.CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(users.router)
    app.include_router(projects.router)
    app.include_router(repository.router)
    app.include_router(questions.router)
    app.include_router(meetings.router)
    app.include_router(billing.router)

    # ── Health / Readiness / Liveness ──
    @app.get("/health", tags=["Health"])
    async def health_check():
        return {"status": "healthy", "version": settings.APP_VERSION}

    @app.get("/ready", tags=["Health"])
    async def readiness_check():
        return {"status": "ready"}

    @app.get("/live", tags=["Health"])
    async def liveness_check():
        return {"status": "alive"}

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        return Response(generate_latest(registry), media_type=CONTENT_TYPE_LATEST)

    logger.info(
        f"Track-Hub API v{settings.APP_VERSION} configured "
        f"in {settings.ENVIRONMENT.upper()} mode"
    )
    return app


app = create_app()
