"""
FastAPI application for the studio homework engine.

Provides REST API for:
- Teacher homework submissions (start, progress, evidence, flow, cancel, restart)
- Automation flows and their counters
- Attribution signals (automation triggers, link clicks, booking conversions)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from config import configure_logging, get_settings
from src.db.database import check_database_health, init_db
from src.homework.errors import (
    ActiveHomeworkExists,
    CodeGenerationExhausted,
    FlowOwnershipMismatch,
    HomeworkAlreadyCompleted,
    HomeworkEngineError,
    InvalidProgressDelta,
    NotFound,
    SubmissionNotActive,
    TooManyEvidenceLinks,
    UnknownMetric,
    UnknownTrackingCode,
)

settings = get_settings()

ERROR_STATUS: dict[type[HomeworkEngineError], int] = {
    NotFound: 404,
    UnknownTrackingCode: 404,
    ActiveHomeworkExists: 409,
    HomeworkAlreadyCompleted: 409,
    SubmissionNotActive: 409,
    InvalidProgressDelta: 422,
    UnknownMetric: 422,
    TooManyEvidenceLinks: 422,
    FlowOwnershipMismatch: 403,
    CodeGenerationExhausted: 503,
}


def error_status(error: HomeworkEngineError) -> int:
    for error_type in type(error).__mro__:
        if error_type in ERROR_STATUS:
            return ERROR_STATUS[error_type]
    return 400


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    configure_logging(settings)
    logger.info("Starting studio homework service...")
    init_db()
    logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

    yield

    logger.info("Shutting down studio homework service...")


app = FastAPI(
    title="Studio Homework Engine",
    description="""
    Teacher homework and social-automation tracking.

    ## Features

    - **Homework**: one active homework per teacher, quantified requirements, evidence links
    - **Tracking links**: unique booking links that attribute bookings to a homework
    - **Flows**: auto-reply automations with triggered/booked counters
    - **Attribution**: click and conversion ledger per tracking code
    """,
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HomeworkEngineError)
async def homework_error_handler(request: Request, exc: HomeworkEngineError) -> JSONResponse:
    status = error_status(exc)
    if status >= 500:
        logger.error("{} {} failed: {}", request.method, request.url.path, exc)
    else:
        logger.info("{} {} rejected ({}): {}", request.method, request.url.path, exc.code, exc)
    payload: dict[str, Any] = {"error": exc.code, "message": exc.user_message, "detail": str(exc)}
    if isinstance(exc, ActiveHomeworkExists) and exc.active_homework_id:
        payload["active_homework_id"] = str(exc.active_homework_id)
    return JSONResponse(status_code=status, content=payload)


# ========================================
# Health & Status Endpoints
# ========================================


@app.get("/", tags=["Health"])
def root() -> dict[str, str]:
    """Root endpoint returning service info."""
    return {
        "service": "studio-homework-engine",
        "version": "0.1.0",
        "status": "ok",
    }


@app.get("/health", tags=["Health"])
def health_check() -> dict[str, Any]:
    """Health check with an actual database round trip."""
    db_status, db_error = check_database_health()
    result: dict[str, Any] = {
        "status": "healthy" if db_status == "ok" else "unhealthy",
        "timestamp": datetime.utcnow().isoformat(),
        "components": {"database": db_status},
    }
    if db_error:
        result["errors"] = {"database": db_error}
    return result


# ========================================
# Import and mount routers
# ========================================

from src.api.routers import flows_router, homework_router, tracking_router

app.include_router(homework_router.router, prefix="/api/homework", tags=["Homework"])
app.include_router(flows_router.router, prefix="/api/flows", tags=["Flows"])
app.include_router(tracking_router.router, prefix="/api/tracking", tags=["Tracking"])
