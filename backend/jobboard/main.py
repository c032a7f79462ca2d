"""
Job Board Ad API - Main Application Entry Point

This module initializes the FastAPI application with:
- Database connection and schema initialization
- Optional in-process scheduler for housekeeping jobs
- CORS middleware for frontend communication
- Prometheus metrics
- Domain error rendering
- API router registration

Architecture:
    FastAPI App
    ├── Lifespan Management (startup/shutdown)
    ├── CORS Middleware
    ├── Prometheus Middleware (/metrics)
    └── API Router
        ├── /auth - Registration, sessions, account deletion
        ├── /ads - Listings, checkout, edits, jumps, upgrade/renew
        ├── /payments - Gateway confirmation, payment history
        ├── /admin - Moderation, manual payment approval, credits, stats
        └── /cron - Housekeeping triggers (shared secret)
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from jobboard.config import get_settings
from jobboard.database import init_db
from jobboard.errors import DomainError
from jobboard.api import api_router
from jobboard.middleware import setup_metrics

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle events.

    Startup:
        1. Initialize database tables
        2. Start the housekeeping scheduler when ENABLE_SCHEDULER is set

    Shutdown:
        1. Gracefully stop the scheduler
    """
    await init_db()
    if settings.enable_scheduler:
        from jobboard.scheduler import start_scheduler
        start_scheduler()
    yield
    if settings.enable_scheduler:
        from jobboard.scheduler import stop_scheduler
        stop_scheduler()


app = FastAPI(
    title="Job Board Ad API",
    description="Paid job-ad placement: checkout, moderation, jumps and expiry",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_metrics(app)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(part) for part in error["loc"][1:]), "message": error["msg"]}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "code": "VALIDATION_ERROR", "details": details},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal server error", "code": "INTERNAL_ERROR"})


app.include_router(api_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
