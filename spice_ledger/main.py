from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from spice_ledger.config import settings
from spice_ledger.api.v1.router import api_router
from spice_ledger.core.exceptions import LedgerError
from spice_ledger.database import init_db, async_session_factory
from spice_ledger.jobs.scheduler import start_scheduler, shutdown_scheduler, get_job_status
from spice_ledger.services.reminder_scheduler import NotificationState


logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, reset the notification dedup state, start the scheduler."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()
    # Notifications already announced by this process
    app.state.notification_state = NotificationState()

    if settings.SCHEDULER_ENABLED:
        start_scheduler()
    else:
        logger.info("Background scheduler disabled")

    yield

    shutdown_scheduler()
    app.state.notification_state.clear()
    app.state.notification_state = None
    logger.info(f"{settings.APP_NAME} stopped")


OPENAPI_TAGS = [
    {"name": "Caterers", "description": "Caterer profiles and balance aggregates"},
    {"name": "Distributions", "description": "Spice bills with GST line items and payment status"},
    {"name": "Caterer Payments", "description": "Payments against bills or caterers"},
    {"name": "Payment Reminders", "description": "Stored and bill-derived collection reminders"},
    {"name": "Notifications", "description": "Urgent reminder feed"},
]

API_DESCRIPTION = """
## Spice Ledger API

Billing and collections for caterers buying spices on credit.

### Authentication

All `/api/v1` endpoints require a JWT access token:
`Authorization: Bearer <token>`

### Error Codes

| Code | Description |
|------|-------------|
| 400 | Payment exceeds the bill's balance |
| 401 | Unauthorized - Invalid/expired token |
| 404 | Not Found - Resource doesn't exist |
| 409 | Conflict - stale balance or related records block a delete |
| 422 | Validation failed |
"""

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


@app.exception_handler(LedgerError)
async def ledger_exception_handler(request: Request, exc: LedgerError):
    """Business rule violations carry their own status code and details."""
    logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Anything not raised as a LedgerError is a 500. Tracebacks only in debug mode."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    body = {
        "error": "internal_error",
        "type": type(exc).__name__,
        "message": str(exc),
        "path": request.url.path,
    }
    if settings.DEBUG:
        body["traceback"] = traceback.format_exception(exc)
    return JSONResponse(status_code=500, content=body)


@app.get("/health", tags=["Health"])
async def health_check():
    """Database connectivity plus the scheduled background jobs."""
    checks = {"database": "connected", "scheduler": get_job_status()}
    healthy = True
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        checks["database"] = f"error: {e}"
        healthy = False

    body = {
        "status": "healthy" if healthy else "unhealthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }
    if not healthy:
        return JSONResponse(status_code=503, content=body)
    return body


@app.get("/", tags=["Root"])
async def root():
    return {"app": settings.APP_NAME, "version": settings.APP_VERSION, "docs": "/docs"}
