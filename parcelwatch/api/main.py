"""
parcelwatch API - Main FastAPI Application.

Serves the administrative API, the event stream and the manual task
triggers, and hosts the reconciliation scheduler when enabled.
"""

import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from parcelwatch import __version__
from parcelwatch.db.errors import StoreTimeoutError
from parcelwatch.utils.logging import setup_logging

# Load environment variables
load_dotenv()

# Configure logging early
setup_logging("parcelwatch-api")


def _init_database():
    """Initialize database connection if configured."""
    from parcelwatch.db import DatabaseConnection

    if not (os.getenv("DATABASE_URL") or os.getenv("INSTANCE_CONNECTION_NAME")):
        print("   Database: Not configured (DATABASE_URL / INSTANCE_CONNECTION_NAME not set)")
        return False

    try:
        DatabaseConnection.initialize()
        print("   Database: Connected")
        return True
    except Exception as e:
        print(f"   Database: Failed to connect - {e}")
        return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    from parcelwatch import config

    # Startup
    print("🚀 Starting parcelwatch API...")
    print(f"   Environment: {os.getenv('K_SERVICE', 'local')}")

    db_initialized = _init_database()

    scheduler_started = False
    if db_initialized and config.ENABLE_SCHEDULER:
        from parcelwatch.worker.scheduler import init_scheduler

        init_scheduler()
        scheduler_started = True
        print(f"   Scheduler: every {config.CYCLE_INTERVAL_MINUTES} minutes")

    yield

    # Shutdown
    if scheduler_started:
        from parcelwatch.worker.scheduler import shutdown_scheduler

        shutdown_scheduler()
        print("   Scheduler: stopped")

    if db_initialized:
        from parcelwatch.db import DatabaseConnection

        DatabaseConnection.close()
        print("   Database: Connection closed")

    print("👋 Shutting down parcelwatch API...")


# OpenAPI tag descriptions (shown in /docs and /openapi.json)
OPENAPI_TAGS = [
    {"name": "sessions", "description": "Marketplace credential management"},
    {"name": "orders", "description": "Active order set"},
    {"name": "delivered", "description": "Delivered order archive"},
    {"name": "events", "description": "Server-sent engine events"},
    {"name": "tasks", "description": "Manual reconciliation triggers"},
    {"name": "system", "description": "System health and information endpoints"},
]

# Create FastAPI application
app = FastAPI(
    title="parcelwatch API",
    description=(
        "Tracks marketplace parcels through borrowed marketplace sessions and "
        "carrier tracking APIs until delivery."
    ),
    version=__version__,
    lifespan=lifespan,
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreTimeoutError)
async def store_timeout_handler(request: Request, exc: StoreTimeoutError):
    """Map store deadlines to 503."""
    return JSONResponse(
        status_code=503, content={"detail": "Service temporarily unavailable"}
    )


@app.get("/", tags=["system"], operation_id="getServiceInfo")
async def root():
    """Return basic information about the API service."""
    return {
        "service": "parcelwatch API",
        "version": __version__,
        "status": "operational",
        "description": "Marketplace parcel reconciliation engine",
    }


@app.get("/health", tags=["system"], operation_id="healthCheck")
async def health_check():
    """Check service health status (used by Cloud Run monitoring)."""
    from parcelwatch.db import DatabaseConnection

    return {
        "status": "healthy",
        "service": "parcelwatch",
        "database": DatabaseConnection.is_initialized(),
        "environment": os.getenv("K_SERVICE", "local"),
    }


# Import and include routers
from parcelwatch.api.routes import delivered, events, orders, sessions  # noqa: E402
from parcelwatch.worker.routes import tasks  # noqa: E402

app.include_router(sessions.router, prefix="/api/v1", tags=["sessions"])
app.include_router(orders.router, prefix="/api/v1", tags=["orders"])
app.include_router(delivered.router, prefix="/api/v1", tags=["delivered"])
app.include_router(events.router, prefix="/api/v1", tags=["events"])
app.include_router(tasks.router, prefix="/tasks", tags=["tasks"])
