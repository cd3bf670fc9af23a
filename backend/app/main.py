"""
Employee Health Calling Backend - Main Application

This is the entry point for the FastAPI application.
It handles:
- WebSocket connections for presence and doctor/employee call signaling
- REST endpoints for call history and health
- Background tasks for stats logging
"""
from contextlib import asynccontextmanager
import asyncio
import logging
from datetime import datetime, UTC

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import router as api_router
from app.api.websocket import router as ws_router
from app.config.redis import close_redis
from app.config.settings import settings
from app.models.database import init_db
from app.services.call import SqlCallRecordSink
from app.services.connection import ConnectionManager
from app.services.directory import SqlUserDirectory
from app.services.metrics import log_stats_forever, registry_sizes, start_metrics_server
from app.services.session import CallController

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def build_call_controller() -> CallController:
    """Controller wired to the SQL/Redis collaborators."""
    return CallController(
        connections=ConnectionManager(),
        directory=SqlUserDirectory(),
        sink=SqlCallRecordSink(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events using the modern FastAPI pattern.
    """
    # === STARTUP ===
    logger.info("🚀 Starting Employee Health Calling Backend...")

    await init_db()
    logger.info("✅ Database tables created")

    sink = SqlCallRecordSink()
    await sink.close_orphaned_calls()

    if getattr(app.state, "call_controller", None) is None:
        app.state.call_controller = build_call_controller()
    controller = app.state.call_controller
    logger.info("✅ Call controller ready")

    if settings.METRICS_PORT:
        start_metrics_server(settings.METRICS_PORT)

    stats_task = asyncio.create_task(
        log_stats_forever(controller, settings.STATS_LOG_INTERVAL_SECONDS)
    )
    logger.info("✅ Stats logging started")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("🛑 Shutting down...")
    stats_task.cancel()
    await controller.shutdown()
    await close_redis()


app = FastAPI(
    title="Employee Health Calling Backend",
    description="Presence and doctor/employee call signaling",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=settings.CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include REST API routes
app.include_router(api_router, prefix="/api")

# Include WebSocket routes
app.include_router(ws_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Employee Health Calling",
        "version": "1.0.0",
        "status": "running"
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        **registry_sizes(getattr(app.state, "call_controller", None)),
    }
