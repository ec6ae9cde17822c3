"""FastAPI application factory and lifespan management."""

import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from streambridge.config import settings
from streambridge.logging_config import configure_logging

# Configure logging at import time
_json_logs = os.environ.get("STREAMBRIDGE_LOCAL", "0") != "1"
configure_logging(log_level=settings.log_level, json_output=_json_logs)

logger = logging.getLogger(__name__)


async def _cancel(task: asyncio.Task | None) -> None:
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown resources."""
    from streambridge.db.engine import create_db_engine, create_session_factory, create_tables
    from streambridge.services.lifecycle import StreamLifecycleManager
    from streambridge.services.retention import RetentionSweeper
    from streambridge.services.supervisor import ProcessSupervisor
    from streambridge.workers.scheduler import run_monitor, run_retention_scheduler

    db_url = settings.effective_database_url
    engine = create_db_engine(db_url)

    # Auto-create tables for SQLite (local dev, no migrations)
    if "sqlite" in db_url:
        await create_tables(engine)
        logger.info("SQLite tables created (local mode)")

    app.state.db_engine = engine
    app.state.db_session_factory = create_session_factory(engine)

    supervisor = ProcessSupervisor(encoder_binary=settings.encoder_binary)
    app.state.supervisor = supervisor
    app.state.lifecycle = StreamLifecycleManager(
        app.state.db_session_factory, supervisor, settings.output_root,
    )
    app.state.sweeper = RetentionSweeper(app.state.lifecycle, retention_days=settings.retention_days)

    # Background tasks
    cleanup_task = None
    if settings.cleanup_enabled:
        cleanup_task = asyncio.create_task(run_retention_scheduler(app))
    monitor_task = None
    if settings.monitor_interval_seconds > 0:
        monitor_task = asyncio.create_task(run_monitor(app, settings.monitor_interval_seconds))

    logger.info(
        "StreamBridge API started (db=%s, output_root=%s, encoder=%s)",
        "sqlite" if "sqlite" in db_url else "postgresql",
        settings.output_root, settings.encoder_binary,
    )
    yield

    # Shutdown
    await _cancel(cleanup_task)
    await _cancel(monitor_task)
    await supervisor.shutdown()
    await engine.dispose()
    logger.info("StreamBridge API shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="StreamBridge API",
        version="1.0.0",
        description="RTMP to HLS/DASH live transcoding with job tracking and retention.",
        lifespan=lifespan,
    )

    # Players embed the streams cross-site
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from streambridge.api.middleware.trace_id import TraceIdMiddleware
    app.add_middleware(TraceIdMiddleware)

    # Register error handlers
    from streambridge.errors.handlers import register_exception_handlers
    register_exception_handlers(app)

    # Import and mount routers
    from streambridge.api.router import api_router
    app.include_router(api_router)

    # Segment output, read-only
    app.mount("/hls", StaticFiles(directory=settings.hls_dir, check_dir=False), name="hls")
    app.mount("/dash", StaticFiles(directory=settings.dash_dir, check_dir=False), name="dash")

    return app


app = create_app()
