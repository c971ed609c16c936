"""FastAPI application for ProgressSync server.

This module creates and configures the FastAPI application with:
- REST API for the owner's progress document
- Health check

Usage:
    uvicorn progresssync.server.app:app_factory --factory --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from progresssync.core.config import SyncTunables
from progresssync.server.api.router import router as api_router
from progresssync.server.coordinator import SyncCoordinator
from progresssync.server.database import Database

# Configuration from environment variables with defaults
DB_PATH = Path(os.environ.get("PROGRESSSYNC_DB_PATH", "progresssync.db"))
LOG_PATH = Path(os.environ.get("PROGRESSSYNC_LOG_PATH", "progresssync-server.log"))

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def setup_logging(log_path: Path) -> None:
    """Configure logging to output to both file and stdout.

    Args:
        log_path: Path to the log file.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    # Root logger for progresssync
    root_logger = logging.getLogger("progresssync")
    root_logger.setLevel(logging.INFO)

    # Stdout handler
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    # File handler
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # Also capture uvicorn logs to file
    for uvicorn_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(uvicorn_name)
        uvicorn_logger.addHandler(file_handler)


def create_app(
    db: Database,
    coordinator: SyncCoordinator | None = None,
) -> FastAPI:
    """Create FastAPI application with a given database.

    This is primarily used for testing with isolated databases.

    Args:
        db: Database instance (token validation and document store).
        coordinator: Optional coordinator; built over ``db`` if omitted.

    Returns:
        Configured FastAPI application.
    """
    coordinator = coordinator or SyncCoordinator(db, tunables=SyncTunables.from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        tunables = coordinator.tunables
        logger.info("=" * 60)
        logger.info("ProgressSync Server Starting")
        logger.info("=" * 60)
        logger.info("  Database:     %s", db.db_path)
        logger.info("  Grace window: %dms", tunables.grace_window_ms)
        logger.info("  Max deltas:   %d days, %d items", tunables.max_day_delta, tunables.max_item_delta)
        logger.info("=" * 60)

        yield

        logger.info("ProgressSync Server shutting down")

    application = FastAPI(
        title="ProgressSync Server",
        description="Progress document synchronization server",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.state.db = db
    application.state.coordinator = coordinator

    application.include_router(api_router)

    return application


def app_factory() -> FastAPI:
    """Factory function for uvicorn --factory mode."""
    setup_logging(LOG_PATH)
    return create_app(db=Database(DB_PATH))
