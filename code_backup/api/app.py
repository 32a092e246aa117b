"""FastAPI application for code-backup."""

import logging
import os
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from code_backup.backup import BackupError
from .config import settings
from .dispatch import ToolDispatcher
from .exceptions import backup_error_handler
from .routers import backups, health, operations, tools

# App-managed pattern: attach our own handler and don't propagate
backup_logger = logging.getLogger("code-backup")
backup_logger.setLevel(logging.INFO)
backup_logger.propagate = False
backup_logger.handlers.clear()

console_handler = logging.StreamHandler(sys.stdout)
console_handler.setLevel(logging.INFO)
formatter = logging.Formatter(
    '%(asctime)s - [%(name)s] - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
console_handler.setFormatter(formatter)
backup_logger.addHandler(console_handler)

if os.getenv("DISABLE_APP_LOGGING", "false").lower() == "true":
    backup_logger.handlers.clear()
    backup_logger.propagate = True

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage the dispatcher lifecycle."""
    logger.info("Initializing backup engine...")

    try:
        config = settings.backup_config()
        app.state.dispatcher = ToolDispatcher.from_config(config)
        logger.info(f"Backup engine ready, main store {config.backup_dir}, emergency store {config.emergency_backup_dir}")
    except Exception as e:
        logger.error(f"Failed to initialize backup engine: {e}")
        raise

    yield

    active = app.state.dispatcher.tracker.list_operations()
    if active:
        logger.warning(f"Shutting down with {len(active)} operations still running")
    logger.info("Shutting down backup engine...")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
        docs_url=f"{settings.api_prefix}/docs",
        openapi_url=f"{settings.api_prefix}/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(BackupError, backup_error_handler)

    app.include_router(tools.router, prefix=settings.api_prefix)
    app.include_router(backups.router, prefix=settings.api_prefix)
    app.include_router(operations.router, prefix=settings.api_prefix)
    app.include_router(health.router, prefix=settings.api_prefix)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": settings.api_title,
            "version": settings.api_version,
            "docs": f"{settings.api_prefix}/docs"
        }

    return app


# Create default app instance
app = create_app()
