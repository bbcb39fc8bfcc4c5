"""FastAPI application factory"""

import asyncio
import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles

from trailcam import __version__
from trailcam.core.config import get_settings
from trailcam.core.database import (
    DatabaseManager,
    PoolConfig,
    get_database_manager,
    init_database_manager,
)
from trailcam.core.dependencies import close_publisher, get_chunk_store
from trailcam.core.logging import setup_logging
from trailcam.routers import live_cam_router

logger = logging.getLogger(__name__)

# Track server start time
_start_time: float = 0.0
_db_retry_task: asyncio.Task | None = None
_sweep_task: asyncio.Task | None = None


async def _db_retry_loop(db_manager: DatabaseManager) -> None:
    """Background loop to retry DB connection after startup timeout."""
    delay = 5
    max_delay = 60
    while True:
        await asyncio.sleep(delay)
        if db_manager.is_connected:
            logger.info("DB retry loop: pool already connected, stopping")
            return
        try:
            await db_manager.connect()
            logger.info("Database connected (background retry)")
            return
        except asyncio.CancelledError:
            return
        except Exception as e:
            delay = min(delay * 2, max_delay)
            logger.warning(
                f"DB background retry failed: {type(e).__name__}: {e}, next retry in {delay}s"
            )


async def _sweep_loop(interval: int, max_age_seconds: float) -> None:
    """Periodically delete segments left behind by crashed or abandoned sessions."""
    store = get_chunk_store()
    while True:
        await asyncio.sleep(interval)
        try:
            report = await asyncio.to_thread(store.sweep_storage, max_age_seconds)
            if report.files_deleted:
                logger.info(
                    f"Storage sweep: {report.files_deleted} file(s), "
                    f"{report.megabytes_freed} MB freed, {report.dirs_removed} dir(s) removed"
                )
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.warning(f"Storage sweep failed: {type(e).__name__}: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle startup and shutdown"""
    global _start_time, _db_retry_task, _sweep_task
    _start_time = time.time()

    settings = get_settings()

    # Startup
    logger.info("Starting Trailcam relay")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Segment storage: {settings.storage_dir}")
    if settings.is_production and settings.broadcast_driver == "log":
        logger.warning("Broadcast driver is 'log' in production, viewers get no realtime events")

    db_manager = init_database_manager(
        settings.database_url, PoolConfig(ssl=settings.database_ssl)
    )

    try:
        await asyncio.wait_for(db_manager.connect(), timeout=30)
        logger.info("Database connected")
    except TimeoutError:
        logger.warning("DB connection timed out during startup, retrying in background")
        _db_retry_task = asyncio.create_task(_db_retry_loop(db_manager))
    except Exception as e:
        logger.error(
            f"DB connection failed during startup: {type(e).__name__}: {e}, retrying in background"
        )
        _db_retry_task = asyncio.create_task(_db_retry_loop(db_manager))

    if settings.cleanup_interval_seconds > 0:
        _sweep_task = asyncio.create_task(
            _sweep_loop(settings.cleanup_interval_seconds, settings.cleanup_max_age_hours * 3600)
        )
        logger.info(f"Storage sweep started (interval={settings.cleanup_interval_seconds}s)")

    yield

    # Shutdown
    logger.info("Shutting down Trailcam relay")
    if _db_retry_task:
        _db_retry_task.cancel()
    if _sweep_task:
        _sweep_task.cancel()
    try:
        await close_publisher()
        await db_manager.disconnect()
        logger.info("Database disconnected")
    except Exception as e:
        logger.exception(f"Error during shutdown: {e}")


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    settings = get_settings()

    setup_logging(settings)

    app = FastAPI(
        title="Trailcam Relay",
        description="Segment relay, chat and viewer presence for trail live cameras",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(live_cam_router.router)
    app.mount(
        settings.thumbnail_url_prefix,
        StaticFiles(directory=settings.thumbnail_dir, check_dir=False),
        name="thumbnails",
    )

    @app.get("/")
    async def root():
        """Root endpoint - minimal service info"""
        return {"service": "trailcam-relay", "status": "running"}

    # Liveness probe, no external dependency
    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "uptime_seconds": int(time.time() - _start_time),
        }

    @app.get("/status")
    async def status():
        """Readiness / status endpoint with an actual DB health check"""
        db_manager = get_database_manager()
        db_ok = False
        if db_manager is not None and db_manager.is_connected:
            db_ok = await db_manager.check_health()
        return {
            "service": "trailcam-relay",
            "version": __version__,
            "uptime_seconds": int(time.time() - _start_time),
            "db_connected": db_ok,
            "environment": settings.environment,
        }

    @app.api_route("/ping", methods=["GET", "HEAD"], response_class=PlainTextResponse)
    async def ping():
        return "pong"

    logger.info("FastAPI application configured")

    return app
