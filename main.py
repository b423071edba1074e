import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.config.settings import get_settings
from src.infrastructure.persistence.database import (AsyncSessionLocal, engine,
                                                     get_db, init_db)
from src.infrastructure.scheduling.schedule_ticker import ScheduleTicker
from src.presentation.api.dependencies import (get_action_effects,
                                               get_run_dispatcher,
                                               set_action_effects,
                                               set_run_dispatcher)
from src.presentation.api.errors import register_exception_handlers
from src.presentation.api.v1.routes import workflows
from src.shared.telemetry.logging import setup_logging
from src.shared.telemetry.telemetry import (configure_telemetry,
                                            get_telemetry, set_telemetry)

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for application initialization and cleanup"""
    # Initialize logging
    setup_logging()

    # Schema is normally managed by migrations; auto-create is for dev/test
    if settings.database_auto_create:
        await init_db()
        logger.info("Database tables created")

    # Initialize OpenTelemetry distributed tracing
    configure_telemetry(settings, app, engine)

    # Runs that sleep out action delays finish on this dispatcher
    dispatcher = get_run_dispatcher()

    # Scheduled triggers
    ticker: ScheduleTicker | None = None
    if settings.schedule_tick_enabled:
        ticker = ScheduleTicker(
            session_factory=AsyncSessionLocal,
            dispatcher=dispatcher,
            interval_seconds=settings.schedule_tick_interval_seconds,
        )
        ticker.start()
    else:
        logger.info("Schedule ticker disabled in configuration")

    yield

    # Shutdown
    if ticker:
        ticker.shutdown()

    # In-flight runs are persisted as failed before the effects client closes
    await dispatcher.shutdown()
    set_run_dispatcher(None)

    effects = get_action_effects()
    aclose = getattr(effects, "aclose", None)
    if aclose is not None:
        await aclose()
    set_action_effects(None)

    telemetry = get_telemetry()
    if telemetry:
        telemetry.shutdown()
        set_telemetry(None)

    await engine.dispose()
    logger.info("Database engine disposed")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
    lifespan=lifespan,
)

register_exception_handlers(app)

# Security: Using allow_credentials=True requires specific origins (not wildcard)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.allowed_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(workflows.router, prefix="/workflows", tags=["workflows"])


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
    }


@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint for load balancers and monitoring.

    Returns:
    - 200 OK if the API and database respond
    - 503 Service Unavailable otherwise
    """
    checks: dict[str, Any] = {"api": True, "database": False}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = True
    except SQLAlchemyError as e:
        checks["error"] = str(e)
        return JSONResponse(status_code=503, content={"status": "unhealthy", "checks": checks})

    return {"status": "healthy", "checks": checks}
