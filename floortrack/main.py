"""
Main FastAPI application for the Floortrack attendance tracker
"""
import logging
import logging.config

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from floortrack import __version__
from floortrack.api import tracker
from floortrack.config import settings
from floortrack.database import Base, SessionLocal, engine
from floortrack import models  # noqa: F401  registers tables on Base.metadata
from floortrack.services.reconciliation_service import ReconciliationScheduler, ReconciliationService

logging.config.dictConfig(settings.get_logging_config())
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Floortrack",
    description="Employee attendance tracker: clock actions, breaks, daily summaries and automatic clock-out",
    version=__version__,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_tags=[
        {
            "name": "tracker",
            "description": "Clock actions, status and attendance reports",
        },
    ]
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[tracker.FALLBACK_HEADER],
)

app.include_router(tracker.router, prefix=settings.API_PREFIX)

scheduler = None


@app.get("/health")
async def health_check():
    """Database connectivity and auto clock-out scheduler state"""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        return {
            "status": "healthy",
            "database": "connected",
            "auto_clock_out": "running" if scheduler is not None and scheduler.running else "stopped",
            "version": __version__
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail="Service unavailable")


@app.on_event("startup")
async def startup_event():
    """Create tables and start the auto clock-out scheduler"""
    global scheduler
    logger.info("Starting Floortrack")
    for problem in settings.problems():
        logger.warning(f"Configuration: {problem}")

    # In production, use Alembic migrations instead
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables initialized")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")

    if settings.ENABLE_AUTO_CLOCK_OUT:
        scheduler = ReconciliationScheduler(ReconciliationService(SessionLocal))
        scheduler.start()
    else:
        logger.info("Auto clock-out disabled")


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the auto clock-out scheduler"""
    logger.info("Shutting down Floortrack")
    if scheduler is not None:
        scheduler.stop()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "floortrack.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
