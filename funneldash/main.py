"""FunnelDash — FastAPI Application Entry Point.

Campaign funnel dashboard backend: CSV and RedTrack ingestion, filtered
aggregation views.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from funneldash.database import init_db, test_connection
from funneldash.api.funnel_routes import router as funnel_router
from funneldash.api.redtrack_routes import router as redtrack_router
from funneldash.core.logging import get_logger

logger = get_logger("main")

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info("FunnelDash starting up...")
    if test_connection():
        try:
            init_db()
        except SQLAlchemyError as e:
            logger.error(f"Table creation failed: {e}")
    else:
        logger.error("Database NOT connected — endpoints will return empty data")
    yield
    logger.info("FunnelDash shut down")


app = FastAPI(
    title="FunnelDash",
    description="Campaign funnel dashboard: import CSV or RedTrack reports, browse cost, profit and ROI by funnel and day.",
    version=VERSION,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(funnel_router)
app.include_router(redtrack_router)


@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "funneldash",
        "version": VERSION,
    }
