"""
trackfuse - FastAPI Backend

Main application entry point and configuration.
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from trackfuse.api.activities import folder_router, router as activities_router
from trackfuse.services.repository import get_repository, init_repository


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


APP_NAME = "trackfuse"
APP_VERSION = "0.1.0"

# Default data folder (can be overridden via API or environment)
DEFAULT_DATA_FOLDER = Path("./data/activities")
DATA_FOLDER_ENV = "TRACKFUSE_DATA_FOLDER"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(f"Starting {APP_NAME} backend")

    repo = get_repository()
    if repo.data_folder is None:
        data_folder = Path(os.getenv(DATA_FOLDER_ENV, str(DEFAULT_DATA_FOLDER)))
        if data_folder.exists():
            init_repository(data_folder)
            logger.info(f"Initialized repository with folder: {data_folder}")
        else:
            logger.info(f"Default data folder not found: {data_folder}")
            logger.info("Use POST /folder to set data folder")

    yield

    logger.info(f"Shutting down {APP_NAME} backend")


app = FastAPI(
    title="trackfuse",
    description="""
    Normalized GPX/FIT track ingestion.

    ## Features
    - Read .gpx (gpxpy) and .fit (fitparse) activity files
    - Merge concurrent sensor streams into one time-ordered track
    - Mark readings a sensor never took as missing, not zero
    - Serve polyline, colour-gradient and marker data for map overlays

    ## Data Flow
    1. Set data folder via POST /folder
    2. List activity files via GET /activities
    3. Get a summary via GET /activities/{id}
    4. Get overlay data via GET /activities/{id}/polyline, /gradient, /markers
    """,
    version=APP_VERSION,
    lifespan=lifespan,
)


# CORS middleware (allow all origins for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(activities_router)
app.include_router(folder_router)


@app.get("/")
async def root():
    """Root endpoint - basic health check."""
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    repo = get_repository()

    return {
        "status": "healthy",
        "data_folder": str(repo.data_folder) if repo.data_folder else None,
        "activity_count": repo.activity_count,
    }
