"""FastAPI application entry point."""

import logging
import os
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from planner.db.database import close_database, init_database
from planner.services.session_manager import init_session_manager, shutdown_session_manager

# Configure logging
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown."""
    # Startup
    db_path = os.getenv("DATABASE_PATH", "./data/planner.db")
    await init_database(db_path)

    # Start planning session manager
    await init_session_manager()
    logger.info("Workflow instance planner started")

    yield

    # Shutdown: sessions flush their drafts before the database closes
    await shutdown_session_manager()

    await close_database()


app = FastAPI(
    title="Workflow Instance Planner",
    description="Plan, validate and apply modifications and migrations of running process instances",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware - allow any localhost port for local UIs
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"^http://localhost(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


# Import and include routers after app is created to avoid circular imports
from planner.api import migrations, modifications  # noqa: E402

app.include_router(modifications.router, prefix="/api/v1", tags=["modifications"])
app.include_router(migrations.router, prefix="/api/v1", tags=["migrations"])
