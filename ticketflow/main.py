"""FastAPI application entry point."""

import logging
import os
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ticketflow.db.database import close_database, init_database
from ticketflow.workflow.sync import bootstrap_workflows, reset_bootstrapper

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
    db_path = os.getenv("DATABASE_PATH", "./data/ticketflow.db")
    await init_database(db_path)

    # Warm the rule engine; ticket events retry if this fails
    if os.getenv("BOOTSTRAP_ON_STARTUP", "true").lower() == "true":
        loaded = await bootstrap_workflows()
        logger.info(f"Workflow rules loaded on startup: {loaded}")

    yield

    # Shutdown
    reset_bootstrapper()
    await close_database()


app = FastAPI(
    title="Ticketflow",
    description="Helpdesk workflow automation: validate, repair and compile workflow graphs into rules",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware - allow any localhost port for the editor dev server
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
from ticketflow.api import automation, templates, workflows  # noqa: E402

app.include_router(templates.router, prefix="/api/v1", tags=["templates"])
app.include_router(workflows.router, prefix="/api/v1", tags=["workflows"])
app.include_router(automation.router, prefix="/api/v1", tags=["automation"])
