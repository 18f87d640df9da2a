"""FastAPI application entry point."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

logging.basicConfig(level=logging.INFO)

from apps.linkvault.config import ArchiveConfig
from apps.linkvault.db import ensure_tables
from apps.linkvault.jobs.archive_content import ArchiveContentJob
from apps.linkvault.jobs.queue import ThreadPoolJobQueue
from apps.linkvault.routes import bookmarks, health

ARCHIVE_WORKERS = int(os.getenv("LINKVAULT_ARCHIVE_WORKERS", "4") or "4")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Ensure tables exist; build config and job queue once. Tests may preset app.state.job_queue."""
    ensure_tables()
    if not hasattr(app.state, "archive_config"):
        app.state.archive_config = ArchiveConfig.from_env().validate()
    owns_queue = not hasattr(app.state, "job_queue")
    if owns_queue:
        app.state.job_queue = ThreadPoolJobQueue(ArchiveContentJob(app.state.archive_config), max_workers=ARCHIVE_WORKERS)
    yield
    if owns_queue:
        app.state.job_queue.shutdown(wait=False)
        del app.state.job_queue


app = FastAPI(
    title="LinkVault API",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router, tags=["health"])
app.include_router(bookmarks.router, prefix="/bookmarks", tags=["bookmarks"])
