"""Health check endpoint."""

import os
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from apps.linkvault.schemas.health import HealthResponse
from apps.linkvault.services.repo import archive_counts

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Health check. Returns ok, version (GIT_SHA or dev), current time (ISO) and archive counts per state."""
    version = os.getenv("GIT_SHA", "dev").strip() or "dev"
    return HealthResponse(
        ok=True,
        version=version,
        time=datetime.now(timezone.utc).isoformat(),
        archival_enabled=request.app.state.archive_config.enabled,
        archives=archive_counts(),
    )
