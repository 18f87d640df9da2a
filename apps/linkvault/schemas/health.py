"""Health check response schemas."""

from pydantic import BaseModel, ConfigDict


class HealthResponse(BaseModel):
    """Health check response. archives: count per current state."""

    model_config = ConfigDict(extra="forbid")

    ok: bool
    version: str
    time: str
    archival_enabled: bool
    archives: dict[str, int]
