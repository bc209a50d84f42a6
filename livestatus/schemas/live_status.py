"""Pydantic schemas for live-status snapshots and privileged updates."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class LiveSnapshot(BaseModel):
    """Serialized state returned to pollers and pushed to WebSocket listeners."""

    live: bool
    videoId: str | None = None


class UpdateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    videoId: str | None


class FlushRateLimited(BaseModel):
    error: str = "Stop hitting the API."
    retry_after: int
    statusText: str = "Cooldown is active."


class ReconcileSummary(BaseModel):
    checked: bool
    cleared: bool
    renewal: bool
