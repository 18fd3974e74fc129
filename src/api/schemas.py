"""API-facing Pydantic models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = "ok"


class DeliveryResponse(BaseModel):
    ok: bool
    status_code: int | None = Field(default=None, description="HTTP status returned by the webhook.")
    reason: str | None = None
