"""API schemas for webhook intake."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from reviewhub.models.domain import JobStatus, PlatformType


class WebhookIntakeRequest(BaseModel):
    """Normalized inbound event handed to the intake service."""

    platform_type: str = Field(..., description="Loosely typed provider identifier, e.g. 'Azure DevOps'.")
    event: str
    payload: dict[str, Any] = Field(default_factory=dict)
    correlation_id: Optional[str] = None


class WebhookIngestionResponse(BaseModel):
    job_id: str
    correlation_id: str
    platform_type: PlatformType
    status: JobStatus
