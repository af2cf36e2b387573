"""API routes for inbound provider webhooks."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException, status

from reviewhub.core.config import settings
from reviewhub.core.errors import QueueUnavailableError, UnsupportedPlatformError
from reviewhub.dependencies import get_intake_service
from reviewhub.schemas.webhooks import WebhookIngestionResponse, WebhookIntakeRequest
from reviewhub.services.intake import WebhookIntakeService


router = APIRouter(prefix=f"{settings.api_v1_prefix}/webhooks", tags=["webhooks"])


def resolve_event_name(payload: dict[str, Any], *headers: Optional[str]) -> Optional[str]:
    """First provider event header present, else the Azure ``eventType`` field."""

    for value in headers:
        if value:
            return value
    event_type = payload.get("eventType")
    return str(event_type) if event_type else None


@router.post("/{platform_type}", response_model=WebhookIngestionResponse, status_code=status.HTTP_202_ACCEPTED)
async def receive_webhook(
    platform_type: str,
    payload: dict[str, Any] = Body(...),
    github_event: Optional[str] = Header(None, alias="X-GitHub-Event"),
    gitlab_event: Optional[str] = Header(None, alias="X-Gitlab-Event"),
    bitbucket_event: Optional[str] = Header(None, alias="X-Event-Key"),
    generic_event: Optional[str] = Header(None, alias="X-Event-Type"),
    correlation_id: Optional[str] = Header(None, alias="X-Correlation-Id"),
    github_delivery: Optional[str] = Header(None, alias="X-GitHub-Delivery"),
    intake: WebhookIntakeService = Depends(get_intake_service),
) -> WebhookIngestionResponse:
    event = resolve_event_name(payload, github_event, gitlab_event, bitbucket_event, generic_event)
    if not event:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unable to determine webhook event")
    request = WebhookIntakeRequest(
        platform_type=platform_type,
        event=event,
        payload=payload,
        correlation_id=correlation_id or github_delivery,
    )
    try:
        job = await intake.enqueue(request)
    except UnsupportedPlatformError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except QueueUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Webhook queue unavailable") from exc
    return WebhookIngestionResponse(
        job_id=job.job_id,
        correlation_id=job.correlation_id,
        platform_type=job.metadata.platform_type,
        status=job.status,
    )
