"""Webhook intake: normalize an inbound event and enqueue it for processing."""

from __future__ import annotations

import logging

from reviewhub.core.errors import UnsupportedPlatformError
from reviewhub.core.identifiers import new_correlation_id
from reviewhub.models.domain import (
    HandlerType,
    JobStatus,
    WebhookJob,
    WebhookJobMetadata,
    WorkflowType,
)
from reviewhub.schemas.webhooks import WebhookIntakeRequest
from reviewhub.services.contracts import JobQueue
from reviewhub.services.platforms import resolve_platform
from reviewhub.telemetry import increment_webhook_enqueue_failure, increment_webhook_ingestion

_logger = logging.getLogger(__name__)


class WebhookIntakeService:
    """Turns one inbound provider event into exactly one queued job."""

    def __init__(self, queue: JobQueue, *, max_retries: int = 1) -> None:
        self._queue = queue
        self._max_retries = max_retries

    async def enqueue(self, request: WebhookIntakeRequest) -> WebhookJob:
        correlation_id = request.correlation_id or new_correlation_id()
        try:
            platform = resolve_platform(request.platform_type)
        except UnsupportedPlatformError:
            _logger.exception(
                "Failed to enqueue raw webhook payload",
                extra={
                    "correlation_id": correlation_id,
                    "platform_type": request.platform_type,
                    "event": request.event,
                },
            )
            raise
        job = WebhookJob(
            correlation_id=correlation_id,
            workflow_type=WorkflowType.WEBHOOK_PROCESSING,
            handler_type=HandlerType.WEBHOOK_RAW,
            payload=request.payload,
            metadata=WebhookJobMetadata(platform_type=platform, event=request.event),
            status=JobStatus.PENDING,
            priority=0,
            retry_count=0,
            max_retries=self._max_retries,
        )
        try:
            await self._queue.enqueue(job)
        except Exception:
            increment_webhook_enqueue_failure(platform.value)
            _logger.exception(
                "Failed to enqueue raw webhook payload",
                extra={
                    "correlation_id": correlation_id,
                    "platform_type": platform.value,
                    "event": request.event,
                    "job_id": job.job_id,
                },
            )
            raise
        increment_webhook_ingestion(platform.value)
        _logger.info(
            "Webhook enqueued",
            extra={"correlation_id": correlation_id, "platform_type": platform.value, "event": request.event},
        )
        return job
