"""Processing of queued raw webhook jobs."""

from __future__ import annotations

import logging
from typing import Optional

from reviewhub.core.errors import InvalidJobError
from reviewhub.models.domain import WebhookJob, WorkflowType
from reviewhub.services.contracts import ExecutionResult, WebhookContextProvider
from reviewhub.services.dispatcher import AutomationDispatcher, DispatchRequest
from reviewhub.services.webhook_mapping import get_mapped_platform, sanitize_payload

_logger = logging.getLogger(__name__)


class WebhookJobProcessor:
    """Resolves tenant context for a queued webhook and dispatches it."""

    def __init__(self, context_provider: WebhookContextProvider, dispatcher: AutomationDispatcher) -> None:
        self._context_provider = context_provider
        self._dispatcher = dispatcher

    async def process(self, job: WebhookJob) -> Optional[ExecutionResult]:
        if job.workflow_type != WorkflowType.WEBHOOK_PROCESSING:
            raise InvalidJobError(
                f"Job {job.job_id} is not a WEBHOOK_PROCESSING workflow. Got: {job.workflow_type.value}"
            )
        platform = job.metadata.platform_type
        event = job.metadata.event
        log_extra = {
            "job_id": job.job_id,
            "correlation_id": job.correlation_id,
            "platform_type": platform.value,
            "event": event,
        }

        mapping = get_mapped_platform(platform)
        if mapping is None:
            raise InvalidJobError(f"No handler found for platform {platform.value}")
        if not mapping.handles_event(event):
            _logger.warning("Handler cannot handle event %s for platform %s", event, platform.value, extra=log_extra)
            return None

        repository = mapping.map_repository(sanitize_payload(job.payload, platform))
        if repository is None:
            _logger.info("Webhook payload carries no repository", extra=log_extra)
            return None

        context = await self._context_provider.get_context(platform, repository.id)
        if context is None:
            _logger.info(
                "No active code review automation for repository %s", repository.id, extra=log_extra
            )
            return None

        return await self._dispatcher.dispatch(
            DispatchRequest(
                payload=job.payload,
                event=event,
                platform_type=platform,
                organization_and_team_data=context.organization_and_team_data,
                team_automation_id=context.team_automation_id,
                correlation_id=job.correlation_id,
            )
        )
