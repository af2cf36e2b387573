"""Default automation strategy that records each code review execution."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from reviewhub.core.identifiers import new_execution_id
from reviewhub.models.domain import (
    AutomationExecution,
    AutomationStatus,
    AutomationType,
    MappedPullRequest,
    OrganizationAndTeamData,
    RepositoryRef,
)
from reviewhub.repositories.redis_store import RedisReviewWarehouse
from reviewhub.services.contracts import ExecutionResult
from reviewhub.telemetry import EventSink, NullEventSink

_logger = logging.getLogger(__name__)


class ExecutionRecordingStrategy:
    """Persists a pending execution for the external review pipeline to pick up."""

    def __init__(self, store: RedisReviewWarehouse, sink: EventSink | None = None) -> None:
        self._store = store
        self._sink = sink or NullEventSink()

    async def execute_strategy(self, automation_type: AutomationType, params: dict[str, Any]) -> ExecutionResult:
        org_team: OrganizationAndTeamData = params["organization_and_team_data"]
        repository: RepositoryRef = params["repository"]
        pull_request: MappedPullRequest = params["pull_request"]
        execution = AutomationExecution(
            uuid=new_execution_id(),
            organization_id=org_team.organization_id,
            team_id=org_team.team_id,
            pull_request_number=pull_request.number,
            repository_id=repository.id,
            status=AutomationStatus.PENDING,
            origin=params.get("origin"),
            data_execution={
                "repository": {"id": repository.id, "name": repository.name},
                "pull_request": {
                    "number": pull_request.number,
                    "title": pull_request.title,
                    "url": pull_request.url,
                },
                "team": {"uuid": org_team.team_id},
                "automation": {
                    "name": "Code Review",
                    "uuid": params.get("team_automation_id"),
                    "type": automation_type.value,
                },
                "platform_type": _value(params.get("platform_type")),
                "branch": params.get("branch"),
                "action": params.get("action"),
                "user_git_id": params.get("user_git_id"),
                "trigger_comment_id": params.get("trigger_comment_id"),
            },
        )
        await asyncio.to_thread(self._store.save_execution, execution)
        _logger.info(
            "Recorded automation execution %s",
            execution.uuid,
            extra={
                "correlation_id": params.get("correlation_id"),
                "organization_id": org_team.organization_id,
                "repository_id": repository.id,
                "pull_request_number": pull_request.number,
            },
        )
        await self._publish(execution, automation_type)
        return ExecutionResult(execution_id=execution.uuid, status=execution.status.value)

    async def _publish(self, execution: AutomationExecution, automation_type: AutomationType) -> None:
        event = {
            "event_type": "automation_execution_created",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "execution_id": execution.uuid,
            "automation_type": automation_type.value,
            "organization_id": execution.organization_id,
            "team_id": execution.team_id,
            "repository_id": execution.repository_id,
            "pull_request_number": execution.pull_request_number,
            "origin": execution.origin,
        }
        try:
            await asyncio.to_thread(self._sink.publish, event)
        except Exception:
            _logger.exception("Failed to publish execution event %s", execution.uuid)


def _value(item: Any) -> Any:
    return getattr(item, "value", item)
