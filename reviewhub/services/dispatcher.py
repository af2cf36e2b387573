"""Automation dispatch for canonical webhook triggers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from reviewhub.models.domain import (
    AutomationType,
    MappedPullRequest,
    OrganizationAndTeamData,
    PlatformType,
    RepositoryRef,
)
from reviewhub.services.contracts import AutomationStrategy, CodeManagement, ExecutionResult
from reviewhub.services.providers.github import github_pull_request
from reviewhub.services.webhook_mapping import (
    dig,
    get_mapped_platform,
    map_trigger,
    sanitize_payload,
    should_run_automation,
    user_git_id,
)
from reviewhub.telemetry import increment_automation_dispatch

_logger = logging.getLogger(__name__)


@dataclass
class DispatchRequest:
    """Everything needed to run the code review automation for one event."""

    payload: dict[str, Any]
    event: str
    platform_type: PlatformType
    organization_and_team_data: OrganizationAndTeamData
    team_automation_id: str
    correlation_id: Optional[str] = None


def reshape_pull_request(api_pull: dict[str, Any], repository: RepositoryRef) -> MappedPullRequest:
    """Fit a code-management pull request into the shape the mappers produce."""

    return github_pull_request(api_pull, RepositoryRef(id=repository.id, name=repository.name))


class AutomationDispatcher:
    """Gates, backfills, and hands a webhook event to the code review strategy."""

    def __init__(self, strategy: AutomationStrategy, code_management: CodeManagement) -> None:
        self._strategy = strategy
        self._code_management = code_management

    async def dispatch(self, request: DispatchRequest) -> Optional[ExecutionResult]:
        platform = request.platform_type
        try:
            if not should_run_automation(request.payload, platform):
                increment_automation_dispatch("skipped", platform.value)
                return None

            mapping = get_mapped_platform(platform)
            if mapping is None:
                return None

            payload = sanitize_payload(request.payload, platform)
            trigger = map_trigger(mapping, payload, request.event)
            if trigger is None:
                increment_automation_dispatch("ignored", platform.value)
                return None

            org_team = request.organization_and_team_data
            repository = trigger.repository
            pull_request = trigger.pull_request
            if pull_request is None:
                pull_request = await self._backfill_pull_request(org_team, repository, payload, platform)
                if pull_request is None:
                    increment_automation_dispatch("ignored", platform.value)
                    return None

            # Only GitHub ships the repository language inside the webhook.
            if not repository.language and platform != PlatformType.GITHUB:
                language = await self._code_management.get_language_repository(
                    org_team, repository, platform
                )
                repository = repository.model_copy(update={"language": language})

            _logger.info(
                "Dispatching code review for PR#%s",
                pull_request.number,
                extra={
                    "correlation_id": request.correlation_id,
                    "organization_id": org_team.organization_id,
                    "repository_id": repository.id,
                    "platform_type": platform.value,
                    "code_management_event": request.event,
                    "origin": trigger.origin,
                },
            )

            params = {
                "organization_and_team_data": org_team,
                "team_automation_id": request.team_automation_id,
                "repository": repository,
                "pull_request": pull_request,
                "branch": pull_request.head.ref,
                "code_management_event": request.event,
                "platform_type": platform,
                "origin": trigger.origin,
                "action": trigger.action,
                "trigger_comment_id": trigger.trigger_comment_id,
                "user_git_id": user_git_id(trigger.users),
                "correlation_id": request.correlation_id,
            }
            result = await self._strategy.execute_strategy(AutomationType.AUTOMATION_CODE_REVIEW, params)
            increment_automation_dispatch("executed", platform.value)
            return result
        except Exception:
            increment_automation_dispatch("error", platform.value)
            _logger.exception(
                "Error executing code review automation",
                extra={
                    "correlation_id": request.correlation_id,
                    "organization_id": request.organization_and_team_data.organization_id,
                    "team_id": request.organization_and_team_data.team_id,
                },
            )
            return None

    async def _backfill_pull_request(
        self,
        org_team: OrganizationAndTeamData,
        repository: RepositoryRef,
        payload: dict[str, Any],
        platform: PlatformType,
    ) -> Optional[MappedPullRequest]:
        # Issue comments on GitHub pull requests arrive without the pull request body.
        if platform != PlatformType.GITHUB:
            return None
        issue_number = dig(payload, "issue", "number")
        if issue_number is None:
            return None
        api_pull = await self._code_management.get_pull_request(
            org_team, repository, int(issue_number), platform
        )
        if not api_pull:
            return None
        if api_pull.get("number") is None:
            api_pull = {**api_pull, "number": issue_number}
        return reshape_pull_request(api_pull, repository)
