"""Collaborator contracts consumed by the review pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from reviewhub.models.domain import (
    AutomationExecution,
    AutomationType,
    CodeReviewExecution,
    ConfiguredRepository,
    OrganizationAndTeamData,
    PlatformType,
    PullRequestRecord,
    RepositoryRef,
    SuggestionsCount,
    WebhookContext,
    WebhookJob,
)


@dataclass(frozen=True)
class PullRequestKey:
    """Join key between executions and pull request records."""

    repository_id: str
    number: int

    def as_lookup(self) -> str:
        return f"{self.repository_id}_{self.number}"


@dataclass
class ExecutionFilter:
    """Scope for paging automation executions that reference pull requests."""

    organization_and_team_data: OrganizationAndTeamData
    repository_ids: Optional[list[str]] = None
    repository_name: Optional[str] = None
    pull_request_number: Optional[int] = None
    pr_filters: Optional[list[PullRequestKey]] = None


@dataclass
class ExecutionPage:
    data: list[AutomationExecution] = field(default_factory=list)
    total: int = 0


@dataclass
class ExecutionResult:
    """Outcome reported by an automation strategy."""

    execution_id: Optional[str]
    status: str
    details: dict[str, Any] = field(default_factory=dict)


class JobQueue(Protocol):
    async def enqueue(self, job: WebhookJob) -> None:  # pragma: no cover - interface
        ...


class CodeManagement(Protocol):
    async def get_pull_request(
        self,
        organization_and_team_data: OrganizationAndTeamData,
        repository: RepositoryRef,
        pr_number: int,
        platform_type: PlatformType,
    ) -> Optional[dict[str, Any]]:  # pragma: no cover - interface
        ...

    async def get_language_repository(
        self,
        organization_and_team_data: OrganizationAndTeamData,
        repository: RepositoryRef,
        platform_type: PlatformType,
    ) -> Optional[str]:  # pragma: no cover - interface
        ...


class AutomationStrategy(Protocol):
    async def execute_strategy(
        self, automation_type: AutomationType, params: dict[str, Any]
    ) -> ExecutionResult:  # pragma: no cover - interface
        ...


class PullRequestStore(Protocol):
    async def find_many_by_numbers_and_repository_ids(
        self, criteria: list[PullRequestKey], organization_id: str
    ) -> list[PullRequestRecord]:  # pragma: no cover - interface
        ...

    async def find_suggestion_counts_by_numbers_and_repository_ids(
        self, criteria: list[PullRequestKey], organization_id: str
    ) -> dict[str, SuggestionsCount]:  # pragma: no cover - interface
        ...

    async def find_pr_numbers_by_title_and_organization(
        self, title: str, organization_id: str, repository_ids: Optional[list[str]] = None
    ) -> list[PullRequestKey]:  # pragma: no cover - interface
        ...


class ExecutionStore(Protocol):
    async def find_pull_request_executions_by_organization_and_team(
        self, execution_filter: ExecutionFilter, skip: int, take: int, order: str = "DESC"
    ) -> ExecutionPage:  # pragma: no cover - interface
        ...


class CodeReviewExecutionStore(Protocol):
    async def find_many_by_automation_execution_ids(
        self, execution_ids: list[str]
    ) -> list[CodeReviewExecution]:  # pragma: no cover - interface
        ...


class RepositoryCatalog(Protocol):
    async def list_configured_repositories(
        self, organization_and_team_data: OrganizationAndTeamData
    ) -> list[ConfiguredRepository]:  # pragma: no cover - interface
        ...


class AuthorizationScope(Protocol):
    async def get_repository_scope(
        self, organization_id: str, user_id: Optional[str]
    ) -> Optional[list[str]]:  # pragma: no cover - interface
        ...


class WebhookContextProvider(Protocol):
    async def get_context(
        self, platform_type: PlatformType, repository_id: str
    ) -> Optional[WebhookContext]:  # pragma: no cover - interface
        ...
