"""Domain data models for the review automation pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from reviewhub.core.identifiers import new_job_id


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PlatformType(str, Enum):
    """Canonical source-control providers."""

    GITHUB = "GITHUB"
    GITLAB = "GITLAB"
    BITBUCKET = "BITBUCKET"
    AZURE_REPOS = "AZURE_REPOS"


class JobStatus(str, Enum):
    """Lifecycle states for a queued webhook job."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class WorkflowType(str, Enum):
    WEBHOOK_PROCESSING = "WEBHOOK_PROCESSING"
    CODE_REVIEW = "CODE_REVIEW"


class HandlerType(str, Enum):
    WEBHOOK_RAW = "WEBHOOK_RAW"


class AutomationType(str, Enum):
    AUTOMATION_CODE_REVIEW = "AutomationCodeReview"


class AutomationStatus(str, Enum):
    """Processing states for an automation execution."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    ERROR = "error"
    PARTIAL_ERROR = "partial_error"
    SKIPPED = "skipped"


class DeliveryStatus(str, Enum):
    """Whether a generated suggestion reached the pull request."""

    SENT = "sent"
    NOT_SENT = "not_sent"
    FAILED = "failed"
    FAILED_LINES_MISMATCH = "failed_lines_mismatch"


class OrganizationAndTeamData(BaseModel):
    """Tenant scope threaded through every operation."""

    organization_id: str
    team_id: Optional[str] = None


class WebhookJobMetadata(BaseModel):
    platform_type: PlatformType
    event: str


class WebhookJob(BaseModel):
    """Unit of work enqueued for one inbound provider event."""

    job_id: str = Field(default_factory=new_job_id)
    correlation_id: str
    workflow_type: WorkflowType = WorkflowType.WEBHOOK_PROCESSING
    handler_type: HandlerType = HandlerType.WEBHOOK_RAW
    payload: dict[str, Any] = Field(default_factory=dict)
    metadata: WebhookJobMetadata
    status: JobStatus = JobStatus.PENDING
    priority: int = 0
    retry_count: int = Field(0, ge=0)
    max_retries: int = Field(1, ge=0)
    last_error: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @model_validator(mode="after")
    def _check_retry_budget(self) -> "WebhookJob":
        if self.retry_count > self.max_retries:
            raise ValueError("retry_count cannot exceed max_retries")
        return self


class RepositoryRef(BaseModel):
    """Repository identity as reported by a provider."""

    id: str
    name: str
    full_name: Optional[str] = None
    language: Optional[str] = None


class GitUser(BaseModel):
    """Provider user; each provider fills a different subset of identifiers."""

    id: Optional[str] = None
    uuid: Optional[str] = None
    descriptor: Optional[str] = None
    login: Optional[str] = None
    name: Optional[str] = None


class MappedUsers(BaseModel):
    user: Optional[GitUser] = None
    reviewers: list[GitUser] = Field(default_factory=list)
    assignees: list[GitUser] = Field(default_factory=list)


class BranchRef(BaseModel):
    ref: Optional[str] = None
    sha: Optional[str] = None
    repo_full_name: Optional[str] = None
    default_branch: Optional[str] = None


class MappedPullRequest(BaseModel):
    """Provider-agnostic pull request shape consumed by the review strategy."""

    number: int
    title: Optional[str] = None
    body: Optional[str] = None
    url: Optional[str] = None
    state: Optional[str] = None
    repository: Optional[RepositoryRef] = None
    head: BranchRef = Field(default_factory=BranchRef)
    base: BranchRef = Field(default_factory=BranchRef)
    user: GitUser = Field(default_factory=GitUser)
    is_draft: bool = False


class CanonicalTrigger(BaseModel):
    """Provider-agnostic view of one webhook-derived event."""

    action: str
    repository: RepositoryRef
    pull_request: Optional[MappedPullRequest] = None
    users: MappedUsers = Field(default_factory=MappedUsers)
    origin: Optional[str] = None
    trigger_comment_id: Optional[str] = None


class AutomationExecution(BaseModel):
    """One run of an automation against a pull request."""

    uuid: str
    organization_id: str
    team_id: Optional[str] = None
    pull_request_number: Optional[int] = None
    repository_id: Optional[str] = None
    status: AutomationStatus = AutomationStatus.PENDING
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    origin: Optional[str] = None
    data_execution: dict[str, Any] = Field(default_factory=dict)


class CodeReviewExecution(BaseModel):
    """Timeline entry for a code review stage; many per automation execution."""

    uuid: str
    automation_execution_id: str
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    status: AutomationStatus
    stage_name: Optional[str] = None
    message: Optional[str] = None


class SuggestionsCount(BaseModel):
    sent: int = 0
    filtered: int = 0


class StoredSuggestion(BaseModel):
    id: str
    severity: Optional[str] = None
    label: Optional[str] = None
    delivery_status: Optional[DeliveryStatus] = None


class PullRequestFile(BaseModel):
    path: str
    suggestions: list[StoredSuggestion] = Field(default_factory=list)


class PullRequestAuthor(BaseModel):
    id: Optional[str] = None
    username: Optional[str] = None
    name: Optional[str] = None


class PullRequestRecord(BaseModel):
    """Persisted pull request with its reviewed files."""

    uuid: str
    organization_id: str
    number: int
    title: str = ""
    status: str = "open"
    merged: bool = False
    url: Optional[str] = None
    base_branch_ref: Optional[str] = None
    head_branch_ref: Optional[str] = None
    repository: RepositoryRef
    opened_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    provider: Optional[str] = None
    user: PullRequestAuthor = Field(default_factory=PullRequestAuthor)
    is_draft: bool = False
    files: list[PullRequestFile] = Field(default_factory=list)
    suggestions_count: Optional[SuggestionsCount] = Field(
        None,
        description="Precomputed projection of delivered suggestions; avoids scanning files.",
    )


class ConfiguredRepository(BaseModel):
    """Repository selected for review in a team's integration settings."""

    id: str
    name: str
    full_name: Optional[str] = None
    organization_name: Optional[str] = None


class WebhookContext(BaseModel):
    """Tenant and active automation resolved for an inbound repository."""

    organization_and_team_data: OrganizationAndTeamData
    team_automation_id: str
