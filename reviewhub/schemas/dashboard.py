"""API schemas for the enriched pull request dashboard."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from reviewhub.models.domain import AutomationStatus, PullRequestAuthor, SuggestionsCount


class RequestUser(BaseModel):
    """Caller identity resolved at the transport boundary."""

    organization_id: Optional[str] = None
    user_id: Optional[str] = None


class EnrichedPullRequestsQuery(BaseModel):
    """Filters accepted by the dashboard aggregation."""

    team_id: Optional[str] = None
    repository_id: Optional[str] = None
    repository_name: Optional[str] = None
    limit: int = Field(30, ge=1)
    page: int = Field(1, ge=1)
    has_sent_suggestions: Optional[bool] = Field(
        None,
        description="True keeps records with sent suggestions, false keeps those without, unset disables the filter.",
    )
    pull_request_title: Optional[str] = None
    pull_request_number: Optional[int] = None


class AutomationExecutionSummary(BaseModel):
    uuid: str
    status: AutomationStatus
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    origin: Optional[str] = None


class CodeReviewTimelineEntry(BaseModel):
    uuid: str
    created_at: datetime
    updated_at: datetime
    status: AutomationStatus
    message: Optional[str] = None
    stage_name: Optional[str] = None


class EnrichedRepository(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None


class EnrichedPullRequestRef(BaseModel):
    number: Optional[int] = None
    title: Optional[str] = None
    url: Optional[str] = None


class EnrichedTeam(BaseModel):
    name: Optional[str] = None
    uuid: Optional[str] = None


class EnrichedAutomation(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None


class EnrichedData(BaseModel):
    """Projection of the execution payload recorded by the strategy."""

    repository: Optional[EnrichedRepository] = None
    pull_request: Optional[EnrichedPullRequestRef] = None
    team: Optional[EnrichedTeam] = None
    automation: Optional[EnrichedAutomation] = None


class EnrichedPullRequest(BaseModel):
    """Pull request joined with its automation execution and review timeline."""

    pr_id: str
    pr_number: int
    title: str
    status: str
    merged: bool
    url: Optional[str] = None
    base_branch_ref: Optional[str] = None
    head_branch_ref: Optional[str] = None
    repository_name: Optional[str] = None
    repository_id: Optional[str] = None
    opened_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    provider: Optional[str] = None
    author: PullRequestAuthor
    is_draft: bool = False
    automation_execution: AutomationExecutionSummary
    code_review_timeline: list[CodeReviewTimelineEntry] = Field(default_factory=list)
    enriched_data: Optional[EnrichedData] = None
    suggestions_count: SuggestionsCount


class PaginationMetadata(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next_page: bool
    has_previous_page: bool

    @classmethod
    def build(cls, *, page: int, limit: int, total_items: int) -> "PaginationMetadata":
        total_pages = -(-total_items // limit) if total_items else 0
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_items=total_items,
            items_per_page=limit,
            has_next_page=page < total_pages,
            has_previous_page=page > 1,
        )


class PaginatedEnrichedPullRequests(BaseModel):
    data: list[EnrichedPullRequest] = Field(default_factory=list)
    pagination: PaginationMetadata

    @classmethod
    def empty(cls, *, page: int, limit: int) -> "PaginatedEnrichedPullRequests":
        pagination = PaginationMetadata(
            current_page=page,
            total_pages=0,
            total_items=0,
            items_per_page=limit,
            has_next_page=False,
            has_previous_page=False,
        )
        return cls(data=[], pagination=pagination)
