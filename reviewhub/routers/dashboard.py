"""API routes for the code review dashboard."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from reviewhub.core.config import settings
from reviewhub.core.errors import MissingOrganizationError
from reviewhub.dependencies import get_enriched_pull_requests_service
from reviewhub.schemas.dashboard import EnrichedPullRequestsQuery, PaginatedEnrichedPullRequests, RequestUser
from reviewhub.services.enriched_pull_requests import EnrichedPullRequestsService


router = APIRouter(prefix=f"{settings.api_v1_prefix}/dashboard", tags=["dashboard"])


@router.get("/pull-requests", response_model=PaginatedEnrichedPullRequests)
async def get_enriched_pull_requests(
    team_id: Optional[str] = Query(None, description="Restrict executions to one team."),
    repository_id: Optional[str] = Query(None),
    repository_name: Optional[str] = Query(None, description="Name, full name, or organization/name."),
    limit: int = Query(settings.dashboard_default_limit, ge=1, le=settings.dashboard_max_limit),
    page: int = Query(1, ge=1),
    has_sent_suggestions: Optional[bool] = Query(None),
    pull_request_title: Optional[str] = Query(None),
    pull_request_number: Optional[int] = Query(None),
    organization_id: Optional[str] = Header(None, alias="X-Organization-Id"),
    user_id: Optional[str] = Header(None, alias="X-User-Id"),
    service: EnrichedPullRequestsService = Depends(get_enriched_pull_requests_service),
) -> PaginatedEnrichedPullRequests:
    query = EnrichedPullRequestsQuery(
        team_id=team_id,
        repository_id=repository_id,
        repository_name=repository_name,
        limit=limit,
        page=page,
        has_sent_suggestions=has_sent_suggestions,
        pull_request_title=pull_request_title,
        pull_request_number=pull_request_number,
    )
    try:
        return await service.get_enriched_pull_requests(
            query, RequestUser(organization_id=organization_id, user_id=user_id)
        )
    except MissingOrganizationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
