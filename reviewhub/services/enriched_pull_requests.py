"""Dashboard aggregation of automation executions with pull request data."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional

from reviewhub.core.errors import MissingOrganizationError
from reviewhub.models.domain import (
    AutomationExecution,
    CodeReviewExecution,
    DeliveryStatus,
    OrganizationAndTeamData,
    PullRequestRecord,
    SuggestionsCount,
)
from reviewhub.schemas.dashboard import (
    AutomationExecutionSummary,
    CodeReviewTimelineEntry,
    EnrichedAutomation,
    EnrichedData,
    EnrichedPullRequest,
    EnrichedPullRequestRef,
    EnrichedPullRequestsQuery,
    EnrichedRepository,
    EnrichedTeam,
    PaginatedEnrichedPullRequests,
    PaginationMetadata,
    RequestUser,
)
from reviewhub.services.contracts import (
    AuthorizationScope,
    CodeReviewExecutionStore,
    ExecutionFilter,
    ExecutionStore,
    PullRequestKey,
    PullRequestStore,
    RepositoryCatalog,
)
from reviewhub.telemetry import record_aggregation_duration

_logger = logging.getLogger(__name__)


def extract_suggestions_count(pull_request: PullRequestRecord) -> SuggestionsCount:
    """Count delivered and filtered suggestions, preferring the stored projection."""

    if pull_request.suggestions_count is not None:
        return pull_request.suggestions_count
    sent = 0
    filtered = 0
    for changed_file in pull_request.files:
        for suggestion in changed_file.suggestions:
            if suggestion.delivery_status == DeliveryStatus.SENT:
                sent += 1
            elif suggestion.delivery_status == DeliveryStatus.NOT_SENT:
                filtered += 1
    return SuggestionsCount(sent=sent, filtered=filtered)


def extract_enriched_data(data_execution: Optional[dict[str, Any]]) -> Optional[EnrichedData]:
    if not data_execution:
        return None
    repository = data_execution.get("repository")
    pull_request = data_execution.get("pull_request")
    team = data_execution.get("team")
    automation = data_execution.get("automation")
    return EnrichedData(
        repository=EnrichedRepository(id=_text(repository.get("id")), name=repository.get("name")) if repository else None,
        pull_request=EnrichedPullRequestRef(
            number=pull_request.get("number"), title=pull_request.get("title"), url=pull_request.get("url")
        )
        if pull_request
        else None,
        team=EnrichedTeam(name=team.get("name"), uuid=team.get("uuid")) if team else None,
        automation=EnrichedAutomation(name=automation.get("name"), type=automation.get("type")) if automation else None,
    )


def _text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def passes_sent_filter(counts: SuggestionsCount, has_sent_suggestions: Optional[bool]) -> bool:
    if has_sent_suggestions is True:
        return counts.sent > 0
    if has_sent_suggestions is False:
        return counts.sent <= 0
    return True


class EnrichedPullRequestsService:
    """Pages a tenant's executions and joins them with pull request data in bulk."""

    def __init__(
        self,
        pull_requests: PullRequestStore,
        executions: ExecutionStore,
        code_reviews: CodeReviewExecutionStore,
        repositories: RepositoryCatalog,
        authorization: AuthorizationScope,
    ) -> None:
        self._pull_requests = pull_requests
        self._executions = executions
        self._code_reviews = code_reviews
        self._repositories = repositories
        self._authorization = authorization

    async def get_enriched_pull_requests(
        self, query: EnrichedPullRequestsQuery, user: RequestUser
    ) -> PaginatedEnrichedPullRequests:
        if not user.organization_id:
            _logger.warning("No organization found in request")
            raise MissingOrganizationError("No organization found in request")

        started = time.perf_counter()
        limit = query.limit
        page = query.page
        organization_id = user.organization_id
        org_team = OrganizationAndTeamData(organization_id=organization_id, team_id=query.team_id)

        try:
            scope = await self._authorization.get_repository_scope(organization_id, user.user_id)
            if scope is not None and not scope:
                return PaginatedEnrichedPullRequests.empty(page=page, limit=limit)

            requested_ids: Optional[list[str]] = None
            name_filter = query.repository_name
            if query.repository_id:
                requested_ids = [str(query.repository_id)]
                name_filter = None
            elif query.repository_name:
                resolved = await self.resolve_repository_ids_by_name(org_team, query.repository_name)
                if resolved:
                    requested_ids = resolved
                    name_filter = None

            allowed_ids = requested_ids
            if scope is not None:
                if allowed_ids:
                    allowed_ids = [repository_id for repository_id in allowed_ids if repository_id in scope]
                    if not allowed_ids:
                        return PaginatedEnrichedPullRequests.empty(page=page, limit=limit)
                else:
                    allowed_ids = list(scope)

            pr_filters: Optional[list[PullRequestKey]] = None
            if query.pull_request_title:
                pr_filters = await self._pull_requests.find_pr_numbers_by_title_and_organization(
                    query.pull_request_title, organization_id, allowed_ids
                )
                if not pr_filters:
                    return PaginatedEnrichedPullRequests.empty(page=page, limit=limit)

            execution_filter = ExecutionFilter(
                organization_and_team_data=org_team,
                repository_ids=allowed_ids,
                repository_name=name_filter,
                pull_request_number=query.pull_request_number,
                pr_filters=pr_filters,
            )
            enriched, total_executions = await self._collect(execution_filter, query)

            if total_executions == 0:
                _logger.warning(
                    "No automation executions with PR data found", extra={"organization_id": organization_id}
                )
                return PaginatedEnrichedPullRequests.empty(page=page, limit=limit)

            data = enriched[:limit]
            _logger.info(
                "Retrieved enriched pull requests",
                extra={
                    "organization_id": organization_id,
                    "total_executions": total_executions,
                    "returned_items": len(data),
                    "page": page,
                    "limit": limit,
                },
            )
            return PaginatedEnrichedPullRequests(
                data=data,
                pagination=PaginationMetadata.build(page=page, limit=limit, total_items=total_executions),
            )
        except Exception:
            _logger.exception(
                "Error getting enriched pull requests",
                extra={
                    "organization_id": organization_id,
                    "repository_id": query.repository_id,
                    "repository_name": query.repository_name,
                    "pull_request_title": query.pull_request_title,
                },
            )
            raise
        finally:
            record_aggregation_duration(time.perf_counter() - started)

    async def resolve_repository_ids_by_name(
        self, org_team: OrganizationAndTeamData, repository_name: str
    ) -> Optional[list[str]]:
        """Match a repository name against the configured repositories.

        Accepts the exact id, or a case-insensitive name, full name, or
        ``organization/name``. Returns ``None`` when nothing matches.
        """

        raw_name = repository_name.strip()
        if not raw_name:
            return None
        repositories = await self._repositories.list_configured_repositories(org_team)
        if not repositories:
            return None
        normalized = raw_name.lower()
        matched: list[str] = []
        for repo in repositories:
            candidates = [repo.name, repo.full_name]
            if repo.organization_name:
                candidates.append(f"{repo.organization_name}/{repo.name}")
            if str(repo.id) == raw_name or any(c and c.lower() == normalized for c in candidates):
                if str(repo.id) not in matched:
                    matched.append(str(repo.id))
        return matched or None

    async def _collect(
        self, execution_filter: ExecutionFilter, query: EnrichedPullRequestsQuery
    ) -> tuple[list[EnrichedPullRequest], int]:
        limit = query.limit
        initial_skip = (query.page - 1) * limit
        accumulated = 0
        total_executions = 0
        enriched: list[EnrichedPullRequest] = []
        has_more = True

        while len(enriched) < limit and has_more:
            batch_page = await self._executions.find_pull_request_executions_by_organization_and_team(
                execution_filter, skip=initial_skip + accumulated, take=limit, order="DESC"
            )
            # The first reported total is kept for the whole request.
            if total_executions == 0:
                total_executions = batch_page.total
            batch = batch_page.data
            if not batch:
                break

            pull_requests, counts, code_reviews = await self._fetch_batch_data(
                batch, execution_filter.organization_and_team_data.organization_id
            )
            pr_map = {
                PullRequestKey(pr.repository.id, pr.number).as_lookup(): pr
                for pr in pull_requests
                if pr.repository.id and pr.number
            }
            timeline_map: dict[str, list[CodeReviewExecution]] = {}
            for entry in code_reviews:
                timeline_map.setdefault(entry.automation_execution_id, []).append(entry)

            for execution in batch:
                try:
                    record = self._enrich(execution, pr_map, counts, timeline_map, query)
                except Exception:
                    _logger.exception(
                        "Error processing automation execution",
                        extra={
                            "execution_uuid": execution.uuid,
                            "pull_request_number": execution.pull_request_number,
                            "repository_id": execution.repository_id,
                        },
                    )
                    record = None
                if record is not None:
                    enriched.append(record)
                if len(enriched) >= limit:
                    break

            accumulated += len(batch)
            if initial_skip + accumulated >= total_executions:
                has_more = False

        return enriched, total_executions

    async def _fetch_batch_data(
        self, batch: list[AutomationExecution], organization_id: str
    ) -> tuple[list[PullRequestRecord], dict[str, SuggestionsCount], list[CodeReviewExecution]]:
        criteria = [
            PullRequestKey(execution.repository_id, execution.pull_request_number)
            for execution in batch
            if execution.pull_request_number is not None and execution.repository_id is not None
        ]
        execution_ids = [execution.uuid for execution in batch]
        results = await asyncio.gather(
            self._pull_requests.find_many_by_numbers_and_repository_ids(criteria, organization_id),
            self._pull_requests.find_suggestion_counts_by_numbers_and_repository_ids(criteria, organization_id),
            self._code_reviews.find_many_by_automation_execution_ids(execution_ids),
            return_exceptions=True,
        )
        pull_requests = _settled(results[0], [], "Error bulk fetching pull requests", organization_id)
        counts = _settled(results[1], {}, "Error fetching suggestion counts", organization_id)
        code_reviews = _settled(results[2], [], "Error bulk fetching code reviews", organization_id)
        return pull_requests, counts, code_reviews

    def _enrich(
        self,
        execution: AutomationExecution,
        pr_map: dict[str, PullRequestRecord],
        counts: dict[str, SuggestionsCount],
        timeline_map: dict[str, list[CodeReviewExecution]],
        query: EnrichedPullRequestsQuery,
    ) -> Optional[EnrichedPullRequest]:
        lookup = f"{execution.repository_id}_{execution.pull_request_number}"
        pull_request = pr_map.get(lookup)
        if pull_request is None:
            _logger.warning(
                "Pull request not found for execution",
                extra={
                    "execution_uuid": execution.uuid,
                    "pull_request_number": execution.pull_request_number,
                    "repository_id": execution.repository_id,
                },
            )
            return None

        suggestions_count = counts.get(lookup) or extract_suggestions_count(pull_request)
        if not passes_sent_filter(suggestions_count, query.has_sent_suggestions):
            return None

        timeline = [
            CodeReviewTimelineEntry(
                uuid=entry.uuid,
                created_at=entry.created_at,
                updated_at=entry.updated_at,
                status=entry.status,
                message=entry.message,
                stage_name=entry.stage_name,
            )
            for entry in timeline_map.get(execution.uuid, [])
        ]
        return EnrichedPullRequest(
            pr_id=pull_request.uuid,
            pr_number=pull_request.number,
            title=pull_request.title,
            status=pull_request.status,
            merged=pull_request.merged,
            url=pull_request.url,
            base_branch_ref=pull_request.base_branch_ref,
            head_branch_ref=pull_request.head_branch_ref,
            repository_name=pull_request.repository.name,
            repository_id=pull_request.repository.id,
            opened_at=pull_request.opened_at,
            closed_at=pull_request.closed_at,
            created_at=pull_request.created_at,
            updated_at=pull_request.updated_at,
            provider=pull_request.provider,
            author=pull_request.user,
            is_draft=pull_request.is_draft,
            automation_execution=AutomationExecutionSummary(
                uuid=execution.uuid,
                status=execution.status,
                error_message=execution.error_message,
                created_at=execution.created_at,
                updated_at=execution.updated_at,
                origin=execution.origin,
            ),
            code_review_timeline=timeline,
            enriched_data=extract_enriched_data(execution.data_execution),
            suggestions_count=suggestions_count,
        )


def _settled(result: Any, fallback: Any, message: str, organization_id: str) -> Any:
    """Replace a failed bulk lookup with its empty fallback."""

    if isinstance(result, Exception):
        _logger.error(message, exc_info=result, extra={"organization_id": organization_id})
        return fallback
    if isinstance(result, BaseException):
        raise result
    return result
