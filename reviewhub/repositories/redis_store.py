"""Redis-backed persistence for pull requests, executions, and access data."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import Iterable, Optional

from redis import Redis

from reviewhub.models.domain import (
    AutomationExecution,
    CodeReviewExecution,
    ConfiguredRepository,
    OrganizationAndTeamData,
    PlatformType,
    PullRequestRecord,
    SuggestionsCount,
    WebhookContext,
)
from reviewhub.services.contracts import ExecutionFilter, ExecutionPage, PullRequestKey


def _timestamp(dt: datetime) -> float:
    return dt.timestamp()


class RedisReviewWarehouse:
    """Stores pull requests, automation executions, and review timelines in Redis."""

    def __init__(self, client: Redis) -> None:
        self._client = client

    # Writes

    def save_pull_request(self, record: PullRequestRecord) -> None:
        lookup = PullRequestKey(record.repository.id, record.number).as_lookup()
        pipeline = self._client.pipeline()
        pipeline.set(self._pull_request_key(record.organization_id, lookup), record.model_dump_json())
        pipeline.sadd(self._pull_request_index_key(record.organization_id), lookup)
        pipeline.execute()

    def save_suggestion_counts(self, organization_id: str, key: PullRequestKey, counts: SuggestionsCount) -> None:
        self._client.hset(self._counts_key(organization_id), key.as_lookup(), counts.model_dump_json())

    def save_execution(self, execution: AutomationExecution) -> None:
        pipeline = self._client.pipeline()
        pipeline.set(self._execution_key(execution.uuid), execution.model_dump_json())
        pipeline.zadd(self._execution_index_key(execution.organization_id), {execution.uuid: _timestamp(execution.created_at)})
        pipeline.execute()

    def get_execution(self, execution_uuid: str) -> Optional[AutomationExecution]:
        data = self._client.get(self._execution_key(execution_uuid))
        if not data:
            return None
        return AutomationExecution.model_validate_json(data)

    def add_code_review_executions(self, entries: Iterable[CodeReviewExecution]) -> None:
        pipeline = self._client.pipeline()
        for entry in entries:
            pipeline.hset(self._code_review_key(entry.automation_execution_id), entry.uuid, entry.model_dump_json())
        pipeline.execute()

    def set_configured_repositories(
        self, organization_and_team_data: OrganizationAndTeamData, repositories: Iterable[ConfiguredRepository]
    ) -> None:
        key = self._repositories_key(organization_and_team_data)
        payload = [repo.model_dump_json() for repo in repositories]
        pipeline = self._client.pipeline()
        pipeline.delete(key)
        if payload:
            pipeline.rpush(key, *payload)
        pipeline.execute()

    # Pull-request store

    async def find_many_by_numbers_and_repository_ids(
        self, criteria: list[PullRequestKey], organization_id: str
    ) -> list[PullRequestRecord]:
        return await asyncio.to_thread(self._find_pull_requests, criteria, organization_id)

    async def find_suggestion_counts_by_numbers_and_repository_ids(
        self, criteria: list[PullRequestKey], organization_id: str
    ) -> dict[str, SuggestionsCount]:
        return await asyncio.to_thread(self._find_suggestion_counts, criteria, organization_id)

    async def find_pr_numbers_by_title_and_organization(
        self, title: str, organization_id: str, repository_ids: Optional[list[str]] = None
    ) -> list[PullRequestKey]:
        return await asyncio.to_thread(self._find_by_title, title, organization_id, repository_ids)

    # Execution stores

    async def find_pull_request_executions_by_organization_and_team(
        self, execution_filter: ExecutionFilter, skip: int, take: int, order: str = "DESC"
    ) -> ExecutionPage:
        return await asyncio.to_thread(self._page_executions, execution_filter, skip, take, order)

    async def find_many_by_automation_execution_ids(self, execution_ids: list[str]) -> list[CodeReviewExecution]:
        return await asyncio.to_thread(self._find_code_reviews, execution_ids)

    # Repository catalog

    async def list_configured_repositories(
        self, organization_and_team_data: OrganizationAndTeamData
    ) -> list[ConfiguredRepository]:
        entries = await asyncio.to_thread(
            self._client.lrange, self._repositories_key(organization_and_team_data), 0, -1
        )
        return [ConfiguredRepository.model_validate_json(entry) for entry in entries]

    def _find_pull_requests(self, criteria: list[PullRequestKey], organization_id: str) -> list[PullRequestRecord]:
        if not criteria:
            return []
        pipeline = self._client.pipeline()
        for key in criteria:
            pipeline.get(self._pull_request_key(organization_id, key.as_lookup()))
        records: list[PullRequestRecord] = []
        for blob in pipeline.execute():
            if blob:
                records.append(PullRequestRecord.model_validate_json(blob))
        return records

    def _find_suggestion_counts(
        self, criteria: list[PullRequestKey], organization_id: str
    ) -> dict[str, SuggestionsCount]:
        if not criteria:
            return {}
        lookups = [key.as_lookup() for key in criteria]
        values = self._client.hmget(self._counts_key(organization_id), lookups)
        return {
            lookup: SuggestionsCount.model_validate_json(value)
            for lookup, value in zip(lookups, values)
            if value
        }

    def _find_by_title(
        self, title: str, organization_id: str, repository_ids: Optional[list[str]]
    ) -> list[PullRequestKey]:
        needle = title.strip().lower()
        allowed = set(repository_ids) if repository_ids else None
        lookups = sorted(self._client.smembers(self._pull_request_index_key(organization_id)))
        if not lookups:
            return []
        pipeline = self._client.pipeline()
        for lookup in lookups:
            pipeline.get(self._pull_request_key(organization_id, lookup))
        matches: list[PullRequestKey] = []
        for blob in pipeline.execute():
            if not blob:
                continue
            record = PullRequestRecord.model_validate_json(blob)
            if allowed is not None and record.repository.id not in allowed:
                continue
            if needle in record.title.lower():
                matches.append(PullRequestKey(record.repository.id, record.number))
        return matches

    def _page_executions(
        self, execution_filter: ExecutionFilter, skip: int, take: int, order: str
    ) -> ExecutionPage:
        org_team = execution_filter.organization_and_team_data
        index_key = self._execution_index_key(org_team.organization_id)
        if order.upper() == "DESC":
            ids = self._client.zrevrange(index_key, 0, -1)
        else:
            ids = self._client.zrange(index_key, 0, -1)
        if not ids:
            return ExecutionPage()
        pipeline = self._client.pipeline()
        for execution_id in ids:
            pipeline.get(self._execution_key(execution_id))
        pr_keys = set(execution_filter.pr_filters) if execution_filter.pr_filters is not None else None
        matching = [
            execution
            for execution in (AutomationExecution.model_validate_json(blob) for blob in pipeline.execute() if blob)
            if _matches(execution, execution_filter, pr_keys)
        ]
        return ExecutionPage(data=matching[skip : skip + take], total=len(matching))

    def _find_code_reviews(self, execution_ids: list[str]) -> list[CodeReviewExecution]:
        if not execution_ids:
            return []
        pipeline = self._client.pipeline()
        for execution_id in execution_ids:
            pipeline.hvals(self._code_review_key(execution_id))
        entries: list[CodeReviewExecution] = []
        for values in pipeline.execute():
            batch = [CodeReviewExecution.model_validate_json(value) for value in values]
            entries.extend(sorted(batch, key=lambda entry: entry.created_at))
        return entries

    @staticmethod
    def _pull_request_key(organization_id: str, lookup: str) -> str:
        return f"pr:{organization_id}:{lookup}"

    @staticmethod
    def _pull_request_index_key(organization_id: str) -> str:
        return f"pr:{organization_id}:index"

    @staticmethod
    def _counts_key(organization_id: str) -> str:
        return f"pr:{organization_id}:suggestion_counts"

    @staticmethod
    def _execution_key(execution_uuid: str) -> str:
        return f"execution:{execution_uuid}"

    @staticmethod
    def _execution_index_key(organization_id: str) -> str:
        return f"executions:{organization_id}"

    @staticmethod
    def _code_review_key(execution_uuid: str) -> str:
        return f"execution:{execution_uuid}:code_reviews"

    @staticmethod
    def _repositories_key(organization_and_team_data: OrganizationAndTeamData) -> str:
        team = organization_and_team_data.team_id or "*"
        return f"repositories:{organization_and_team_data.organization_id}:{team}"


def _matches(
    execution: AutomationExecution,
    execution_filter: ExecutionFilter,
    pr_keys: Optional[set[PullRequestKey]],
) -> bool:
    if execution.pull_request_number is None or execution.repository_id is None:
        return False
    team_id = execution_filter.organization_and_team_data.team_id
    if team_id and execution.team_id != team_id:
        return False
    if execution_filter.repository_ids is not None and execution.repository_id not in execution_filter.repository_ids:
        return False
    if execution_filter.pull_request_number is not None and execution.pull_request_number != execution_filter.pull_request_number:
        return False
    if pr_keys is not None:
        if PullRequestKey(execution.repository_id, execution.pull_request_number) not in pr_keys:
            return False
    if execution_filter.repository_name:
        repository = execution.data_execution.get("repository") or {}
        name = str(repository.get("name") or "").lower()
        if execution_filter.repository_name.lower() not in name:
            return False
    return True


class RedisAccessStore:
    """Repository scopes per user and webhook routing context per repository."""

    def __init__(self, client: Redis) -> None:
        self._client = client

    def set_repository_scope(self, organization_id: str, user_id: Optional[str], repository_ids: Optional[list[str]]) -> None:
        key = self._scope_key(organization_id, user_id)
        if repository_ids is None:
            self._client.delete(key)
            return
        self._client.set(key, json.dumps(list(repository_ids)))

    async def get_repository_scope(self, organization_id: str, user_id: Optional[str]) -> Optional[list[str]]:
        data = await asyncio.to_thread(self._client.get, self._scope_key(organization_id, user_id))
        if data is None:
            return None
        return [str(repository_id) for repository_id in json.loads(data)]

    def register_webhook_context(self, platform_type: PlatformType, repository_id: str, context: WebhookContext) -> None:
        self._client.set(self._context_key(platform_type, repository_id), context.model_dump_json())

    async def get_context(self, platform_type: PlatformType, repository_id: str) -> Optional[WebhookContext]:
        data = await asyncio.to_thread(self._client.get, self._context_key(platform_type, repository_id))
        if not data:
            return None
        return WebhookContext.model_validate_json(data)

    @staticmethod
    def _scope_key(organization_id: str, user_id: Optional[str]) -> str:
        return f"scope:{organization_id}:{user_id or '*'}"

    @staticmethod
    def _context_key(platform_type: PlatformType, repository_id: str) -> str:
        return f"webhook_context:{platform_type.value}:{repository_id}"
