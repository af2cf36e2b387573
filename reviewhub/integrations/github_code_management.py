"""Code-management collaborators backed by provider APIs."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from github import Github, GithubException
from github.Auth import Token

from reviewhub.models.domain import OrganizationAndTeamData, PlatformType, RepositoryRef

_logger = logging.getLogger(__name__)


class GitHubCodeManagement:
    """Fetches pull request and repository details through PyGithub."""

    def __init__(self, token: str, *, base_url: str | None = None, client: Github | None = None) -> None:
        if client is not None:
            self._client = client
        elif base_url:
            self._client = Github(auth=Token(token), base_url=base_url.rstrip("/"))
        else:
            self._client = Github(auth=Token(token))

    async def get_pull_request(
        self,
        organization_and_team_data: OrganizationAndTeamData,
        repository: RepositoryRef,
        pr_number: int,
        platform_type: PlatformType = PlatformType.GITHUB,
    ) -> Optional[dict[str, Any]]:
        return await asyncio.to_thread(self._fetch_pull_request, repository, pr_number)

    async def get_language_repository(
        self,
        organization_and_team_data: OrganizationAndTeamData,
        repository: RepositoryRef,
        platform_type: PlatformType = PlatformType.GITHUB,
    ) -> Optional[str]:
        return await asyncio.to_thread(self._fetch_language, repository)

    def _get_repo(self, repository: RepositoryRef):
        if repository.full_name:
            return self._client.get_repo(repository.full_name)
        # Numeric ids resolve without knowing the owner.
        return self._client.get_repo(int(repository.id))

    def _fetch_pull_request(self, repository: RepositoryRef, pr_number: int) -> Optional[dict[str, Any]]:
        try:
            pull = self._get_repo(repository).get_pull(pr_number)
        except (GithubException, ValueError):
            _logger.warning(
                "Unable to fetch pull request %s for repository %s", pr_number, repository.id, exc_info=True
            )
            return None
        return {
            "number": pull.number,
            "title": pull.title,
            "body": pull.body,
            "html_url": pull.html_url,
            "state": pull.state,
            "draft": bool(getattr(pull, "draft", False)),
            "head": {
                "ref": pull.head.ref,
                "sha": pull.head.sha,
                "repo": {"full_name": pull.head.repo.full_name if pull.head.repo else None},
            },
            "base": {
                "ref": pull.base.ref,
                "sha": pull.base.sha,
                "repo": {
                    "full_name": pull.base.repo.full_name if pull.base.repo else None,
                    "default_branch": pull.base.repo.default_branch if pull.base.repo else None,
                },
            },
            "user": {
                "id": pull.user.id if pull.user else None,
                "login": pull.user.login if pull.user else None,
                "name": pull.user.name if pull.user else None,
            },
        }

    def _fetch_language(self, repository: RepositoryRef) -> Optional[str]:
        try:
            return self._get_repo(repository).language
        except (GithubException, ValueError):
            _logger.warning("Unable to fetch language for repository %s", repository.id, exc_info=True)
            return None


class CodeManagementRegistry:
    """Routes code-management calls to the adapter registered for a platform."""

    def __init__(self, adapters: dict[PlatformType, Any] | None = None) -> None:
        self._adapters = dict(adapters or {})

    def register(self, platform_type: PlatformType, adapter: Any) -> None:
        self._adapters[platform_type] = adapter

    async def get_pull_request(
        self,
        organization_and_team_data: OrganizationAndTeamData,
        repository: RepositoryRef,
        pr_number: int,
        platform_type: PlatformType,
    ) -> Optional[dict[str, Any]]:
        adapter = self._adapters.get(platform_type)
        if adapter is None:
            _logger.info("No code management adapter for %s", platform_type.value)
            return None
        return await adapter.get_pull_request(organization_and_team_data, repository, pr_number, platform_type)

    async def get_language_repository(
        self,
        organization_and_team_data: OrganizationAndTeamData,
        repository: RepositoryRef,
        platform_type: PlatformType,
    ) -> Optional[str]:
        adapter = self._adapters.get(platform_type)
        if adapter is None:
            return None
        return await adapter.get_language_repository(organization_and_team_data, repository, platform_type)
