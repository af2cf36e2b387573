from __future__ import annotations

import asyncio
from types import SimpleNamespace

from github import GithubException

from reviewhub.integrations.github_code_management import CodeManagementRegistry, GitHubCodeManagement
from reviewhub.models.domain import OrganizationAndTeamData, PlatformType, RepositoryRef
from reviewhub.services.dispatcher import reshape_pull_request

ORG = OrganizationAndTeamData(organization_id="org-1")


def _stub_pull():
    repo = SimpleNamespace(full_name="acme/api", default_branch="main")
    return SimpleNamespace(
        number=12,
        title="Harden retries",
        body="details",
        html_url="https://github.com/acme/api/pull/12",
        state="open",
        draft=True,
        head=SimpleNamespace(ref="feature/retries", sha="h1", repo=repo),
        base=SimpleNamespace(ref="main", sha="b1", repo=repo),
        user=SimpleNamespace(id=7, login="octo", name="Octo Cat"),
    )


class StubRepo:
    language = "Python"

    def __init__(self, missing: bool = False) -> None:
        self._missing = missing

    def get_pull(self, number):
        if self._missing:
            raise GithubException(404, {"message": "Not Found"}, None)
        return _stub_pull()


class StubGithub:
    def __init__(self, repo: StubRepo) -> None:
        self.requested = []
        self._repo = repo

    def get_repo(self, identifier):
        self.requested.append(identifier)
        return self._repo


def test_pull_request_is_fetched_by_full_name():
    github = StubGithub(StubRepo())
    adapter = GitHubCodeManagement("token", client=github)
    repository = RepositoryRef(id="101", name="api", full_name="acme/api")

    pull = asyncio.run(adapter.get_pull_request(ORG, repository, 12))

    assert github.requested == ["acme/api"]
    assert pull["title"] == "Harden retries"
    assert pull["head"]["repo"]["full_name"] == "acme/api"
    assert pull["base"]["repo"]["default_branch"] == "main"

    mapped = reshape_pull_request(pull, repository)
    assert mapped.number == 12
    assert mapped.is_draft is True
    assert mapped.user.login == "octo"
    assert mapped.repository.id == "101"


def test_numeric_repository_id_is_used_without_full_name():
    github = StubGithub(StubRepo())
    adapter = GitHubCodeManagement("token", client=github)

    language = asyncio.run(adapter.get_language_repository(ORG, RepositoryRef(id="101", name="api")))

    assert language == "Python"
    assert github.requested == [101]


def test_missing_pull_request_returns_none():
    adapter = GitHubCodeManagement("token", client=StubGithub(StubRepo(missing=True)))

    pull = asyncio.run(adapter.get_pull_request(ORG, RepositoryRef(id="101", name="api", full_name="acme/api"), 99))

    assert pull is None


def test_registry_routes_by_platform():
    github = StubGithub(StubRepo())
    registry = CodeManagementRegistry({PlatformType.GITHUB: GitHubCodeManagement("token", client=github)})
    repository = RepositoryRef(id="101", name="api", full_name="acme/api")

    assert asyncio.run(registry.get_pull_request(ORG, repository, 12, PlatformType.GITHUB))["number"] == 12
    assert asyncio.run(registry.get_pull_request(ORG, repository, 12, PlatformType.GITLAB)) is None
    assert asyncio.run(registry.get_language_repository(ORG, repository, PlatformType.BITBUCKET)) is None
