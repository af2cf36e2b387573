"""GitHub webhook payload mapping."""

from __future__ import annotations

from typing import Any, Optional

from reviewhub.models.domain import (
    BranchRef,
    GitUser,
    MappedPullRequest,
    MappedUsers,
    PlatformType,
    RepositoryRef,
)
from reviewhub.services.webhook_mapping import as_text, dig

HANDLED_EVENTS = frozenset({"pull_request", "issue_comment", "pull_request_review_comment"})


def github_user(data: Any) -> Optional[GitUser]:
    if not isinstance(data, dict):
        return None
    return GitUser(id=as_text(data.get("id")), login=data.get("login"), name=data.get("name"))


def github_pull_request(pull: dict[str, Any], repository: Optional[RepositoryRef] = None) -> MappedPullRequest:
    """Shape a GitHub REST or webhook pull request into the canonical record."""

    return MappedPullRequest(
        number=int(pull["number"]),
        title=pull.get("title"),
        body=pull.get("body"),
        url=pull.get("html_url") or pull.get("url"),
        state=pull.get("state"),
        repository=repository,
        head=BranchRef(
            ref=dig(pull, "head", "ref"),
            sha=dig(pull, "head", "sha"),
            repo_full_name=dig(pull, "head", "repo", "full_name") or dig(pull, "head", "repo", "fullName"),
        ),
        base=BranchRef(
            ref=dig(pull, "base", "ref"),
            sha=dig(pull, "base", "sha"),
            repo_full_name=dig(pull, "base", "repo", "full_name") or dig(pull, "base", "repo", "fullName"),
            default_branch=dig(pull, "base", "repo", "default_branch") or dig(pull, "base", "repo", "defaultBranch"),
        ),
        user=github_user(pull.get("user")) or GitUser(),
        is_draft=bool(pull.get("isDraft", pull.get("draft", False))),
    )


class GitHubMapping:
    platform_type = PlatformType.GITHUB

    def handles_event(self, event: str) -> bool:
        return event in HANDLED_EVENTS

    def map_action(self, payload: dict[str, Any], event: str) -> Optional[str]:
        return payload.get("action")

    def map_repository(self, payload: dict[str, Any]) -> Optional[RepositoryRef]:
        repo = payload.get("repository")
        if not isinstance(repo, dict) or repo.get("id") is None:
            return None
        return RepositoryRef(
            id=str(repo["id"]),
            name=repo.get("name") or "",
            full_name=repo.get("full_name"),
            language=repo.get("language"),
        )

    def map_users(self, payload: dict[str, Any]) -> MappedUsers:
        pull = payload.get("pull_request") or {}
        author = github_user(pull.get("user")) or github_user(dig(payload, "issue", "user")) or github_user(
            payload.get("sender")
        )
        return MappedUsers(
            user=author,
            reviewers=[u for u in map(github_user, pull.get("requested_reviewers") or []) if u],
            assignees=[u for u in map(github_user, pull.get("assignees") or []) if u],
        )

    def map_pull_request(self, payload: dict[str, Any]) -> Optional[MappedPullRequest]:
        pull = payload.get("pull_request")
        if not isinstance(pull, dict) or pull.get("number") is None:
            return None
        return github_pull_request(pull, self.map_repository(payload))

    def map_trigger_comment_id(self, payload: dict[str, Any]) -> Optional[str]:
        return as_text(dig(payload, "comment", "id"))
