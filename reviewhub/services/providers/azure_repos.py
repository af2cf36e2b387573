"""Azure Repos service hook payload mapping."""

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

_BRANCH_PREFIX = "refs/heads/"


def _branch(ref: Optional[str]) -> Optional[str]:
    if ref and ref.startswith(_BRANCH_PREFIX):
        return ref[len(_BRANCH_PREFIX):]
    return ref


def _user(data: Any) -> Optional[GitUser]:
    if not isinstance(data, dict):
        return None
    return GitUser(
        id=as_text(data.get("id")),
        descriptor=data.get("descriptor"),
        login=data.get("uniqueName"),
        name=data.get("displayName"),
    )


class AzureReposMapping:
    platform_type = PlatformType.AZURE_REPOS

    def handles_event(self, event: str) -> bool:
        return event.startswith("git.pullrequest.") or event == "ms.vss-code.git-pullrequest-comment-event"

    def _pull_request(self, payload: dict[str, Any]) -> Optional[dict[str, Any]]:
        resource = payload.get("resource") or {}
        pull = resource.get("pullRequest")
        if isinstance(pull, dict):
            return pull
        if resource.get("pullRequestId") is not None:
            return resource
        return None

    def map_action(self, payload: dict[str, Any], event: str) -> Optional[str]:
        return payload.get("eventType") or event or None

    def map_repository(self, payload: dict[str, Any]) -> Optional[RepositoryRef]:
        pull = self._pull_request(payload) or {}
        repo = pull.get("repository") or dig(payload, "resource", "repository")
        if not isinstance(repo, dict) or repo.get("id") is None:
            return None
        project = dig(repo, "project", "name")
        name = repo.get("name") or ""
        return RepositoryRef(id=str(repo["id"]), name=name, full_name=f"{project}/{name}" if project else name)

    def map_users(self, payload: dict[str, Any]) -> MappedUsers:
        pull = self._pull_request(payload) or {}
        return MappedUsers(
            user=_user(pull.get("createdBy")),
            reviewers=[u for u in map(_user, pull.get("reviewers") or []) if u],
        )

    def map_pull_request(self, payload: dict[str, Any]) -> Optional[MappedPullRequest]:
        pull = self._pull_request(payload)
        if pull is None:
            return None
        repository = self.map_repository(payload)
        return MappedPullRequest(
            number=int(pull["pullRequestId"]),
            title=pull.get("title"),
            body=pull.get("description"),
            url=pull.get("url"),
            state=pull.get("status"),
            repository=repository,
            head=BranchRef(
                ref=_branch(pull.get("sourceRefName")),
                sha=dig(pull, "lastMergeSourceCommit", "commitId"),
                repo_full_name=repository.full_name if repository else None,
            ),
            base=BranchRef(
                ref=_branch(pull.get("targetRefName")),
                sha=dig(pull, "lastMergeTargetCommit", "commitId"),
                repo_full_name=repository.full_name if repository else None,
                default_branch=_branch(dig(pull, "repository", "defaultBranch")),
            ),
            user=_user(pull.get("createdBy")) or GitUser(),
            is_draft=bool(pull.get("isDraft", False)),
        )

    def map_trigger_comment_id(self, payload: dict[str, Any]) -> Optional[str]:
        return as_text(dig(payload, "resource", "comment", "id"))
