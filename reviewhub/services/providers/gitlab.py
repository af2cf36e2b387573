"""GitLab webhook payload mapping."""

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

HANDLED_EVENTS = frozenset({"Merge Request Hook", "Note Hook", "merge_request", "note"})


def _user(data: Any) -> Optional[GitUser]:
    if not isinstance(data, dict):
        return None
    return GitUser(id=as_text(data.get("id")), login=data.get("username"), name=data.get("name"))


class GitLabMapping:
    platform_type = PlatformType.GITLAB

    def handles_event(self, event: str) -> bool:
        return event in HANDLED_EVENTS

    def map_action(self, payload: dict[str, Any], event: str) -> Optional[str]:
        action = dig(payload, "object_attributes", "action")
        if action:
            return action
        # Notes on merge requests carry no action of their own.
        if dig(payload, "object_attributes", "noteable_type") == "MergeRequest" or payload.get("merge_request"):
            return "note"
        return None

    def map_repository(self, payload: dict[str, Any]) -> Optional[RepositoryRef]:
        project = payload.get("project")
        if not isinstance(project, dict) or project.get("id") is None:
            return None
        return RepositoryRef(
            id=str(project["id"]),
            name=project.get("name") or project.get("path") or "",
            full_name=project.get("path_with_namespace"),
        )

    def map_users(self, payload: dict[str, Any]) -> MappedUsers:
        return MappedUsers(
            user=_user(payload.get("user")),
            reviewers=[u for u in map(_user, payload.get("reviewers") or []) if u],
            assignees=[u for u in map(_user, payload.get("assignees") or []) if u],
        )

    def map_pull_request(self, payload: dict[str, Any]) -> Optional[MappedPullRequest]:
        merge_request = payload.get("merge_request")
        if not isinstance(merge_request, dict):
            attributes = payload.get("object_attributes") or {}
            merge_request = attributes if attributes.get("iid") is not None and "source_branch" in attributes else None
        if merge_request is None or merge_request.get("iid") is None:
            return None
        repository = self.map_repository(payload)
        full_name = repository.full_name if repository else None
        return MappedPullRequest(
            number=int(merge_request["iid"]),
            title=merge_request.get("title"),
            body=merge_request.get("description"),
            url=merge_request.get("url"),
            state=merge_request.get("state"),
            repository=repository,
            head=BranchRef(
                ref=merge_request.get("source_branch"),
                sha=dig(merge_request, "last_commit", "id"),
                repo_full_name=full_name,
            ),
            base=BranchRef(
                ref=merge_request.get("target_branch"),
                repo_full_name=full_name,
                default_branch=dig(payload, "project", "default_branch"),
            ),
            user=_user(payload.get("user")) or GitUser(),
            is_draft=bool(merge_request.get("draft") or merge_request.get("work_in_progress")),
        )

    def map_trigger_comment_id(self, payload: dict[str, Any]) -> Optional[str]:
        if dig(payload, "object_attributes", "noteable_type") == "MergeRequest":
            return as_text(dig(payload, "object_attributes", "id"))
        return None
