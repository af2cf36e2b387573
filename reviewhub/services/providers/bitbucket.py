"""Bitbucket Cloud webhook payload mapping.

Payloads are expected to have passed through ``strip_curly_braces_from_uuids``.
"""

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

_EVENT_PREFIX = "pullrequest:"


def _user(data: Any) -> Optional[GitUser]:
    if not isinstance(data, dict):
        return None
    return GitUser(
        id=as_text(data.get("account_id")),
        uuid=data.get("uuid"),
        login=data.get("nickname"),
        name=data.get("display_name"),
    )


class BitbucketMapping:
    platform_type = PlatformType.BITBUCKET

    def handles_event(self, event: str) -> bool:
        return event.startswith(_EVENT_PREFIX)

    def map_action(self, payload: dict[str, Any], event: str) -> Optional[str]:
        if event and event.startswith(_EVENT_PREFIX):
            return event[len(_EVENT_PREFIX):] or None
        return None

    def map_repository(self, payload: dict[str, Any]) -> Optional[RepositoryRef]:
        repo = payload.get("repository")
        if not isinstance(repo, dict) or not repo.get("uuid"):
            return None
        return RepositoryRef(id=str(repo["uuid"]), name=repo.get("name") or "", full_name=repo.get("full_name"))

    def map_users(self, payload: dict[str, Any]) -> MappedUsers:
        pull = payload.get("pullrequest") or {}
        return MappedUsers(
            user=_user(pull.get("author")) or _user(payload.get("actor")),
            reviewers=[u for u in map(_user, pull.get("reviewers") or []) if u],
        )

    def map_pull_request(self, payload: dict[str, Any]) -> Optional[MappedPullRequest]:
        pull = payload.get("pullrequest")
        if not isinstance(pull, dict) or pull.get("id") is None:
            return None
        return MappedPullRequest(
            number=int(pull["id"]),
            title=pull.get("title"),
            body=pull.get("description"),
            url=dig(pull, "links", "html", "href"),
            state=pull.get("state"),
            repository=self.map_repository(payload),
            head=BranchRef(
                ref=dig(pull, "source", "branch", "name"),
                sha=dig(pull, "source", "commit", "hash"),
                repo_full_name=dig(pull, "source", "repository", "full_name"),
            ),
            base=BranchRef(
                ref=dig(pull, "destination", "branch", "name"),
                sha=dig(pull, "destination", "commit", "hash"),
                repo_full_name=dig(pull, "destination", "repository", "full_name"),
            ),
            user=_user(pull.get("author")) or GitUser(),
            is_draft=bool(pull.get("draft", False)),
        )

    def map_trigger_comment_id(self, payload: dict[str, Any]) -> Optional[str]:
        return as_text(dig(payload, "comment", "id"))
