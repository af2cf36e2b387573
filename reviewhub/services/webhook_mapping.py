"""Translation of raw provider payloads into canonical trigger records."""

from __future__ import annotations

import logging
import re
from typing import Any, Optional, Protocol

from reviewhub.models.domain import (
    CanonicalTrigger,
    MappedPullRequest,
    MappedUsers,
    PlatformType,
    RepositoryRef,
)

_logger = logging.getLogger(__name__)

ALLOWED_ACTIONS = frozenset(
    {
        "opened",
        "synchronize",
        "ready_for_review",
        "open",
        "update",
        "git.pullrequest.updated",
        "git.pullrequest.created",
    }
)

CLOSED_STATES = frozenset({"merged", "completed", "abandoned"})

COMMAND_ORIGIN = "command"

_BRACED_UUID = re.compile(
    r"\{([0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12})\}"
)


def dig(payload: Any, *path: str) -> Any:
    """Walk nested mappings, returning ``None`` as soon as a level is missing."""

    current = payload
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
        if current is None:
            return None
    return current


def as_text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def strip_curly_braces_from_uuids(payload: Any) -> Any:
    """Return a copy of a Bitbucket payload with ``{uuid}`` values unwrapped."""

    if isinstance(payload, dict):
        return {key: strip_curly_braces_from_uuids(value) for key, value in payload.items()}
    if isinstance(payload, list):
        return [strip_curly_braces_from_uuids(item) for item in payload]
    if isinstance(payload, str):
        return _BRACED_UUID.sub(r"\1", payload)
    return payload


def current_action(payload: dict[str, Any]) -> Optional[str]:
    return payload.get("action") or dig(payload, "object_attributes", "action") or payload.get("eventType")


def is_closed(payload: dict[str, Any]) -> bool:
    states = (
        dig(payload, "object_attributes", "state"),
        dig(payload, "resource", "pullRequest", "status"),
        dig(payload, "resource", "status"),
    )
    return any(state in CLOSED_STATES for state in states)


def should_run_automation(payload: dict[str, Any], platform_type: PlatformType) -> bool:
    """Stateless gate deciding whether an event may trigger a code review.

    Command-originated re-runs always pass and Bitbucket events are filtered
    before they reach the queue. Everything else needs an allow-listed action
    on a pull request that is still open.
    """

    if payload.get("origin") == COMMAND_ORIGIN:
        return True
    if platform_type == PlatformType.BITBUCKET:
        return True
    action = current_action(payload)
    closed = is_closed(payload)
    if action not in ALLOWED_ACTIONS or closed:
        _logger.info(
            "Automation skipped",
            extra={"current_action": action, "is_closed": closed, "platform_type": platform_type.value},
        )
        return False
    return True


class ActionMapper(Protocol):
    def map_action(self, payload: dict[str, Any], event: str) -> Optional[str]:  # pragma: no cover - interface
        ...


class RepositoryMapper(Protocol):
    def map_repository(self, payload: dict[str, Any]) -> Optional[RepositoryRef]:  # pragma: no cover - interface
        ...


class UserMapper(Protocol):
    def map_users(self, payload: dict[str, Any]) -> MappedUsers:  # pragma: no cover - interface
        ...


class PullRequestMapper(Protocol):
    def map_pull_request(self, payload: dict[str, Any]) -> Optional[MappedPullRequest]:  # pragma: no cover - interface
        ...


class PlatformMapping(ActionMapper, RepositoryMapper, UserMapper, PullRequestMapper, Protocol):
    """Full capability set a provider must supply."""

    platform_type: PlatformType

    def handles_event(self, event: str) -> bool:  # pragma: no cover - interface
        ...

    def map_trigger_comment_id(self, payload: dict[str, Any]) -> Optional[str]:  # pragma: no cover - interface
        ...


def _build_registry() -> dict[PlatformType, PlatformMapping]:
    from reviewhub.services.providers.azure_repos import AzureReposMapping
    from reviewhub.services.providers.bitbucket import BitbucketMapping
    from reviewhub.services.providers.github import GitHubMapping
    from reviewhub.services.providers.gitlab import GitLabMapping

    mappings: list[PlatformMapping] = [GitHubMapping(), GitLabMapping(), BitbucketMapping(), AzureReposMapping()]
    return {mapping.platform_type: mapping for mapping in mappings}


_registry: dict[PlatformType, PlatformMapping] | None = None


def get_mapped_platform(platform_type: PlatformType) -> Optional[PlatformMapping]:
    global _registry
    if _registry is None:
        _registry = _build_registry()
    return _registry.get(platform_type)


def sanitize_payload(payload: dict[str, Any], platform_type: PlatformType) -> dict[str, Any]:
    if platform_type == PlatformType.BITBUCKET:
        return strip_curly_braces_from_uuids(payload)
    return payload


def map_trigger(
    mapping: PlatformMapping, payload: dict[str, Any], event: str
) -> Optional[CanonicalTrigger]:
    """Run every mapper over a sanitized payload.

    Returns ``None`` when the payload carries no action or repository, which
    marks it as not review-relevant.
    """

    action = mapping.map_action(payload, event)
    if not action:
        return None
    repository = mapping.map_repository(payload)
    if repository is None:
        return None
    return CanonicalTrigger(
        action=action,
        repository=repository,
        pull_request=mapping.map_pull_request(payload),
        users=mapping.map_users(payload),
        origin=payload.get("origin"),
        trigger_comment_id=as_text(payload.get("triggerCommentId")) or mapping.map_trigger_comment_id(payload),
    )


def user_git_id(users: MappedUsers) -> Optional[str]:
    """Azure identifies users by descriptor; others by id, then uuid."""

    user = users.user
    if user is None:
        return None
    for candidate in (user.descriptor, user.id, user.uuid):
        if candidate:
            return str(candidate)
    return None
