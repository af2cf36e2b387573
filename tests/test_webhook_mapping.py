import pytest

from reviewhub.models.domain import GitUser, MappedUsers, PlatformType
from reviewhub.services.webhook_mapping import (
    get_mapped_platform,
    map_trigger,
    should_run_automation,
    strip_curly_braces_from_uuids,
    user_git_id,
)

UUID = "0f9a3a4e-1c2b-4d5e-8f70-123456789abc"


@pytest.mark.parametrize("platform", [PlatformType.GITHUB, PlatformType.GITLAB, PlatformType.AZURE_REPOS])
def test_closed_action_is_skipped_outside_bitbucket(platform):
    assert should_run_automation({"action": "closed"}, platform) is False


@pytest.mark.parametrize("platform", list(PlatformType))
def test_command_origin_bypasses_every_gate(platform):
    payload = {"action": "synchronize", "origin": "command", "object_attributes": {"state": "merged"}}
    assert should_run_automation(payload, platform) is True


def test_bitbucket_always_passes():
    assert should_run_automation({"action": "closed"}, PlatformType.BITBUCKET) is True


@pytest.mark.parametrize(
    "payload",
    [
        {"action": "opened"},
        {"action": "synchronize"},
        {"action": "ready_for_review"},
        {"object_attributes": {"action": "open", "state": "opened"}},
        {"object_attributes": {"action": "update", "state": "opened"}},
        {"eventType": "git.pullrequest.created", "resource": {"status": "active"}},
        {"eventType": "git.pullrequest.updated", "resource": {"status": "active"}},
    ],
)
def test_allow_listed_actions_on_open_pull_requests_run(payload):
    platform = PlatformType.AZURE_REPOS if "eventType" in payload else PlatformType.GITLAB
    assert should_run_automation(payload, platform) is True


@pytest.mark.parametrize(
    "payload",
    [
        {"object_attributes": {"action": "update", "state": "merged"}},
        {"eventType": "git.pullrequest.updated", "resource": {"status": "completed"}},
        {"eventType": "git.pullrequest.updated", "resource": {"status": "abandoned"}},
        {"eventType": "git.pullrequest.updated", "resource": {"pullRequest": {"status": "completed"}}},
    ],
)
def test_finished_pull_requests_are_skipped(payload):
    assert should_run_automation(payload, PlatformType.AZURE_REPOS) is False


def test_strip_curly_braces_unwraps_nested_uuids_without_mutating_input():
    payload = {
        "repository": {"uuid": "{" + UUID + "}", "name": "svc"},
        "pullrequest": {"reviewers": [{"uuid": "{" + UUID + "}"}], "title": "{not-a-uuid}"},
    }

    cleaned = strip_curly_braces_from_uuids(payload)

    assert cleaned["repository"]["uuid"] == UUID
    assert cleaned["pullrequest"]["reviewers"][0]["uuid"] == UUID
    assert cleaned["pullrequest"]["title"] == "{not-a-uuid}"
    assert payload["repository"]["uuid"] == "{" + UUID + "}"


def test_user_git_id_prefers_descriptor_then_id_then_uuid():
    assert user_git_id(MappedUsers(user=GitUser(descriptor="aad.x", id="7", uuid="u"))) == "aad.x"
    assert user_git_id(MappedUsers(user=GitUser(id="7", uuid="u"))) == "7"
    assert user_git_id(MappedUsers(user=GitUser(uuid="u"))) == "u"
    assert user_git_id(MappedUsers()) is None


def test_every_platform_has_a_mapping():
    for platform in PlatformType:
        mapping = get_mapped_platform(platform)
        assert mapping is not None
        assert mapping.platform_type is platform


def test_map_trigger_abandons_payloads_without_action_or_repository():
    mapping = get_mapped_platform(PlatformType.GITHUB)
    assert map_trigger(mapping, {"repository": {"id": 1, "name": "svc"}}, "pull_request") is None
    assert map_trigger(mapping, {"action": "opened"}, "pull_request") is None


def test_map_trigger_carries_origin_and_comment_id():
    mapping = get_mapped_platform(PlatformType.GITHUB)
    payload = {
        "action": "created",
        "origin": "command",
        "triggerCommentId": 991,
        "repository": {"id": 5, "name": "svc"},
        "issue": {"number": 3},
    }

    trigger = map_trigger(mapping, payload, "issue_comment")

    assert trigger is not None
    assert trigger.origin == "command"
    assert trigger.trigger_comment_id == "991"
    assert trigger.pull_request is None
