import asyncio
from datetime import datetime, timedelta, timezone

import fakeredis
import pytest

from reviewhub.core.errors import MissingOrganizationError
from reviewhub.models.domain import (
    AutomationExecution,
    AutomationStatus,
    CodeReviewExecution,
    ConfiguredRepository,
    DeliveryStatus,
    OrganizationAndTeamData,
    PullRequestAuthor,
    PullRequestFile,
    PullRequestRecord,
    RepositoryRef,
    StoredSuggestion,
    SuggestionsCount,
)
from reviewhub.repositories.redis_store import RedisAccessStore, RedisReviewWarehouse
from reviewhub.schemas.dashboard import EnrichedPullRequestsQuery, RequestUser
from reviewhub.services.contracts import PullRequestKey
from reviewhub.services.enriched_pull_requests import EnrichedPullRequestsService

BASE_TIME = datetime(2024, 5, 1, tzinfo=timezone.utc)
USER = RequestUser(organization_id="org-1", user_id="user-1")


class CountingWarehouse:
    """Delegates to the Redis warehouse while recording or failing selected calls."""

    def __init__(self, warehouse: RedisReviewWarehouse, failing: frozenset[str] = frozenset()) -> None:
        self._warehouse = warehouse
        self._failing = failing
        self.calls: list[str] = []

    def __getattr__(self, name):
        target = getattr(self._warehouse, name)

        async def wrapper(*args, **kwargs):
            self.calls.append(name)
            if name in self._failing:
                raise RuntimeError(f"{name} unavailable")
            return await target(*args, **kwargs)

        return wrapper


@pytest.fixture()
def client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def warehouse(client):
    return RedisReviewWarehouse(client)


@pytest.fixture()
def access(client):
    return RedisAccessStore(client)


def _service(store, access) -> EnrichedPullRequestsService:
    return EnrichedPullRequestsService(
        pull_requests=store,
        executions=store,
        code_reviews=store,
        repositories=store,
        authorization=access,
    )


def _pull_request(repository_id: str, number: int, *, title: str = "", files=None, counts=None) -> PullRequestRecord:
    return PullRequestRecord(
        uuid=f"pr-{repository_id}-{number}",
        organization_id="org-1",
        number=number,
        title=title or f"Change {number}",
        repository=RepositoryRef(id=repository_id, name=f"repo-{repository_id}"),
        user=PullRequestAuthor(id="u1", username="octo"),
        files=files or [],
        suggestions_count=counts,
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )


def _execution(uuid: str, repository_id: str, number: int, minutes: int, team_id: str = "team-1") -> AutomationExecution:
    created = BASE_TIME + timedelta(minutes=minutes)
    return AutomationExecution(
        uuid=uuid,
        organization_id="org-1",
        team_id=team_id,
        pull_request_number=number,
        repository_id=repository_id,
        status=AutomationStatus.SUCCESS,
        created_at=created,
        updated_at=created,
        data_execution={
            "repository": {"id": repository_id, "name": f"repo-{repository_id}"},
            "pull_request": {"number": number, "title": f"Change {number}"},
            "automation": {"name": "Code Review", "type": "AutomationCodeReview"},
        },
    )


def _run(service, **query):
    return asyncio.run(service.get_enriched_pull_requests(EnrichedPullRequestsQuery(**query), USER))


def _seed_basic(warehouse: RedisReviewWarehouse) -> None:
    warehouse.save_pull_request(_pull_request("r1", 1, counts=SuggestionsCount(sent=2, filtered=1)))
    warehouse.save_pull_request(_pull_request("r2", 7, title="Fix login flow"))
    warehouse.save_execution(_execution("ex-old", "r1", 1, minutes=1))
    warehouse.save_execution(_execution("ex-new", "r2", 7, minutes=5))


def test_missing_organization_is_rejected(warehouse, access):
    service = _service(warehouse, access)

    with pytest.raises(MissingOrganizationError):
        asyncio.run(service.get_enriched_pull_requests(EnrichedPullRequestsQuery(), RequestUser()))


def test_executions_are_joined_newest_first(warehouse, access):
    _seed_basic(warehouse)
    warehouse.add_code_review_executions(
        [
            CodeReviewExecution(
                uuid="cr-2",
                automation_execution_id="ex-old",
                status=AutomationStatus.SUCCESS,
                stage_name="publish",
                created_at=BASE_TIME + timedelta(minutes=3),
                updated_at=BASE_TIME + timedelta(minutes=3),
            ),
            CodeReviewExecution(
                uuid="cr-1",
                automation_execution_id="ex-old",
                status=AutomationStatus.IN_PROGRESS,
                stage_name="analyze",
                created_at=BASE_TIME + timedelta(minutes=2),
                updated_at=BASE_TIME + timedelta(minutes=2),
            ),
        ]
    )

    result = _run(_service(warehouse, access))

    assert [item.automation_execution.uuid for item in result.data] == ["ex-new", "ex-old"]
    older = result.data[1]
    assert [entry.uuid for entry in older.code_review_timeline] == ["cr-1", "cr-2"]
    assert older.suggestions_count == SuggestionsCount(sent=2, filtered=1)
    assert older.enriched_data.automation.name == "Code Review"
    assert result.pagination.total_items == 2
    assert result.pagination.total_pages == 1
    assert result.pagination.has_next_page is False
    assert result.pagination.has_previous_page is False


def test_suggestion_counts_fall_back_to_files(warehouse, access):
    files = [
        PullRequestFile(
            path="a.py",
            suggestions=[
                StoredSuggestion(id="s1", delivery_status=DeliveryStatus.SENT),
                StoredSuggestion(id="s2", delivery_status=DeliveryStatus.NOT_SENT),
                StoredSuggestion(id="s3", delivery_status=DeliveryStatus.FAILED),
            ],
        )
    ]
    warehouse.save_pull_request(_pull_request("r1", 1, files=files))
    warehouse.save_execution(_execution("ex-1", "r1", 1, minutes=1))

    result = _run(_service(warehouse, access))

    assert result.data[0].suggestions_count == SuggestionsCount(sent=1, filtered=1)


def test_stored_count_projection_is_preferred(warehouse, access):
    warehouse.save_pull_request(_pull_request("r1", 1))
    warehouse.save_suggestion_counts("org-1", PullRequestKey("r1", 1), SuggestionsCount(sent=4, filtered=0))
    warehouse.save_execution(_execution("ex-1", "r1", 1, minutes=1))

    result = _run(_service(warehouse, access))

    assert result.data[0].suggestions_count.sent == 4


def test_empty_scope_returns_empty_page_without_store_calls(warehouse, access):
    _seed_basic(warehouse)
    access.set_repository_scope("org-1", "user-1", [])
    store = CountingWarehouse(warehouse)

    result = _run(_service(store, access), page=2, limit=5)

    assert result.data == []
    assert result.pagination.current_page == 2
    assert result.pagination.total_pages == 0
    assert result.pagination.has_previous_page is False
    assert store.calls == []


def test_scope_restricts_visible_repositories(warehouse, access):
    _seed_basic(warehouse)
    access.set_repository_scope("org-1", "user-1", ["r1"])

    result = _run(_service(warehouse, access))

    assert [item.repository_id for item in result.data] == ["r1"]
    assert result.pagination.total_items == 1


def test_requested_repository_outside_scope_yields_empty_page(warehouse, access):
    _seed_basic(warehouse)
    access.set_repository_scope("org-1", "user-1", ["r1"])
    store = CountingWarehouse(warehouse)

    result = _run(_service(store, access), repository_id="r2")

    assert result.data == []
    assert "find_pull_request_executions_by_organization_and_team" not in store.calls


def test_repository_id_takes_precedence_over_name(warehouse, access):
    _seed_basic(warehouse)

    result = _run(_service(warehouse, access), repository_id="r2", repository_name="repo-r1")

    assert [item.repository_id for item in result.data] == ["r2"]


def test_repository_name_resolves_through_configured_repositories(warehouse, access):
    _seed_basic(warehouse)
    warehouse.set_configured_repositories(
        OrganizationAndTeamData(organization_id="org-1", team_id="team-1"),
        [ConfiguredRepository(id="r2", name="Payments", organization_name="acme")],
    )

    result = _run(_service(warehouse, access), team_id="team-1", repository_name="ACME/payments")

    assert [item.repository_id for item in result.data] == ["r2"]


def test_unresolved_repository_name_filters_by_substring(warehouse, access):
    _seed_basic(warehouse)

    result = _run(_service(warehouse, access), repository_name="O-R1")

    assert [item.repository_id for item in result.data] == ["r1"]


def test_title_filter_without_matches_skips_execution_store(warehouse, access):
    _seed_basic(warehouse)
    store = CountingWarehouse(warehouse)

    result = _run(_service(store, access), pull_request_title="nothing like this")

    assert result.data == []
    assert store.calls == ["find_pr_numbers_by_title_and_organization"]


def test_title_filter_is_case_insensitive(warehouse, access):
    _seed_basic(warehouse)

    result = _run(_service(warehouse, access), pull_request_title="LOGIN")

    assert [item.pr_number for item in result.data] == [7]


def test_has_sent_suggestions_filter(warehouse, access):
    _seed_basic(warehouse)
    service = _service(warehouse, access)

    with_sent = _run(service, has_sent_suggestions=True)
    without_sent = _run(service, has_sent_suggestions=False)

    assert [item.pr_number for item in with_sent.data] == [1]
    assert [item.pr_number for item in without_sent.data] == [7]


def test_missing_pull_request_is_skipped_and_total_is_kept(warehouse, access, caplog):
    _seed_basic(warehouse)
    warehouse.save_execution(_execution("ex-orphan", "r9", 99, minutes=10))

    with caplog.at_level("WARNING"):
        result = _run(_service(warehouse, access))

    assert [item.automation_execution.uuid for item in result.data] == ["ex-new", "ex-old"]
    assert result.pagination.total_items == 3
    assert any(r.getMessage() == "Pull request not found for execution" for r in caplog.records)


def test_batches_continue_until_page_is_filled(warehouse, access):
    warehouse.save_pull_request(_pull_request("r1", 1))
    warehouse.save_pull_request(_pull_request("r1", 2))
    warehouse.save_execution(_execution("ex-a", "r9", 50, minutes=4))
    warehouse.save_execution(_execution("ex-b", "r9", 51, minutes=3))
    warehouse.save_execution(_execution("ex-c", "r1", 2, minutes=2))
    warehouse.save_execution(_execution("ex-d", "r1", 1, minutes=1))

    result = _run(_service(warehouse, access), limit=2)

    assert [item.automation_execution.uuid for item in result.data] == ["ex-c", "ex-d"]
    assert result.pagination.total_items == 4
    assert result.pagination.total_pages == 2
    assert result.pagination.has_next_page is True


def test_second_page_skips_first_page(warehouse, access):
    _seed_basic(warehouse)

    result = _run(_service(warehouse, access), limit=1, page=2)

    assert [item.automation_execution.uuid for item in result.data] == ["ex-old"]
    assert result.pagination.has_previous_page is True
    assert result.pagination.has_next_page is False


def test_no_executions_returns_empty_page(warehouse, access, caplog):
    with caplog.at_level("WARNING"):
        result = _run(_service(warehouse, access))

    assert result.data == []
    assert result.pagination.total_items == 0
    assert any(r.getMessage() == "No automation executions with PR data found" for r in caplog.records)


def test_failed_bulk_lookups_degrade_to_fallbacks(warehouse, access, caplog):
    _seed_basic(warehouse)
    warehouse.add_code_review_executions(
        [CodeReviewExecution(uuid="cr-1", automation_execution_id="ex-old", status=AutomationStatus.SUCCESS)]
    )
    store = CountingWarehouse(
        warehouse,
        failing=frozenset(
            {"find_suggestion_counts_by_numbers_and_repository_ids", "find_many_by_automation_execution_ids"}
        ),
    )

    with caplog.at_level("ERROR"):
        result = _run(_service(store, access))

    assert len(result.data) == 2
    assert all(item.code_review_timeline == [] for item in result.data)
    messages = {r.getMessage() for r in caplog.records}
    assert "Error fetching suggestion counts" in messages
    assert "Error bulk fetching code reviews" in messages


def test_failed_pull_request_lookup_drops_every_item(warehouse, access):
    _seed_basic(warehouse)
    store = CountingWarehouse(warehouse, failing=frozenset({"find_many_by_numbers_and_repository_ids"}))

    result = _run(_service(store, access))

    assert result.data == []
    assert result.pagination.total_items == 2


def test_execution_store_failure_is_logged_and_raised(warehouse, access, caplog):
    store = CountingWarehouse(
        warehouse, failing=frozenset({"find_pull_request_executions_by_organization_and_team"})
    )

    with caplog.at_level("ERROR"), pytest.raises(RuntimeError):
        _run(_service(store, access))

    assert any(r.getMessage() == "Error getting enriched pull requests" for r in caplog.records)


def test_team_filter_applies_to_executions(warehouse, access):
    warehouse.save_pull_request(_pull_request("r1", 1))
    warehouse.save_pull_request(_pull_request("r1", 2))
    warehouse.save_execution(_execution("ex-1", "r1", 1, minutes=1, team_id="team-1"))
    warehouse.save_execution(_execution("ex-2", "r1", 2, minutes=2, team_id="team-2"))

    result = _run(_service(warehouse, access), team_id="team-2")

    assert [item.automation_execution.uuid for item in result.data] == ["ex-2"]
