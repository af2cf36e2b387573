from __future__ import annotations

from datetime import datetime, timezone

import fakeredis
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from reviewhub.dependencies import (
    get_enriched_pull_requests_service,
    get_event_sink,
    get_intake_service,
    get_job_queue,
)
from reviewhub.main import create_app
from reviewhub.models.domain import (
    AutomationExecution,
    AutomationStatus,
    PullRequestRecord,
    RepositoryRef,
    SuggestionsCount,
)
from reviewhub.repositories.redis_queue import RedisJobQueue
from reviewhub.repositories.redis_store import RedisAccessStore, RedisReviewWarehouse
from reviewhub.services.enriched_pull_requests import EnrichedPullRequestsService
from reviewhub.services.intake import WebhookIntakeService
from reviewhub.telemetry import NullEventSink


class BrokenRedis(fakeredis.FakeRedis):
    def pipeline(self, *args, **kwargs):
        raise RedisConnectionError("redis is down")


def _build_test_client(redis_client=None):
    # Reset cached dependencies to avoid cross-test contamination.
    get_job_queue.cache_clear()
    get_intake_service.cache_clear()
    get_enriched_pull_requests_service.cache_clear()
    get_event_sink.cache_clear()

    app = create_app()
    fake_redis = redis_client or fakeredis.FakeRedis(decode_responses=True)
    queue = RedisJobQueue(fake_redis)
    warehouse = RedisReviewWarehouse(fake_redis)
    access = RedisAccessStore(fake_redis)
    intake = WebhookIntakeService(queue)
    dashboard = EnrichedPullRequestsService(
        pull_requests=warehouse,
        executions=warehouse,
        code_reviews=warehouse,
        repositories=warehouse,
        authorization=access,
    )
    sink = NullEventSink()

    app.dependency_overrides[get_job_queue] = lambda: queue
    app.dependency_overrides[get_intake_service] = lambda: intake
    app.dependency_overrides[get_enriched_pull_requests_service] = lambda: dashboard
    app.dependency_overrides[get_event_sink] = lambda: sink

    return TestClient(app), queue, warehouse


def test_github_webhook_is_accepted_and_queued():
    client, queue, _ = _build_test_client()

    response = client.post(
        "/v1/webhooks/github",
        json={"action": "opened", "repository": {"id": 1, "name": "api"}},
        headers={"X-GitHub-Event": "pull_request", "X-GitHub-Delivery": "delivery-1"},
    )

    assert response.status_code == 202
    body = response.json()
    assert body["platform_type"] == "GITHUB"
    assert body["status"] == "PENDING"
    assert body["correlation_id"] == "delivery-1"
    job = queue.get_job(body["job_id"])
    assert job.metadata.event == "pull_request"
    assert job.payload["action"] == "opened"
    assert queue.pending_count() == 1


def test_azure_event_type_is_read_from_payload():
    client, queue, _ = _build_test_client()

    response = client.post(
        "/v1/webhooks/azure-repos",
        json={"eventType": "git.pullrequest.created", "resource": {}},
    )

    assert response.status_code == 202
    job = queue.get_job(response.json()["job_id"])
    assert job.metadata.platform_type.value == "AZURE_REPOS"
    assert job.metadata.event == "git.pullrequest.created"


def test_explicit_correlation_id_wins():
    client, _, _ = _build_test_client()

    response = client.post(
        "/v1/webhooks/gitlab",
        json={"object_kind": "merge_request"},
        headers={"X-Gitlab-Event": "Merge Request Hook", "X-Correlation-Id": "corr-9"},
    )

    assert response.json()["correlation_id"] == "corr-9"


def test_unknown_platform_is_rejected():
    client, queue, _ = _build_test_client()

    response = client.post("/v1/webhooks/unknown-vcs", json={}, headers={"X-Event-Type": "push"})

    assert response.status_code == 422
    assert response.json()["detail"] == "Unsupported platformType: unknown-vcs"
    assert queue.pending_count() == 0


def test_missing_event_name_is_rejected():
    client, _, _ = _build_test_client()

    response = client.post("/v1/webhooks/github", json={"action": "opened"})

    assert response.status_code == 400


def test_queue_outage_returns_service_unavailable():
    client, _, _ = _build_test_client(BrokenRedis(decode_responses=True))

    response = client.post("/v1/webhooks/github", json={}, headers={"X-GitHub-Event": "pull_request"})

    assert response.status_code == 503


def test_dashboard_requires_organization():
    client, _, _ = _build_test_client()

    response = client.get("/v1/dashboard/pull-requests")

    assert response.status_code == 401


def test_dashboard_returns_enriched_pull_requests():
    client, _, warehouse = _build_test_client()
    now = datetime.now(timezone.utc)
    warehouse.save_pull_request(
        PullRequestRecord(
            uuid="pr-uuid",
            organization_id="org-1",
            number=5,
            title="Add retries",
            repository=RepositoryRef(id="r1", name="api"),
            suggestions_count=SuggestionsCount(sent=1, filtered=2),
        )
    )
    warehouse.save_execution(
        AutomationExecution(
            uuid="ex-1",
            organization_id="org-1",
            pull_request_number=5,
            repository_id="r1",
            status=AutomationStatus.SUCCESS,
            created_at=now,
            updated_at=now,
            data_execution={"repository": {"id": "r1", "name": "api"}},
        )
    )

    response = client.get(
        "/v1/dashboard/pull-requests",
        params={"limit": 10, "has_sent_suggestions": "true"},
        headers={"X-Organization-Id": "org-1", "X-User-Id": "user-1"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["pagination"]["total_items"] == 1
    item = body["data"][0]
    assert item["pr_number"] == 5
    assert item["title"] == "Add retries"
    assert item["automation_execution"]["uuid"] == "ex-1"
    assert item["suggestions_count"] == {"sent": 1, "filtered": 2}
    assert item["enriched_data"]["repository"]["name"] == "api"


def test_dashboard_limit_is_bounded():
    client, _, _ = _build_test_client()

    response = client.get(
        "/v1/dashboard/pull-requests",
        params={"limit": 0},
        headers={"X-Organization-Id": "org-1"},
    )

    assert response.status_code == 422


def test_healthcheck():
    client, _, _ = _build_test_client()

    assert client.get("/healthz").json() == {"status": "ok"}


class ClosingSink(NullEventSink):
    def __init__(self) -> None:
        self.closed = False

    def close(self) -> None:
        self.closed = True


def test_shutdown_closes_event_sink(monkeypatch):
    sink = ClosingSink()
    monkeypatch.setattr("reviewhub.main.get_event_sink", lambda: sink)

    with TestClient(create_app()) as client:
        assert client.get("/healthz").status_code == 200
        assert sink.closed is False

    assert sink.closed is True
