from __future__ import annotations

import asyncio
import json

import httpx

from clients.python import AsyncReviewHubClient, ReviewHubClient, WebhookEvent


def test_client_submits_webhook_with_event_headers():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["url"] = str(request.url)
        captured["headers"] = request.headers
        captured["json"] = json.loads(request.content.decode())
        return httpx.Response(202, json={"job_id": "wj_1", "status": "PENDING"})

    transport = httpx.MockTransport(handler)
    with ReviewHubClient("http://example.com", transport=transport) as client:
        event = WebhookEvent(
            platform_type="gitlab",
            event="Merge Request Hook",
            payload={"object_kind": "merge_request"},
            correlation_id="corr-1",
        )
        response = client.submit_webhook(event)

    assert response["job_id"] == "wj_1"
    assert captured["method"] == "POST"
    assert captured["url"] == "http://example.com/v1/webhooks/gitlab"
    assert captured["headers"]["X-Gitlab-Event"] == "Merge Request Hook"
    assert captured["headers"]["X-Correlation-Id"] == "corr-1"
    assert captured["json"] == {"object_kind": "merge_request"}


def test_unknown_platform_uses_generic_event_header():
    assert WebhookEvent(platform_type="azure_repos", event="git.pullrequest.created").headers() == {
        "X-Event-Type": "git.pullrequest.created"
    }


def test_client_dashboard_queries():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["params"] = dict(request.url.params)
        captured["headers"] = request.headers
        return httpx.Response(200, json={"data": [], "pagination": {}})

    transport = httpx.MockTransport(handler)
    with ReviewHubClient("http://example.com/", transport=transport) as client:
        client.get_enriched_pull_requests(
            "org-1", user_id="user-1", limit=5, page=2, has_sent_suggestions=False, pull_request_title="fix"
        )

    assert captured["path"] == "/v1/dashboard/pull-requests"
    assert captured["params"] == {
        "limit": "5",
        "page": "2",
        "pull_request_title": "fix",
        "has_sent_suggestions": "false",
    }
    assert captured["headers"]["X-Organization-Id"] == "org-1"
    assert captured["headers"]["X-User-Id"] == "user-1"


def test_async_client_round_trip():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        if request.url.path == "/healthz":
            return httpx.Response(200, json={"status": "ok"})
        return httpx.Response(202, json={"job_id": "wj_2"})

    async def scenario():
        async with AsyncReviewHubClient("http://example.com", transport=httpx.MockTransport(handler)) as client:
            health = await client.healthcheck()
            queued = await client.submit_webhook(WebhookEvent(platform_type="github", event="pull_request"))
        return health, queued

    health, queued = asyncio.run(scenario())

    assert health == {"status": "ok"}
    assert queued["job_id"] == "wj_2"
    assert seen == ["/healthz", "/v1/webhooks/github"]
