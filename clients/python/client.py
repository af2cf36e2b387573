from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

import httpx

EVENT_HEADERS = {
    "github": "X-GitHub-Event",
    "gitlab": "X-Gitlab-Event",
    "bitbucket": "X-Event-Key",
}


@dataclass
class WebhookEvent:
    """Convenience wrapper for POST /webhooks/{platform} payloads."""

    platform_type: str
    event: str
    payload: Dict[str, Any] = field(default_factory=dict)
    correlation_id: str | None = None

    def headers(self) -> Dict[str, str]:
        name = EVENT_HEADERS.get(self.platform_type.lower(), "X-Event-Type")
        headers = {name: self.event}
        if self.correlation_id:
            headers["X-Correlation-Id"] = self.correlation_id
        return headers


def dashboard_params(
    *,
    limit: int,
    page: int,
    team_id: str | None,
    repository_id: str | None,
    repository_name: str | None,
    has_sent_suggestions: bool | None,
    pull_request_title: str | None,
    pull_request_number: int | None,
) -> Dict[str, Any]:
    params: Dict[str, Any] = {"limit": limit, "page": page}
    optional = {
        "team_id": team_id,
        "repository_id": repository_id,
        "repository_name": repository_name,
        "pull_request_title": pull_request_title,
        "pull_request_number": pull_request_number,
    }
    params.update({key: value for key, value in optional.items() if value is not None})
    if has_sent_suggestions is not None:
        params["has_sent_suggestions"] = str(has_sent_suggestions).lower()
    return params


class ReviewHubClient:
    """Lightweight synchronous client for the ReviewHub API."""

    def __init__(
        self,
        base_url: str,
        *,
        api_prefix: str = "/v1",
        timeout: float = 10.0,
        headers: Dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        normalized_base = base_url.rstrip("/") + "/"
        self._prefix = api_prefix.strip("/")
        self._client = httpx.Client(
            base_url=normalized_base,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    def __enter__(self) -> "ReviewHubClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def submit_webhook(self, event: WebhookEvent) -> dict:
        response = self._client.post(
            f"{self._prefix}/webhooks/{event.platform_type}",
            json=event.payload,
            headers=event.headers(),
        )
        response.raise_for_status()
        return response.json()

    def get_enriched_pull_requests(
        self,
        organization_id: str,
        *,
        user_id: str | None = None,
        limit: int = 30,
        page: int = 1,
        team_id: str | None = None,
        repository_id: str | None = None,
        repository_name: str | None = None,
        has_sent_suggestions: bool | None = None,
        pull_request_title: str | None = None,
        pull_request_number: int | None = None,
    ) -> dict:
        params = dashboard_params(
            limit=limit,
            page=page,
            team_id=team_id,
            repository_id=repository_id,
            repository_name=repository_name,
            has_sent_suggestions=has_sent_suggestions,
            pull_request_title=pull_request_title,
            pull_request_number=pull_request_number,
        )
        headers = {"X-Organization-Id": organization_id}
        if user_id:
            headers["X-User-Id"] = user_id
        response = self._client.get(f"{self._prefix}/dashboard/pull-requests", params=params, headers=headers)
        response.raise_for_status()
        return response.json()

    def healthcheck(self) -> dict:
        response = self._client.get("healthz")
        response.raise_for_status()
        return response.json()
