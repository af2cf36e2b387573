from __future__ import annotations

from typing import Dict

import httpx

from .client import WebhookEvent, dashboard_params


class AsyncReviewHubClient:
    """Async variant of the ReviewHub API client."""

    def __init__(
        self,
        base_url: str,
        *,
        api_prefix: str = "/v1",
        timeout: float = 10.0,
        headers: Dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        normalized_base = base_url.rstrip("/") + "/"
        self._prefix = api_prefix.strip("/")
        self._client = httpx.AsyncClient(
            base_url=normalized_base,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    async def __aenter__(self) -> "AsyncReviewHubClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def submit_webhook(self, event: WebhookEvent) -> dict:
        response = await self._client.post(
            f"{self._prefix}/webhooks/{event.platform_type}",
            json=event.payload,
            headers=event.headers(),
        )
        response.raise_for_status()
        return response.json()

    async def get_enriched_pull_requests(
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
        response = await self._client.get(
            f"{self._prefix}/dashboard/pull-requests", params=params, headers=headers
        )
        response.raise_for_status()
        return response.json()

    async def healthcheck(self) -> dict:
        response = await self._client.get("healthz")
        response.raise_for_status()
        return response.json()
