"""Python client for interacting with the ReviewHub API."""

from .client import ReviewHubClient, WebhookEvent
from .async_client import AsyncReviewHubClient

__all__ = ["ReviewHubClient", "WebhookEvent", "AsyncReviewHubClient"]
