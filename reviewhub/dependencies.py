"""Application dependency wiring."""

from __future__ import annotations

from functools import lru_cache

from redis import Redis

from reviewhub.core.config import settings
from reviewhub.integrations.github_code_management import CodeManagementRegistry, GitHubCodeManagement
from reviewhub.models.domain import PlatformType
from reviewhub.repositories.redis_queue import RedisJobQueue
from reviewhub.repositories.redis_store import RedisAccessStore, RedisReviewWarehouse
from reviewhub.services.automation import ExecutionRecordingStrategy
from reviewhub.services.dispatcher import AutomationDispatcher
from reviewhub.services.enriched_pull_requests import EnrichedPullRequestsService
from reviewhub.services.intake import WebhookIntakeService
from reviewhub.services.webhook_processing import WebhookJobProcessor
from reviewhub.services.worker import WebhookWorker
from reviewhub.telemetry import EventSink, sink_from_settings


@lru_cache
def get_redis_client() -> Redis:
    return Redis.from_url(settings.redis_url, decode_responses=True)


@lru_cache
def get_store() -> RedisReviewWarehouse:
    return RedisReviewWarehouse(get_redis_client())


@lru_cache
def get_access_store() -> RedisAccessStore:
    return RedisAccessStore(get_redis_client())


@lru_cache
def get_job_queue() -> RedisJobQueue:
    return RedisJobQueue(
        get_redis_client(),
        queue_key=settings.webhook_queue_key,
        dead_letter_key=settings.webhook_dead_letter_key,
    )


@lru_cache
def get_event_sink() -> EventSink:
    return sink_from_settings()


@lru_cache
def get_code_management() -> CodeManagementRegistry:
    registry = CodeManagementRegistry()
    if settings.github_token:
        registry.register(
            PlatformType.GITHUB,
            GitHubCodeManagement(settings.github_token, base_url=settings.github_base_url),
        )
    return registry


@lru_cache
def get_automation_strategy() -> ExecutionRecordingStrategy:
    return ExecutionRecordingStrategy(get_store(), sink=get_event_sink())


@lru_cache
def get_dispatcher() -> AutomationDispatcher:
    return AutomationDispatcher(get_automation_strategy(), get_code_management())


@lru_cache
def get_intake_service() -> WebhookIntakeService:
    return WebhookIntakeService(get_job_queue(), max_retries=settings.webhook_max_retries)


@lru_cache
def get_webhook_processor() -> WebhookJobProcessor:
    return WebhookJobProcessor(get_access_store(), get_dispatcher())


@lru_cache
def get_webhook_worker() -> WebhookWorker:
    return WebhookWorker(
        get_job_queue(),
        get_webhook_processor(),
        sink=get_event_sink(),
        poll_interval_seconds=settings.worker_poll_interval_seconds,
    )


@lru_cache
def get_enriched_pull_requests_service() -> EnrichedPullRequestsService:
    store = get_store()
    return EnrichedPullRequestsService(
        pull_requests=store,
        executions=store,
        code_reviews=store,
        repositories=store,
        authorization=get_access_store(),
    )
