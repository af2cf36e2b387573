"""Application configuration via environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service-wide configuration options."""

    api_v1_prefix: str = "/v1"
    service_base_url: str = "http://localhost:8000"
    log_level: str = "INFO"
    redis_url: str = "redis://localhost:6379/0"
    webhook_queue_key: str = "webhooks:queue"
    webhook_dead_letter_key: str = "webhooks:dead_letter"
    webhook_max_retries: int = 1
    worker_poll_interval_seconds: float = 1.0
    dashboard_default_limit: int = 30
    dashboard_max_limit: int = 100
    github_token: str | None = None
    github_base_url: str | None = None
    events_backend: str = "off"
    events_path: str = "data/review_events.jsonl"
    events_url: str | None = None
    events_batch_size: int = 25
    events_max_buffered: int = 1000
    otel_enabled: bool = False
    otel_exporter: str = "console"
    otel_otlp_endpoint: str | None = None

    model_config = SettingsConfigDict(env_prefix="reviewhub_", env_file=".env", extra="ignore")


settings = Settings()
