"""Application entrypoint for the review automation service."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from reviewhub.core.config import settings
from reviewhub.core.logging import configure_logging
from reviewhub.routers import dashboard, webhooks
from reviewhub.telemetry import configure_metrics, shutdown_metrics, collect_prometheus_metrics
from reviewhub.dependencies import get_event_sink


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    configure_metrics()
    yield
    get_event_sink().close()
    shutdown_metrics()


def create_app() -> FastAPI:
    app = FastAPI(
        title="ReviewHub",
        description="Normalizes provider webhooks, dispatches code review automations, and serves review history.",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(webhooks.router)
    app.include_router(dashboard.router)

    @app.get("/healthz", tags=["health"])
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    if settings.otel_exporter.lower().strip() == "prometheus":

        @app.get("/metrics", tags=["metrics"])
        def metrics_endpoint() -> PlainTextResponse:
            payload, content_type = collect_prometheus_metrics()
            return PlainTextResponse(payload, media_type=content_type)

    return app


app = create_app()
