"""Queue consumer applying the webhook retry and dead-letter policy."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from reviewhub.core.errors import QueueUnavailableError
from reviewhub.models.domain import JobStatus, WebhookJob
from reviewhub.repositories.redis_queue import RedisJobQueue
from reviewhub.services.webhook_processing import WebhookJobProcessor
from reviewhub.telemetry import EventSink, NullEventSink

_logger = logging.getLogger(__name__)


class WebhookWorker:
    """Pops queued webhook jobs and runs them through the processor."""

    def __init__(
        self,
        queue: RedisJobQueue,
        processor: WebhookJobProcessor,
        *,
        sink: EventSink | None = None,
        poll_interval_seconds: float = 1.0,
    ) -> None:
        self._queue = queue
        self._processor = processor
        self._sink = sink or NullEventSink()
        self._poll_interval = poll_interval_seconds

    async def run_once(self) -> Optional[WebhookJob]:
        job = await self._queue.dequeue()
        if job is None:
            return None
        job.status = JobStatus.PROCESSING
        await self._queue.save(job)
        try:
            await self._processor.process(job)
        except Exception as exc:
            await self._handle_failure(job, exc)
            return job
        job.status = JobStatus.COMPLETED
        job.last_error = None
        await self._queue.acknowledge(job)
        return job

    async def run_forever(self, stop: asyncio.Event) -> None:
        while not stop.is_set():
            try:
                job = await self.run_once()
            except QueueUnavailableError:
                # The job, if any, stays on the in-flight list.
                _logger.exception("Webhook queue unavailable; backing off")
                job = None
            if job is None:
                try:
                    await asyncio.wait_for(stop.wait(), timeout=self._poll_interval)
                except asyncio.TimeoutError:
                    continue

    async def _handle_failure(self, job: WebhookJob, exc: Exception) -> None:
        job.last_error = str(exc)
        extra = {
            "job_id": job.job_id,
            "correlation_id": job.correlation_id,
            "retry_count": job.retry_count,
            "max_retries": job.max_retries,
        }
        if job.retry_count < job.max_retries:
            job.retry_count += 1
            job.status = JobStatus.PENDING
            _logger.warning("Webhook job %s failed; requeueing", job.job_id, extra=extra, exc_info=exc)
            await self._queue.requeue(job)
            return

        job.status = JobStatus.FAILED
        _logger.error("Webhook job %s exhausted retries; dead-lettering", job.job_id, extra=extra, exc_info=exc)
        await self._queue.dead_letter(job)
        await self._publish_dead_letter(job)

    async def _publish_dead_letter(self, job: WebhookJob) -> None:
        event = {
            "event_type": "webhook_dead_lettered",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "job_id": job.job_id,
            "correlation_id": job.correlation_id,
            "platform_type": job.metadata.platform_type.value,
            "event": job.metadata.event,
            "retry_count": job.retry_count,
            "last_error": job.last_error,
        }
        try:
            await asyncio.to_thread(self._sink.publish, event)
        except Exception:
            _logger.exception("Failed to publish dead-letter event for job %s", job.job_id)
