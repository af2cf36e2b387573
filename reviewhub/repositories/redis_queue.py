"""Redis-backed webhook job queue."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from redis import Redis
from redis.exceptions import RedisError

from reviewhub.core.errors import QueueUnavailableError
from reviewhub.models.domain import WebhookJob

_logger = logging.getLogger(__name__)


class RedisJobQueue:
    """FIFO list of job ids with one JSON record per job.

    A dequeued id is moved atomically onto an in-flight list and only leaves
    it when the job is acknowledged, requeued, or dead-lettered, so a job
    survives a worker or connection failure mid-processing.
    """

    def __init__(self, client: Redis, *, queue_key: str = "webhooks:queue", dead_letter_key: str = "webhooks:dead_letter") -> None:
        self._client = client
        self._queue_key = queue_key
        self._dead_letter_key = dead_letter_key
        self._processing_key = f"{queue_key}:processing"

    async def enqueue(self, job: WebhookJob) -> None:
        await asyncio.to_thread(self._push, self._queue_key, job, False)

    async def dequeue(self) -> Optional[WebhookJob]:
        return await asyncio.to_thread(self._pop)

    async def save(self, job: WebhookJob) -> None:
        await asyncio.to_thread(self._write, job)

    async def acknowledge(self, job: WebhookJob) -> None:
        await asyncio.to_thread(self._ack, job)

    async def requeue(self, job: WebhookJob) -> None:
        await asyncio.to_thread(self._push, self._queue_key, job, True)

    async def dead_letter(self, job: WebhookJob) -> None:
        await asyncio.to_thread(self._push, self._dead_letter_key, job, True)

    def get_job(self, job_id: str) -> Optional[WebhookJob]:
        data = self._client.get(self._job_key(job_id))
        if not data:
            return None
        return WebhookJob.model_validate_json(data)

    def pending_count(self) -> int:
        return int(self._client.llen(self._queue_key))

    def in_flight_count(self) -> int:
        return int(self._client.llen(self._processing_key))

    def list_dead_letters(self) -> list[WebhookJob]:
        ids = self._client.lrange(self._dead_letter_key, 0, -1)
        jobs = [self.get_job(job_id) for job_id in ids]
        return [job for job in jobs if job is not None]

    def restore_in_flight(self) -> int:
        """Return jobs abandoned on the in-flight list to the head of the queue."""

        restored = 0
        try:
            while self._client.lmove(self._processing_key, self._queue_key, "RIGHT", "LEFT") is not None:
                restored += 1
        except RedisError as exc:
            raise QueueUnavailableError(f"Could not restore in-flight jobs to {self._queue_key}") from exc
        if restored:
            _logger.warning("Restored %d in-flight webhook jobs", restored, extra={"queue_key": self._queue_key})
        return restored

    def _push(self, list_key: str, job: WebhookJob, release: bool) -> None:
        job.updated_at = datetime.now(timezone.utc)
        try:
            pipeline = self._client.pipeline()
            pipeline.set(self._job_key(job.job_id), job.model_dump_json())
            if release:
                pipeline.lrem(self._processing_key, 1, job.job_id)
            pipeline.rpush(list_key, job.job_id)
            pipeline.execute()
        except RedisError as exc:
            raise QueueUnavailableError(f"Could not push job {job.job_id} to {list_key}") from exc

    def _pop(self) -> Optional[WebhookJob]:
        try:
            job_id = self._client.lmove(self._queue_key, self._processing_key, "LEFT", "RIGHT")
            if job_id is None:
                return None
            job = self.get_job(job_id)
            if job is None:
                _logger.warning("Queued job %s has no stored record", job_id)
                self._client.lrem(self._processing_key, 1, job_id)
        except RedisError as exc:
            raise QueueUnavailableError(f"Could not read from {self._queue_key}") from exc
        return job

    def _ack(self, job: WebhookJob) -> None:
        job.updated_at = datetime.now(timezone.utc)
        try:
            pipeline = self._client.pipeline()
            pipeline.set(self._job_key(job.job_id), job.model_dump_json())
            pipeline.lrem(self._processing_key, 1, job.job_id)
            pipeline.execute()
        except RedisError as exc:
            raise QueueUnavailableError(f"Could not acknowledge job {job.job_id}") from exc

    def _write(self, job: WebhookJob) -> None:
        job.updated_at = datetime.now(timezone.utc)
        try:
            self._client.set(self._job_key(job.job_id), job.model_dump_json())
        except RedisError as exc:
            raise QueueUnavailableError(f"Could not save job {job.job_id}") from exc

    def _job_key(self, job_id: str) -> str:
        return f"{self._queue_key}:job:{job_id}"
