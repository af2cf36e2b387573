"""Event sink implementations for exporting review pipeline events."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import requests

from reviewhub.core.config import settings

_logger = logging.getLogger(__name__)


class EventSink(Protocol):
    """Abstract sink contract."""

    def publish(self, event: dict) -> None:  # pragma: no cover - interface
        ...

    def close(self) -> None:  # pragma: no cover - interface
        ...


class NullEventSink:
    """No-op sink used when telemetry is disabled."""

    def publish(self, event: dict) -> None:
        return None

    def close(self) -> None:
        return None


class FileEventSink:
    """Persists events to newline-delimited JSON for downstream ingestion."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def publish(self, event: dict) -> None:
        payload = json.dumps(event, separators=(",", ":"), sort_keys=True, default=str)
        with self._lock, self.path.open("a", encoding="utf-8") as handle:
            handle.write(payload)
            handle.write("\n")

    def close(self) -> None:
        return None


class HttpEventSink:
    """Posts batches of events as a JSON array to a collector endpoint.

    Undelivered events are retried with the next batch. At most
    ``max_buffered`` events are held; the oldest are dropped past that.
    """

    def __init__(
        self,
        url: str,
        *,
        batch_size: int = 25,
        max_buffered: int | None = None,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self._url = url
        self._batch_size = max(batch_size, 1)
        self._max_buffered = max(max_buffered or self._batch_size * 10, self._batch_size)
        self._timeout = timeout
        self._buffer: list[dict] = []
        self._since_attempt = 0
        self._lock = threading.Lock()
        self._session = session or requests.Session()

    def publish(self, event: dict) -> None:
        row = dict(event)
        row.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        with self._lock:
            self._buffer.append(row)
            overflow = len(self._buffer) - self._max_buffered
            if overflow > 0:
                del self._buffer[:overflow]
                _logger.warning(
                    "Dropped %d undelivered events for %s", overflow, self._url, extra={"max_buffered": self._max_buffered}
                )
            # One delivery attempt per batch_size publishes, even while the collector is down.
            self._since_attempt += 1
            if self._since_attempt >= self._batch_size:
                self._flush_locked()

    def close(self) -> None:
        with self._lock:
            self._flush_locked()
        self._session.close()

    def _flush_locked(self) -> None:
        self._since_attempt = 0
        if not self._buffer:
            return
        batch = list(self._buffer)
        body = json.dumps(batch, separators=(",", ":"), default=str)
        try:
            response = self._session.post(
                self._url,
                data=body.encode("utf-8"),
                headers={"Content-Type": "application/json"},
                timeout=self._timeout,
            )
        except requests.RequestException:
            _logger.exception("Failed to deliver %d events to %s", len(batch), self._url)
            return
        if response.status_code >= 400:
            _logger.error(
                "Event collector rejected batch (%s): %s", response.status_code, response.text
            )
            return
        del self._buffer[: len(batch)]


def sink_from_settings() -> EventSink:
    """Factory to construct an event sink based on app settings."""

    backend = settings.events_backend.lower().strip()
    if backend == "file":
        return FileEventSink(settings.events_path)
    if backend == "http":
        if not settings.events_url:
            raise ValueError("HTTP events backend requires REVIEWHUB_EVENTS_URL")
        return HttpEventSink(
            settings.events_url,
            batch_size=settings.events_batch_size,
            max_buffered=settings.events_max_buffered,
        )
    if backend in {"off", "none", "disabled"}:
        return NullEventSink()
    raise ValueError(f"Unsupported events backend: {settings.events_backend}")
