"""Consume queued webhook jobs until interrupted."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal

from reviewhub.core.logging import configure_logging
from reviewhub.dependencies import get_event_sink, get_job_queue, get_webhook_worker
from reviewhub.telemetry import configure_metrics, shutdown_metrics

_logger = logging.getLogger(__name__)


async def _run(once: bool) -> None:
    # Jobs left in flight by a previous worker process go back on the queue.
    await asyncio.to_thread(get_job_queue().restore_in_flight)
    worker = get_webhook_worker()
    if once:
        job = await worker.run_once()
        _logger.info("Processed job %s", job.job_id if job else None)
        return
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)
    await worker.run_forever(stop)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the webhook worker")
    parser.add_argument("--once", action="store_true", help="Process at most one job and exit")
    args = parser.parse_args()

    configure_logging()
    configure_metrics()
    try:
        asyncio.run(_run(args.once))
    finally:
        get_event_sink().close()
        shutdown_metrics()


if __name__ == "__main__":
    main()
