"""
autoprofiler/observer/sinks.py

Purpose:
    Destinations for telemetry flowing through the EventBus.

Standards:
    - FileSink decouples emission from disk writes with an asyncio queue.
    - LogSink maps event levels onto the logging module.
"""

import logging
import asyncio
from pathlib import Path
from typing import Optional

from .events import TelemetryEvent, EventLevel

log = logging.getLogger("observer.sinks")

_LEVELS = {
    EventLevel.DEBUG: logging.DEBUG,
    EventLevel.INFO: logging.INFO,
    EventLevel.WARNING: logging.WARNING,
    EventLevel.ERROR: logging.ERROR,
    EventLevel.CRITICAL: logging.CRITICAL,
}


class FileSink:
    """
    Writes events as NDJSON (Newline Delimited JSON).
    Uses a background worker to prevent I/O blocking the main loop.
    """
    def __init__(self, filepath: str):
        self.path = Path(filepath)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._queue: asyncio.Queue[TelemetryEvent] = asyncio.Queue()
        self._worker_task: Optional[asyncio.Task] = None
        self._keep_running = False

    async def start(self):
        """Start the background writer task."""
        self._keep_running = True
        self._worker_task = asyncio.create_task(self._process_queue())
        log.info(f"FileSink writer started for {self.path}")

    async def stop(self):
        """Flush and stop the writer."""
        self._keep_running = False
        if self._worker_task:
            await self._queue.join()  # Wait for pending items
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
        log.info("FileSink writer stopped.")

    async def handle(self, event: TelemetryEvent):
        """Subscriber callback (Async)."""
        await self._queue.put(event)

    async def _process_queue(self):
        try:
            with open(self.path, "a", encoding="utf-8") as f:
                while self._keep_running or not self._queue.empty():
                    try:
                        # Wake up periodically to check the stop flag
                        event = await asyncio.wait_for(self._queue.get(), timeout=1.0)
                    except asyncio.TimeoutError:
                        continue
                    try:
                        f.write(event.to_json() + "\n")
                        f.flush()
                    except OSError as e:
                        log.error(f"FileSink Write Error: {e}")
                    finally:
                        self._queue.task_done()
        except OSError as e:
            log.critical(f"FileSink Worker Crashed: {e}")


class LogSink:
    """Forwards telemetry to the logging module."""

    def __init__(self, logger_name: str = "autoprofiler.telemetry"):
        self._logger = logging.getLogger(logger_name)

    def handle(self, event: TelemetryEvent):
        self._logger.log(
            _LEVELS.get(event.level, logging.INFO),
            f"[{event.source}] {event.type.value}: {event.payload}",
        )
