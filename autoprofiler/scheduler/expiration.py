"""
autoprofiler/scheduler/expiration.py

Expiration policies decide when a scheduling policy is done for good.
An expired policy never starts another capture; its runner stops.
"""

import logging
import threading
import time
from datetime import timedelta
from typing import Callable

logger = logging.getLogger(__name__)


class ExpirationPolicy:
    """Base class. Never expires."""

    @property
    def expired(self) -> bool:
        return False

    def record_start(self) -> None:
        """Called by the runner after each START that actually started a capture."""


class ProcessExpirationPolicy(ExpirationPolicy):
    """Lives as long as the process."""


class LimitedExpirationPolicy(ExpirationPolicy):
    """
    Expires after `count` captures were started.

    The count is kept in memory only; a restarted process starts over.
    """

    def __init__(self, count: int):
        if count < 0:
            raise ValueError(f"count must not be negative, got {count}")
        self.count = count
        self._started = 0
        self._lock = threading.Lock()

    @property
    def remaining(self) -> int:
        return max(self.count - self._started, 0)

    @property
    def expired(self) -> bool:
        return self._started >= self.count

    def record_start(self) -> None:
        with self._lock:
            self._started += 1
            started = self._started
        logger.debug(f"[LimitedExpiration] {started}/{self.count} starts used")


class TimedExpirationPolicy(ExpirationPolicy):
    """Expires once `lifetime` has elapsed since construction."""

    def __init__(self, lifetime: timedelta, clock: Callable[[], float] = time.monotonic):
        self.lifetime = lifetime
        self._clock = clock
        self._deadline = clock() + lifetime.total_seconds()

    @property
    def expired(self) -> bool:
        return self._clock() >= self._deadline
