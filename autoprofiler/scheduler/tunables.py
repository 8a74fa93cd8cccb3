"""
autoprofiler/scheduler/tunables.py

Tunables are the knobs a policy reads on every evaluation. They are
replaced as a whole: readers never see a half-updated set.
"""

import logging
import threading
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tunables:
    profiler_enabled: bool = True
    policy_enabled: bool = True
    profiling_duration: timedelta = timedelta(seconds=30)
    profiling_cooldown: timedelta = timedelta(0)
    polling_interval: timedelta = timedelta(seconds=5)
    refresh_interval: timedelta = timedelta(seconds=5)

    # Resource threshold in percent; None for policies without one
    threshold: Optional[float] = None

    # Share of wall-clock time spent profiling (random policy only)
    overhead: float = 0.0

    @property
    def enabled(self) -> bool:
        return self.profiler_enabled and self.policy_enabled

    def with_changes(self, **changes) -> "Tunables":
        return replace(self, **changes)


class TunablesHolder:
    """Copy-on-write holder. `current` is a plain attribute read."""

    def __init__(self, initial: Tunables):
        self.current = initial
        self._lock = threading.Lock()

    def swap(self, new: Tunables) -> bool:
        """Replace the tunables. Returns True when any field differed."""
        with self._lock:
            changed = new != self.current
            if changed:
                self.current = new
        return changed
