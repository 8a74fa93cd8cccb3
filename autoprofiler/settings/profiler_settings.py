"""
autoprofiler/settings/profiler_settings.py

Holds the last known good SettingsContract and refreshes it from a source
on a fixed cadence. Consumers read `current` without locking; refresh()
replaces the whole contract under a single lock.
"""

import asyncio
import logging
import threading
from datetime import timedelta
from typing import Optional

from autoprofiler.contracts.settings import SettingsContract
from autoprofiler.errors import ConfigurationStaleError
from autoprofiler.settings.sources import SettingsSource
from autoprofiler.utils.delay import DelaySource, Duration, to_seconds

logger = logging.getLogger(__name__)


class ProfilerSettings:

    def __init__(
        self,
        initial: SettingsContract,
        source: Optional[SettingsSource] = None,
        frequency: Duration = timedelta(seconds=5),
        delay_source: Optional[DelaySource] = None,
    ):
        self._current = initial
        self._source = source
        self._frequency = frequency
        self._delay_source = delay_source or DelaySource()
        self._swap_lock = threading.Lock()
        self._initialized = asyncio.Event()
        if source is None:
            self._initialized.set()

    @property
    def current(self) -> SettingsContract:
        return self._current

    def refresh(self) -> bool:
        """
        Fetch and swap in new settings.

        Returns True when the contract changed. Never raises: on any failure
        the previous contract stays in effect.
        """
        if self._source is None:
            return False

        try:
            fetched = self._source.fetch()
        except Exception as e:
            stale = ConfigurationStaleError(
                "Settings refresh failed, keeping last known settings",
                details={"error": str(e)},
            )
            logger.warning(f"[ProfilerSettings] {stale}")
            return False
        finally:
            self._initialized.set()

        if fetched is None:
            logger.debug("[ProfilerSettings] No settings configured by the source.")
            return False

        with self._swap_lock:
            changed = fetched != self._current
            self._current = fetched

        if changed:
            logger.info("[ProfilerSettings] Settings updated.")
        return changed

    async def wait_for_initialized(self, timeout: Duration) -> bool:
        """Best effort wait for the first fetch to finish."""
        seconds = to_seconds(timeout)
        try:
            await asyncio.wait_for(self._initialized.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            logger.debug(f"[ProfilerSettings] Settings fetch timed out after {seconds}s")
            return False

    async def run(self, cancel_event: asyncio.Event) -> None:
        """Refresh loop; returns when cancel_event is set."""
        if self._source is None:
            logger.debug("[ProfilerSettings] No settings source. Nothing to refresh.")
            return

        while not cancel_event.is_set():
            self.refresh()
            if not await self._delay_source.delay(self._frequency, cancel_event):
                break
        logger.debug("[ProfilerSettings] Refresh loop stopped.")
