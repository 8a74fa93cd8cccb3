"""
Resource Usage Signals (autoprofiler/monitoring/resources.py)

PURPOSE:
Feeds the resource threshold policies with averaged CPU and memory usage,
both as percentages (25.5 means 25.5%).

KEY CONCEPTS:
- **RollingAverage**: fixed-size window of recent readings
- **PsutilResourceUsageSource**: samples psutil on a cadence and keeps one
  rolling average per signal
- **MemInfoMemoryProvider**: alternative memory reading taken from
  /proc/meminfo (MemTotal vs MemAvailable)
"""

import asyncio
import logging
from collections import deque
from pathlib import Path
from typing import Deque, Optional, Protocol, Tuple, Union

import psutil

from autoprofiler.errors import ResourceSignalUnavailableError
from autoprofiler.utils.delay import DelaySource

logger = logging.getLogger(__name__)


class ResourceUsageSource(Protocol):
    def get_average_cpu_usage(self) -> float:
        ...

    def get_average_memory_usage(self) -> float:
        ...


class MemoryProvider(Protocol):
    def get_next_value(self) -> float:
        ...


class RollingAverage:
    """Average of the last `size` values. 0.0 until the first value arrives."""

    def __init__(self, size: int):
        if size <= 0:
            raise ValueError(f"Window size must be positive, got {size}")
        self._values: Deque[float] = deque(maxlen=size)

    def add(self, value: float) -> None:
        self._values.append(value)

    @property
    def count(self) -> int:
        return len(self._values)

    @property
    def average(self) -> float:
        values = list(self._values)
        if not values:
            return 0.0
        return sum(values) / len(values)


class PsutilMemoryProvider:
    def get_next_value(self) -> float:
        return float(psutil.virtual_memory().percent)


def parse_meminfo_line(line: str) -> Optional[Tuple[str, int, Optional[str]]]:
    """
    Parse one /proc/meminfo line such as "MemTotal:       16318412 kB".

    Returns (name, value, unit) or None when the line doesn't fit the format.
    """
    name, sep, rest = line.partition(":")
    if not sep or not name.strip():
        return None

    tokens = rest.split()
    if len(tokens) != 2:
        return None

    try:
        value = int(tokens[0])
    except ValueError:
        return None
    if value < 0:
        return None

    return name.strip(), value, tokens[1]


class MemInfoMemoryProvider:
    """Memory usage computed from /proc/meminfo on Linux."""

    TOTAL = "MemTotal"
    AVAILABLE = "MemAvailable"

    def __init__(self, path: Union[str, Path] = "/proc/meminfo"):
        self.path = Path(path)

    def read_metrics(self) -> Tuple[int, int]:
        """Return (total, available); (0, 0) when either is missing."""
        total: Optional[Tuple[int, Optional[str]]] = None
        available: Optional[Tuple[int, Optional[str]]] = None

        with open(self.path, "r", encoding="utf-8") as f:
            for line in f:
                parsed = parse_meminfo_line(line)
                if parsed is None:
                    logger.debug(f"[MemInfo] Skipping unparsable line: {line.rstrip()}")
                    continue

                name, value, unit = parsed
                if name.lower() == self.TOTAL.lower():
                    total = (value, unit)
                elif name.lower() == self.AVAILABLE.lower():
                    available = (value, unit)

                if total and available and (total[1] or "").lower() == (available[1] or "").lower():
                    return total[0], available[0]

        logger.debug(f"[MemInfo] {self.TOTAL}/{self.AVAILABLE} not found in {self.path}")
        return 0, 0

    def get_next_value(self) -> float:
        try:
            total, available = self.read_metrics()
        except OSError as e:
            raise ResourceSignalUnavailableError(
                f"Cannot read {self.path}",
                details={"error": str(e)},
            ) from e

        logger.debug(f"[MemInfo] available/total: {available}/{total}")
        if total == 0:
            return 0.0
        return (1 - available / total) * 100


class PsutilResourceUsageSource:
    """
    Rolling CPU and memory averages fed by run().

    Readings are taken every `sampling_interval` seconds and averaged over
    `average_window` seconds. Until run() has taken a reading both averages
    are 0.0, which keeps the threshold policies in standby.
    """

    def __init__(
        self,
        sampling_interval: float = 1.0,
        average_window: float = 30.0,
        memory_provider: Optional[MemoryProvider] = None,
        delay_source: Optional[DelaySource] = None,
    ):
        if sampling_interval <= 0:
            raise ValueError("sampling_interval must be positive")
        window = max(1, int(average_window / sampling_interval))
        self.sampling_interval = sampling_interval
        self._cpu = RollingAverage(window)
        self._memory = RollingAverage(window)
        self._memory_provider = memory_provider or PsutilMemoryProvider()
        self._delay_source = delay_source or DelaySource()

    def get_average_cpu_usage(self) -> float:
        value = self._cpu.average
        logger.debug(f"[ResourceUsage] Average CPU usage: {value:.2f}%")
        return value

    def get_average_memory_usage(self) -> float:
        value = self._memory.average
        logger.debug(f"[ResourceUsage] Average memory usage: {value:.2f}%")
        return value

    def sample(self) -> None:
        """Take one reading of each signal. A failed reading is skipped."""
        try:
            self._cpu.add(float(psutil.cpu_percent(interval=None)))
        except Exception as e:
            logger.warning(f"[ResourceUsage] CPU reading failed: {e}")

        try:
            self._memory.add(self._memory_provider.get_next_value())
        except Exception as e:
            logger.warning(f"[ResourceUsage] Memory reading failed: {e}")

    async def run(self, cancel_event: asyncio.Event) -> None:
        # The first cpu_percent(None) call only primes psutil's counters.
        psutil.cpu_percent(interval=None)
        logger.info(f"[ResourceUsage] Sampling every {self.sampling_interval}s")
        while await self._delay_source.delay(self.sampling_interval, cancel_event):
            self.sample()
        logger.debug("[ResourceUsage] Sampling stopped.")


class StaticResourceUsageSource:
    """Fixed readings. Used in tests and when sampling is disabled."""

    def __init__(self, cpu: float = 0.0, memory: float = 0.0):
        self.cpu = cpu
        self.memory = memory

    def get_average_cpu_usage(self) -> float:
        return self.cpu

    def get_average_memory_usage(self) -> float:
        return self.memory
