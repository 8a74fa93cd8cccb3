"""
autoprofiler/utils/delay.py

Cancellable sleep used by every periodic loop in the agent.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Optional, Union

logger = logging.getLogger(__name__)

Duration = Union[timedelta, float]


def to_seconds(duration: Duration) -> float:
    if isinstance(duration, timedelta):
        return max(duration.total_seconds(), 0.0)
    return max(float(duration), 0.0)


class DelaySource:
    """
    Sleeps for a duration unless the cancel event fires first.

    Cancellation is a normal outcome here, not an error: delay() returns
    False instead of raising so that loops unwind cleanly.
    """

    async def delay(self, duration: Duration, cancel_event: Optional[asyncio.Event] = None) -> bool:
        """Return True when the full duration elapsed, False when cancelled."""
        seconds = to_seconds(duration)
        if cancel_event is None:
            await asyncio.sleep(seconds)
            return True

        if cancel_event.is_set():
            return False

        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return True
        return False
