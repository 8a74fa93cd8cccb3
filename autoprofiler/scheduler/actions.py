"""
autoprofiler/scheduler/actions.py
What a scheduling policy asks the runner to do, and for how long.
"""

from datetime import timedelta
from enum import Enum
from typing import NamedTuple


class ProfilerAction(str, Enum):
    START_PROFILING_SESSION = "start_profiling_session"
    STANDBY = "standby"


class ScheduleEntry(NamedTuple):
    """Run `action`, then wait `duration` before the next entry."""
    duration: timedelta
    action: ProfilerAction

    def to_dict(self):
        return {"duration": self.duration.total_seconds(), "action": self.action.value}
