"""Shared helpers for the agent."""
#
# KEY MODULES:
# - **async_helpers.py**: task creation that logs instead of swallowing errors
# - **delay.py**: cancellable sleep shared by every periodic loop
# - **hashing.py**: stable string hashes for deterministic sample selection
#
from .async_helpers import create_safe_task
from .delay import DelaySource, to_seconds
from .hashing import djb2, normalized_hash

__all__ = ["create_safe_task", "DelaySource", "to_seconds", "djb2", "normalized_hash"]
