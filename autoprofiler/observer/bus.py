"""
autoprofiler/observer/bus.py

Purpose:
    Asynchronous publish/subscribe bus for agent telemetry.
    One instance is created at wiring time and passed to every component
    that reports events; there is no module-level instance.

Standards:
    - Handles both sync and async subscribers.
    - Failures in listeners never propagate to the emitter.
"""

from __future__ import annotations
import logging
import inspect
import asyncio
from typing import Callable, List, Dict, Union, Awaitable
from collections import defaultdict

from .events import TelemetryEvent, EventType

log = logging.getLogger("observer.bus")

# Subscriber can be a sync function or an async coroutine
Subscriber = Union[
    Callable[[TelemetryEvent], None],
    Callable[[TelemetryEvent], Awaitable[None]]
]


class EventBus:

    def __init__(self):
        # Subscribers map: EventType -> List[Subscriber]
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)

    def subscribe(self, event_type: EventType | str, callback: Subscriber):
        """
        Register a callback for a specific event type.
        Use "*" for all events.
        """
        key = event_type.value if isinstance(event_type, EventType) else event_type
        self._subscribers[key].append(callback)
        func_name = getattr(callback, "__name__", str(callback))
        log.debug(f"Subscribed {func_name} to {key}")

    def has_subscribers(self, event_type: EventType | str) -> bool:
        key = event_type.value if isinstance(event_type, EventType) else event_type
        return bool(self._subscribers.get(key))

    async def emit(self, event: TelemetryEvent):
        """
        Publish an event to all interested subscribers.
        Awaits all async subscribers concurrently.
        """
        specific = self._subscribers.get(event.type.value, [])
        global_subs = self._subscribers.get("*", [])

        tasks = [self._invoke(callback, event) for callback in specific + global_subs]
        if tasks:
            # _invoke handles error catching internally
            await asyncio.gather(*tasks)

    async def _invoke(self, callback: Subscriber, event: TelemetryEvent):
        try:
            if inspect.iscoroutinefunction(callback):
                await callback(event)
            else:
                # Sync subscribers must stay fast and non-blocking.
                callback(event)
        except Exception as e:
            func_name = getattr(callback, "__name__", str(callback))
            log.error(f"EventBus Subscriber Error ({func_name}): {e}", exc_info=True)

    def clear(self):
        """Reset subscribers."""
        self._subscribers.clear()
