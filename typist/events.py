"""Lifecycle events published by the typing engine.

Listeners are called synchronously, in subscription order, on the thread
that emits the event. Delivery is fire-and-forget: a listener that raises is
logged and skipped, it never reaches the engine.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from typist.jobs import Job

logger = logging.getLogger(__name__)


class Event(str, Enum):
    QUEUED = "queued"
    STARTED = "started"
    PROGRESS = "progress"
    JOB_DONE = "job-done"
    JOB_ERROR = "job-error"
    PAUSED = "paused"
    RESUMED = "resumed"
    STOPPED = "stopped"
    IDLE = "idle"


@dataclass(frozen=True)
class Progress:
    job: Job
    payload: Any  # str batch or ControlToken


@dataclass(frozen=True)
class JobError:
    job: Job
    error: BaseException


Listener = Callable[[Any], None]
CatchAllListener = Callable[[Event, Any], None]


class EventChannel:
    """Typed publish/subscribe channel."""

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners = {event: [] for event in Event}
        self._catch_all = []

    def subscribe(self, event: Event, callback: Listener) -> Callable[[], None]:
        """Register ``callback(payload)`` for one event. Returns an unsubscribe function."""
        event = Event(event)
        with self._lock:
            self._listeners[event].append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._listeners[event]:
                    self._listeners[event].remove(callback)
        return unsubscribe

    def subscribe_all(self, callback: CatchAllListener) -> Callable[[], None]:
        """Register ``callback(event, payload)`` for every event."""
        with self._lock:
            self._catch_all.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._catch_all:
                    self._catch_all.remove(callback)
        return unsubscribe

    def emit(self, event: Event, payload: Any = None) -> None:
        with self._lock:
            listeners = list(self._listeners[event])
            catch_all = list(self._catch_all)

        for callback in listeners:
            try:
                callback(payload)
            except Exception:
                logger.exception("Listener for %s failed", event.value)
        for callback in catch_all:
            try:
                callback(event, payload)
            except Exception:
                logger.exception("Listener for %s failed", event.value)


def describe(event: Event, payload: Any, preview_chars: int = 40) -> dict:
    """Flatten an event into a JSON-friendly dict."""
    data = {"event": event.value}
    if isinstance(payload, Job):
        data["job"] = payload.to_dict()
        data["preview"] = payload.preview(preview_chars)
    elif isinstance(payload, Progress):
        data["job"] = payload.job.id
        data["payload"] = str(getattr(payload.payload, "value", payload.payload))
    elif isinstance(payload, JobError):
        data["job"] = payload.job.id
        data["error"] = str(payload.error)
    return data
