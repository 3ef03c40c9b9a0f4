"""Job queue for the typing engine.

Thread safety: all public methods are protected by a lock since producers
(hotkey listener, control socket connections, direct callers) enqueue from
their own threads while the engine worker pops from another.
"""

import itertools
import threading
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

_job_ids = itertools.count(1)


@dataclass(frozen=True, eq=False)
class Job:
    """One block of text waiting to be typed."""
    text: str
    delay: float = 0.0  # accepted for compatibility, pacing ignores it
    metadata: Mapping = field(default_factory=dict)
    id: int = field(default_factory=lambda: next(_job_ids))
    created: float = field(default_factory=time.time)

    def __post_init__(self):
        # Freeze a private copy so producers can't mutate a queued job
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata or {})))

    @property
    def source(self) -> Optional[str]:
        return self.metadata.get("source")

    def preview(self, limit: int = 40) -> str:
        """Single-line, truncated view of the text for log output."""
        flat = self.text.replace("\n", "\\n").replace("\t", "\\t")
        if len(flat) <= limit:
            return flat
        return flat[:limit] + "..."

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "length": len(self.text),
            "delay": self.delay,
            "metadata": dict(self.metadata),
        }


class JobQueue:
    """Strict FIFO of pending jobs with a single consumer."""

    def __init__(self):
        self._lock = threading.Lock()
        self._jobs = []  # List of Job

    def enqueue(self, text, delay: float = 0.0, metadata: dict = None) -> Job | None:
        """Create a job and append it. Returns None (no-op) for empty text."""
        if not text:
            return None
        job = Job(text=str(text), delay=delay, metadata=metadata or {})
        with self._lock:
            self._jobs.append(job)
        return job

    def pop(self) -> Job | None:
        """Remove and return the oldest job, or None if the queue is empty."""
        with self._lock:
            if not self._jobs:
                return None
            return self._jobs.pop(0)

    def size(self) -> int:
        with self._lock:
            return len(self._jobs)

    def snapshot(self) -> list[Job]:
        """Return the pending jobs in processing order."""
        with self._lock:
            return list(self._jobs)

    def clear(self) -> list[Job]:
        """Remove all pending jobs. Returns the removed jobs."""
        with self._lock:
            removed = list(self._jobs)
            self._jobs.clear()
            return removed
