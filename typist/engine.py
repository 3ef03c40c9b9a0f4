"""Typing engine: drains the job queue through the pacer and the injector.

One worker thread consumes jobs; producers may enqueue from any thread.
State shared between them (running/paused flags, current job, state) is
guarded by ``self._lock``. Events are emitted outside the lock.

Pause semantics: the pause flag is checked before every instruction. When it
is set the rest of the current job is discarded and the job is still reported
as ``job-done``. Resuming moves on to the next queued job; the truncated
remainder is not restored.
"""

import logging
import random
import threading
import time
from enum import Enum
from typing import Callable, Optional

from typist.clipboard import ClipboardReader, WindowControl
from typist.config import ClipboardConfig, EngineConfig, clamp_wpm
from typist.events import Event, EventChannel, JobError, Progress
from typist.injector import InjectorAdapter
from typist.jobs import Job, JobQueue
from typist.pacer import pace

logger = logging.getLogger(__name__)


class RunnerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


class TypingEngine:
    """Queue of text jobs typed at a human pace."""

    def __init__(
        self,
        injector: InjectorAdapter,
        config: Optional[EngineConfig] = None,
        clipboard: Optional[ClipboardReader] = None,
        windows: Optional[WindowControl] = None,
        clipboard_config: Optional[ClipboardConfig] = None,
        events: Optional[EventChannel] = None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.injector = injector
        self.config = config or EngineConfig()
        self.clipboard = clipboard
        self.windows = windows
        self.clipboard_config = clipboard_config or ClipboardConfig()
        self.events = events or EventChannel()
        self._rng = rng or random.Random()
        self._sleep = sleep

        self._queue = JobQueue()
        self._lock = threading.Lock()
        self._state = RunnerState.IDLE
        self._running = False
        self._paused = False
        self._current: Job | None = None
        self._worker: threading.Thread | None = None

    # -- Introspection --

    @property
    def state(self) -> RunnerState:
        with self._lock:
            return self._state

    @property
    def current_job(self) -> Job | None:
        with self._lock:
            return self._current

    @property
    def is_paused(self) -> bool:
        with self._lock:
            return self._paused

    def pending(self) -> list[Job]:
        """Jobs waiting behind the current one, in processing order."""
        return self._queue.snapshot()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the worker thread to exit. Returns True if it is no longer running."""
        worker = self._worker
        if worker is not None:
            worker.join(timeout)
            return not worker.is_alive()
        return True

    # -- Speed controls --

    def set_words_per_minute(self, wpm) -> int:
        """Set typing speed for jobs started from now on. Clamped to at least 5."""
        with self._lock:
            self.config.words_per_minute = clamp_wpm(wpm, fallback=self.config.words_per_minute)
            return self.config.words_per_minute

    def set_batch_mode(self, enabled: bool) -> None:
        with self._lock:
            self.config.batch_mode = bool(enabled)

    def set_batch_sizes(self, min_size, max_size) -> tuple[int, int]:
        """Replace both batch bounds at once; max is raised to min if needed."""
        min_size = max(1, int(min_size))
        max_size = max(min_size, int(max_size))
        with self._lock:
            self.config.min_batch_size = min_size
            self.config.max_batch_size = max_size
        return min_size, max_size

    # -- Producers --

    def enqueue_text(self, text, delay: Optional[float] = None, metadata: Optional[dict] = None) -> Job | None:
        """Queue text for typing. Returns the job, or None for empty text."""
        if delay is None:
            delay = self.config.default_delay
        job = self._queue.enqueue(text, delay, metadata)
        if job is None:
            return None
        logger.debug("Queued job %d (%d chars)", job.id, len(job.text))
        self.events.emit(Event.QUEUED, job)
        self._ensure_running()
        return job

    def type_clipboard(self, delay: Optional[float] = None) -> bool:
        """Hide our windows, let focus settle, then queue the clipboard text.

        Returns True if a job was queued, False if the clipboard was empty.
        """
        if self.windows is not None and self.clipboard_config.hide_windows:
            try:
                self.windows.hide_all_windows()
            except Exception as e:
                logger.warning("Could not hide windows before typing: %s", e)

        self._sleep(self.clipboard_config.settle_delay)

        text = self.clipboard.read_text() if self.clipboard is not None else ""
        if not text:
            logger.info("Clipboard is empty, nothing to type")
            return False
        return self.enqueue_text(text, delay, {"source": "clipboard"}) is not None

    # -- Controls --

    def pause(self) -> None:
        """Stop at the next instruction boundary. An in-flight injection completes."""
        with self._lock:
            self._paused = True
            self._state = RunnerState.PAUSED
        self.events.emit(Event.PAUSED)

    def resume(self) -> None:
        with self._lock:
            if not self._paused:
                return
            self._paused = False
            if self._running:
                self._state = RunnerState.RUNNING
            else:
                self._state = RunnerState.IDLE
        self.events.emit(Event.RESUMED)
        self._ensure_running()

    def stop(self) -> None:
        """Drop every queued job and abandon the current one."""
        with self._lock:
            dropped = self._queue.clear()
            self._current = None
            self._paused = False
            self._state = RunnerState.STOPPED
        if dropped:
            logger.info("Stopped, dropped %d queued job(s)", len(dropped))
        self.events.emit(Event.STOPPED)

    # -- Runner --

    def _ensure_running(self) -> None:
        with self._lock:
            if self._paused:
                return
            if self._running:
                self._state = RunnerState.RUNNING
                return
            if not self._queue.size():
                return
            self._running = True
            self._state = RunnerState.RUNNING
            worker = threading.Thread(target=self._run, name="typist-runner", daemon=True)
            self._worker = worker
        self.events.emit(Event.STARTED)
        worker.start()

    def _run(self) -> None:
        went_idle = False
        while True:
            with self._lock:
                job = None if self._paused else self._queue.pop()
                if job is None:
                    self._running = False
                    self._current = None
                    went_idle = self._state is RunnerState.RUNNING
                    if went_idle:
                        self._state = RunnerState.IDLE
                    break
                self._current = job

            try:
                finished = self._run_job(job)
            except Exception as e:
                logger.exception("Job %d failed", job.id)
                self.events.emit(Event.JOB_ERROR, JobError(job, e))
            else:
                if finished:
                    self.events.emit(Event.JOB_DONE, job)

            with self._lock:
                if self._current is job:
                    self._current = None

        if went_idle:
            self.events.emit(Event.IDLE)

    def _pacing_for(self, job: Job) -> dict:
        """Speed settings for one job: per-job overrides, then live config."""
        wpm = job.metadata.get("wpm")
        batch_mode = job.metadata.get("batch_mode")
        with self._lock:
            config = self.config
            return {
                "words_per_minute": clamp_wpm(wpm, config.words_per_minute) if wpm else config.words_per_minute,
                "batch_mode": config.batch_mode if batch_mode is None else bool(batch_mode),
                "min_batch_size": config.min_batch_size,
                "max_batch_size": config.max_batch_size,
            }

    def _run_job(self, job: Job) -> bool:
        """Type one job. Returns False if stop() abandoned it."""
        for instruction in pace(job.text, rng=self._rng, **self._pacing_for(job)):
            with self._lock:
                if self._current is not job:
                    logger.debug("Job %d abandoned by stop", job.id)
                    return False
                if self._paused:
                    logger.info("Job %d truncated by pause", job.id)
                    return True

            self.injector.dispatch(instruction.payload)
            self.events.emit(Event.PROGRESS, Progress(job, instruction.payload))
            self._sleep(instruction.delay)
        return True
