"""Shared test fixtures for paced-typist tests."""

import os
import sys
import threading
from unittest.mock import MagicMock

import pytest

# Add project root to path so `typist` is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

# Mock pynput so we don't need system keyboard access
sys.modules.setdefault('pynput', MagicMock())
sys.modules.setdefault('pynput.keyboard', MagicMock())

from typist.config import EngineConfig
from typist.engine import TypingEngine


class RecordingAdapter:
    """Stands in for InjectorAdapter: records payloads, optional hook per call."""

    def __init__(self, on_dispatch=None):
        self.payloads = []
        self.on_dispatch = on_dispatch
        self._lock = threading.Lock()

    def dispatch(self, payload) -> bool:
        with self._lock:
            self.payloads.append(payload)
        if self.on_dispatch is not None:
            self.on_dispatch(payload)
        return True


class EventRecorder:
    """Catch-all listener that keeps (event name, payload) pairs."""

    def __init__(self):
        self.events = []

    def __call__(self, event, payload):
        self.events.append((event.value, payload))

    @property
    def names(self):
        return [name for name, _ in self.events]

    def payloads(self, name):
        return [payload for n, payload in self.events if n == name]


@pytest.fixture
def adapter():
    return RecordingAdapter()


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def make_engine(recorder):
    """Build an engine that never really sleeps and records every event."""
    sleeps = []

    def _make(adapter, **kwargs):
        kwargs.setdefault("config", EngineConfig())
        kwargs.setdefault("sleep", sleeps.append)
        engine = TypingEngine(adapter, **kwargs)
        engine.events.subscribe_all(recorder)
        engine.sleeps = sleeps
        return engine
    return _make


@pytest.fixture
def sample_config_dict():
    """Minimal valid config dict matching config.yaml.example structure."""
    return {
        "engine": {"words_per_minute": 90, "batch_mode": True},
        "injector": {"backend": "pynput"},
        "clipboard": {"settle_delay": 0.25},
        "hotkeys": {"type_clipboard": "<ctrl>+<shift>+w"},
        "logging": {"debug": False},
    }


@pytest.fixture
def tmp_config_file(tmp_path, sample_config_dict):
    """Write a temporary config YAML file and return its path."""
    import yaml
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.dump(sample_config_dict))
    return str(config_path)
