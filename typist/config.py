"""Configuration loader for the paced typist daemon."""

import os
import yaml
from dataclasses import dataclass, field
from typing import Optional

CONFIG_PATH = os.path.expanduser("~/.paced-typist/config.yaml")

MIN_WORDS_PER_MINUTE = 5
AVERAGE_CHARS_PER_WORD = 5  # standard approximation


def clamp_wpm(value, fallback: int = 60) -> int:
    """Coerce a words-per-minute value to an int no lower than the minimum.

    Values that cannot be read as a number fall back to ``fallback``.
    """
    try:
        wpm = int(value)
    except (TypeError, ValueError):
        wpm = fallback
    return max(MIN_WORDS_PER_MINUTE, wpm)


@dataclass
class EngineConfig:
    words_per_minute: int = 60
    batch_mode: bool = True
    min_batch_size: int = 3
    max_batch_size: int = 12
    default_delay: float = 0.0  # carried on each job, not used for pacing

    def __post_init__(self):
        self.words_per_minute = clamp_wpm(self.words_per_minute)
        self.batch_mode = bool(self.batch_mode)
        self.min_batch_size = max(1, int(self.min_batch_size))
        self.max_batch_size = max(self.min_batch_size, int(self.max_batch_size))


@dataclass
class InjectorConfig:
    backend: str = "pynput"  # "pynput", "sendkeys", "osascript", "xdotool" or "auto"
    timeout: float = 20.0    # ceiling for a single injection call (seconds)


@dataclass
class ClipboardConfig:
    settle_delay: float = 0.25  # wait for focus to return before reading
    hide_windows: bool = True


@dataclass
class HotkeyConfig:
    enabled: bool = True
    type_clipboard: Optional[str] = "<ctrl>+<shift>+w"
    toggle_pause: Optional[str] = "<ctrl>+<shift>+p"
    stop: Optional[str] = "<ctrl>+<shift>+x"


@dataclass
class LoggingConfig:
    debug: bool = False
    log_events: bool = True
    preview_chars: int = 40  # how much job text to show in log lines


@dataclass
class Config:
    engine: EngineConfig = field(default_factory=EngineConfig)
    injector: InjectorConfig = field(default_factory=InjectorConfig)
    clipboard: ClipboardConfig = field(default_factory=ClipboardConfig)
    hotkeys: HotkeyConfig = field(default_factory=HotkeyConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config() -> Config:
    """Load configuration from YAML file, with defaults for missing values."""
    if os.path.exists(CONFIG_PATH):
        with open(CONFIG_PATH, 'r') as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    # Accept the short 'wpm' key as an alias
    engine_data = dict(data.get('engine') or {})
    if 'wpm' in engine_data:
        engine_data.setdefault('words_per_minute', engine_data.pop('wpm'))

    return Config(
        engine=EngineConfig(**engine_data),
        injector=InjectorConfig(**(data.get('injector') or {})),
        clipboard=ClipboardConfig(**(data.get('clipboard') or {})),
        hotkeys=HotkeyConfig(**(data.get('hotkeys') or {})),
        logging=LoggingConfig(**(data.get('logging') or {})),
    )
