"""Global hotkeys for the paced typist daemon."""

import logging
from pynput import keyboard
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class HotkeyListener:
    """Listens for the type-clipboard, pause/resume toggle and stop shortcuts.

    Shortcuts use pynput's hotkey syntax, e.g. ``"<ctrl>+<shift>+w"``.
    A shortcut set to None is not registered.
    """

    def __init__(
        self,
        on_type_clipboard: Callable[[], None],
        on_toggle_pause: Callable[[], None],
        on_stop: Callable[[], None],
        type_clipboard: Optional[str] = "<ctrl>+<shift>+w",
        toggle_pause: Optional[str] = "<ctrl>+<shift>+p",
        stop: Optional[str] = "<ctrl>+<shift>+x",
    ):
        self._bindings = {}
        for combo, callback in (
            (type_clipboard, on_type_clipboard),
            (toggle_pause, on_toggle_pause),
            (stop, on_stop),
        ):
            if not combo:
                continue
            if combo in self._bindings:
                logger.warning("Hotkey %s bound twice, keeping the first binding", combo)
                continue
            self._bindings[combo] = self._guard(combo, callback)
        self._listener: Optional[keyboard.GlobalHotKeys] = None

    @property
    def bindings(self) -> list[str]:
        return list(self._bindings)

    @staticmethod
    def _guard(combo: str, callback: Callable[[], None]) -> Callable[[], None]:
        # An exception inside a pynput callback stops the listener thread
        def handler():
            try:
                callback()
            except Exception:
                logger.exception("Hotkey %s handler failed", combo)
        return handler

    def start(self) -> None:
        """Start listening for hotkeys."""
        if not self._bindings:
            return
        self._listener = keyboard.GlobalHotKeys(self._bindings)
        self._listener.start()

    def stop(self) -> None:
        """Stop listening."""
        if self._listener:
            self._listener.stop()
            self._listener = None

    def join(self) -> None:
        """Wait for listener thread to finish."""
        if self._listener:
            self._listener.join()
