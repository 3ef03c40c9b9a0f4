"""Keystroke injection backends and the adapter the engine talks to.

Each ``KeyInjector`` owns the escaping rules of its mechanism; callers pass
plain text and ``ControlToken`` values only. ``InjectorAdapter`` bounds every
call with a timeout and turns failures into a ``False`` return so the pacing
loop always continues.
"""

import logging
import subprocess
import sys
import threading
from abc import ABC, abstractmethod

from typist.pacer import ControlToken

logger = logging.getLogger(__name__)


class KeyInjector(ABC):
    """Delivers keystrokes to the foreground application. Swappable per OS."""

    name = "base"

    @abstractmethod
    def type_text(self, text: str) -> None:
        """Type a literal batch of characters."""
        pass

    @abstractmethod
    def press_key(self, token: ControlToken) -> None:
        """Press and release a structural key."""
        pass


class PynputInjector(KeyInjector):
    """Cross-platform injection through pynput's keyboard controller."""

    name = "pynput"

    def __init__(self):
        from pynput.keyboard import Controller, Key
        self._keyboard = Controller()
        self._keys = {
            ControlToken.ENTER: Key.enter,
            ControlToken.TAB: Key.tab,
        }

    def type_text(self, text: str) -> None:
        self._keyboard.type(text)

    def press_key(self, token: ControlToken) -> None:
        key = self._keys[token]
        self._keyboard.press(key)
        self._keyboard.release(key)


# SendKeys treats these as modifiers or grouping; wrap each in braces
_SENDKEYS_SPECIAL = set("{}+^%~()[]")


def escape_sendkeys(text: str) -> str:
    """Escape SendKeys metacharacters so ``text`` is typed literally."""
    return "".join("{%s}" % ch if ch in _SENDKEYS_SPECIAL else ch for ch in text)


class SendKeysInjector(KeyInjector):
    """Windows injection via PowerShell and System.Windows.Forms.SendKeys."""

    name = "sendkeys"

    def __init__(self, timeout: float = 20.0):
        self.timeout = timeout

    def type_text(self, text: str) -> None:
        self._send_wait(escape_sendkeys(text))

    def press_key(self, token: ControlToken) -> None:
        self._send_wait("{%s}" % token.value)

    def _send_wait(self, keys: str) -> None:
        # Single quotes are doubled inside a PowerShell string literal
        literal = keys.replace("'", "''")
        script = (
            "Add-Type -AssemblyName System.Windows.Forms; "
            f"[System.Windows.Forms.SendKeys]::SendWait('{literal}');"
        )
        subprocess.run(
            ["powershell", "-NoProfile", "-WindowStyle", "Hidden", "-Command", script],
            capture_output=True, timeout=self.timeout, check=True,
        )


def escape_applescript(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


# osascript key codes
KEY_RETURN = 36
KEY_TAB = 48


class OsascriptInjector(KeyInjector):
    """macOS injection via AppleScript System Events."""

    name = "osascript"

    KEY_CODES = {
        ControlToken.ENTER: KEY_RETURN,
        ControlToken.TAB: KEY_TAB,
    }

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    def type_text(self, text: str) -> None:
        self._run(f'tell application "System Events" to keystroke "{escape_applescript(text)}"')

    def press_key(self, token: ControlToken) -> None:
        self._run(f'tell application "System Events" to key code {self.KEY_CODES[token]}')

    def _run(self, script: str) -> None:
        subprocess.run(
            ["osascript", "-e", script],
            capture_output=True, timeout=self.timeout, check=True,
        )


class XdotoolInjector(KeyInjector):
    """X11 injection via xdotool."""

    name = "xdotool"

    KEY_NAMES = {
        ControlToken.ENTER: "Return",
        ControlToken.TAB: "Tab",
    }

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    def type_text(self, text: str) -> None:
        # "--" stops option parsing so text starting with "-" is typed as-is
        self._run(["xdotool", "type", "--delay", "0", "--", text])

    def press_key(self, token: ControlToken) -> None:
        self._run(["xdotool", "key", self.KEY_NAMES[token]])

    def _run(self, args: list[str]) -> None:
        subprocess.run(args, capture_output=True, timeout=self.timeout, check=True)


BACKENDS = {
    "pynput": PynputInjector,
    "sendkeys": SendKeysInjector,
    "osascript": OsascriptInjector,
    "xdotool": XdotoolInjector,
}


def create_injector(backend: str = "pynput", timeout: float = 20.0) -> KeyInjector:
    """Build a backend by name. "auto" picks the native mechanism for the OS."""
    if backend == "auto":
        if sys.platform == "win32":
            backend = "sendkeys"
        elif sys.platform == "darwin":
            backend = "osascript"
        else:
            backend = "pynput"
    if backend not in BACKENDS:
        raise ValueError(f"unknown injector backend: {backend}")
    if backend == "pynput":
        return PynputInjector()
    return BACKENDS[backend](timeout=timeout)


class InjectorAdapter:
    """Best-effort, time-bounded dispatch of one instruction payload."""

    def __init__(self, injector: KeyInjector, timeout: float = 20.0):
        self.injector = injector
        self.timeout = timeout
        self._stuck = None

    def dispatch(self, payload) -> bool:
        """Deliver a text batch or control token. Returns True on success.

        Never raises: failures and timeouts are logged and reported as False.
        A call that times out is abandoned on its helper thread, not retried.
        Later payloads are skipped, not sent, until that thread finishes.
        """
        if not payload:
            return True

        if self._stuck is not None:
            if self._stuck.is_alive():
                logger.error("Injection skipped, earlier call still running (%s): %r",
                             self.injector.name, payload)
                return False
            self._stuck = None

        outcome = {}

        def _call():
            try:
                if isinstance(payload, ControlToken):
                    self.injector.press_key(payload)
                else:
                    self.injector.type_text(payload)
                outcome["ok"] = True
            except Exception as e:
                outcome["error"] = e

        worker = threading.Thread(target=_call, daemon=True)
        worker.start()
        worker.join(self.timeout)

        if worker.is_alive():
            self._stuck = worker
            logger.error("Injection timed out after %.1fs (%s): %r",
                         self.timeout, self.injector.name, payload)
            return False
        if "error" in outcome:
            logger.error("Injection failed (%s): %r: %s",
                         self.injector.name, payload, outcome["error"])
            return False
        return True
