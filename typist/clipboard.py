"""Clipboard and window-visibility collaborators."""

import logging
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class ClipboardReader(Protocol):
    def read_text(self) -> str:
        """Return the clipboard text, or an empty string."""


class WindowControl(Protocol):
    def hide_all_windows(self) -> None:
        """Hide this application's own windows so focus returns to the target."""


class PyperclipClipboard:
    """Reads the system clipboard through pyperclip."""

    def read_text(self) -> str:
        import pyperclip
        try:
            text = pyperclip.paste()
        except pyperclip.PyperclipException as e:
            logger.warning("Clipboard unavailable: %s", e)
            return ""
        return text or ""


class CallbackWindowControl:
    """Window control that delegates to an optional host callback.

    A headless daemon has no windows of its own, so the default is a no-op.
    """

    def __init__(self, hide: Optional[Callable[[], None]] = None):
        self._hide = hide

    def hide_all_windows(self) -> None:
        if self._hide is not None:
            self._hide()
