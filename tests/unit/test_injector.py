"""Tests for injection backends and the adapter in typist/injector.py."""

import sys
import threading
from unittest.mock import MagicMock, patch

import pytest

from typist.injector import (
    InjectorAdapter, KeyInjector, OsascriptInjector, PynputInjector,
    SendKeysInjector, XdotoolInjector, create_injector, escape_applescript,
    escape_sendkeys, KEY_RETURN, KEY_TAB,
)
from typist.pacer import ControlToken


class FakeInjector(KeyInjector):
    name = "fake"

    def __init__(self, error=None, block=None):
        self.typed = []
        self.keys = []
        self.error = error
        self.block = block

    def type_text(self, text):
        if self.block is not None:
            self.block.wait(5)
        if self.error:
            raise self.error
        self.typed.append(text)

    def press_key(self, token):
        self.keys.append(token)


class TestInjectorAdapter:

    def test_text_goes_to_type_text(self):
        injector = FakeInjector()
        assert InjectorAdapter(injector).dispatch("hello") is True
        assert injector.typed == ["hello"]

    def test_control_token_goes_to_press_key(self):
        injector = FakeInjector()
        assert InjectorAdapter(injector).dispatch(ControlToken.TAB) is True
        assert injector.keys == [ControlToken.TAB]
        assert injector.typed == []

    def test_empty_payload_skipped(self):
        injector = FakeInjector()
        assert InjectorAdapter(injector).dispatch("") is True
        assert injector.typed == []

    def test_failure_is_logged_not_raised(self, caplog):
        injector = FakeInjector(error=OSError("no display"))
        assert InjectorAdapter(injector).dispatch("hello") is False
        assert "Injection failed" in caplog.text
        assert "no display" in caplog.text

    def test_hung_call_times_out(self, caplog):
        release = threading.Event()
        injector = FakeInjector(block=release)
        try:
            assert InjectorAdapter(injector, timeout=0.05).dispatch("hello") is False
        finally:
            release.set()
        assert "timed out" in caplog.text

    def test_payloads_skipped_while_hung_call_runs(self, caplog):
        release = threading.Event()
        injector = FakeInjector(block=release)
        adapter = InjectorAdapter(injector, timeout=0.05)

        assert adapter.dispatch("a") is False
        assert adapter.dispatch("b") is False
        assert adapter.dispatch(ControlToken.ENTER) is False
        assert "earlier call still running" in caplog.text

        hung = adapter._stuck
        release.set()
        hung.join(5)

        # Late text lands first, the skipped payloads never do
        assert adapter.dispatch("c") is True
        assert injector.typed == ["a", "c"]
        assert injector.keys == []
        assert adapter._stuck is None


class TestSendKeys:

    def test_escapes_metacharacters(self):
        assert escape_sendkeys("a{b}+c") == "a{{}b{}}{+}c"
        assert escape_sendkeys("50% (max) ~[x]^") == "50{%} {(}max{)} {~}{[}x{]}{^}"

    def test_plain_text_unchanged(self):
        assert escape_sendkeys("Hello, world.") == "Hello, world."

    def test_type_text_builds_powershell_command(self):
        with patch("typist.injector.subprocess.run") as mock_run:
            SendKeysInjector(timeout=3).type_text("it's {x}")

        args = mock_run.call_args[0][0]
        assert args[0] == "powershell"
        assert "SendWait('it''s {{}x{}}')" in args[-1]
        assert mock_run.call_args[1]["timeout"] == 3
        assert mock_run.call_args[1]["check"] is True

    def test_enter_is_not_escaped(self):
        with patch("typist.injector.subprocess.run") as mock_run:
            SendKeysInjector().press_key(ControlToken.ENTER)
        assert "SendWait('{ENTER}')" in mock_run.call_args[0][0][-1]


class TestOsascript:

    def test_escapes_quotes_and_backslashes(self):
        assert escape_applescript('say "hi" \\o/') == 'say \\"hi\\" \\\\o/'

    def test_keystroke(self):
        with patch("typist.injector.subprocess.run") as mock_run:
            OsascriptInjector().type_text('a"b')
        script = mock_run.call_args[0][0][2]
        assert script == 'tell application "System Events" to keystroke "a\\"b"'

    def test_key_codes(self):
        with patch("typist.injector.subprocess.run") as mock_run:
            OsascriptInjector().press_key(ControlToken.ENTER)
            OsascriptInjector().press_key(ControlToken.TAB)
        scripts = [c[0][0][2] for c in mock_run.call_args_list]
        assert scripts[0].endswith(f"key code {KEY_RETURN}")
        assert scripts[1].endswith(f"key code {KEY_TAB}")


class TestXdotool:

    def test_type_stops_option_parsing(self):
        with patch("typist.injector.subprocess.run") as mock_run:
            XdotoolInjector().type_text("-rf")
        assert mock_run.call_args[0][0] == ["xdotool", "type", "--delay", "0", "--", "-rf"]

    def test_key(self):
        with patch("typist.injector.subprocess.run") as mock_run:
            XdotoolInjector().press_key(ControlToken.TAB)
        assert mock_run.call_args[0][0] == ["xdotool", "key", "Tab"]


class TestPynput:

    def test_types_and_presses(self):
        keyboard_mod = MagicMock()
        pynput_mod = MagicMock(keyboard=keyboard_mod)
        with patch.dict(sys.modules, {"pynput": pynput_mod, "pynput.keyboard": keyboard_mod}):
            injector = PynputInjector()
            injector.type_text("abc")
            injector.press_key(ControlToken.ENTER)

        controller = keyboard_mod.Controller.return_value
        controller.type.assert_called_once_with("abc")
        controller.press.assert_called_once_with(keyboard_mod.Key.enter)
        controller.release.assert_called_once_with(keyboard_mod.Key.enter)


class TestCreateInjector:

    @pytest.mark.parametrize("platform,expected", [
        ("win32", SendKeysInjector),
        ("darwin", OsascriptInjector),
        ("linux", PynputInjector),
    ])
    def test_auto_picks_platform_backend(self, platform, expected):
        with patch("typist.injector.sys.platform", platform), \
             patch.object(PynputInjector, "__init__", return_value=None):
            assert isinstance(create_injector("auto"), expected)

    def test_timeout_passed_to_subprocess_backends(self):
        assert create_injector("xdotool", timeout=7).timeout == 7

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="unknown injector backend"):
            create_injector("telepathy")
