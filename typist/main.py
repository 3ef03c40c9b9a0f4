"""Main daemon for the paced typist - ties all components together."""

import logging
import os
import signal
import sys
import threading

from typist.clipboard import CallbackWindowControl, PyperclipClipboard
from typist.config import load_config
from typist.control import CONTROL_SOCK_PATH, ControlServer
from typist.engine import RunnerState, TypingEngine
from typist.events import Event, describe
from typist.hotkey import HotkeyListener
from typist.injector import InjectorAdapter, create_injector

logger = logging.getLogger("typist")


def setup_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def make_event_logger(preview_chars: int = 40):
    """Build a catch-all event listener that logs engine lifecycle events."""
    def log_event(event: Event, payload) -> None:
        if event is Event.PROGRESS:
            logger.debug("progress job=%d %r", payload.job.id, payload.payload)
        elif event is Event.JOB_ERROR:
            logger.error("job-error job=%d: %s", payload.job.id, payload.error)
        elif event in (Event.QUEUED, Event.JOB_DONE):
            logger.info("%s job=%d source=%s %r", event.value, payload.id,
                        payload.source, payload.preview(preview_chars))
        else:
            logger.info(event.value)
    return log_event


class TypistDaemon:
    """Long-running paced typist with hotkeys and a control socket."""

    def __init__(self):
        self.config = load_config()
        setup_logging(self.config.logging.debug)

        self.adapter = InjectorAdapter(
            create_injector(self.config.injector.backend, self.config.injector.timeout),
            timeout=self.config.injector.timeout,
        )
        self.engine = TypingEngine(
            self.adapter,
            config=self.config.engine,
            clipboard=PyperclipClipboard(),
            windows=CallbackWindowControl(),
            clipboard_config=self.config.clipboard,
        )
        if self.config.logging.log_events:
            self.engine.events.subscribe_all(make_event_logger(self.config.logging.preview_chars))

        self.control_server = ControlServer(self)
        self.engine.events.subscribe_all(
            lambda event, payload: self.control_server.emit(
                describe(event, payload, self.config.logging.preview_chars)
            )
        )

        self.hotkey_listener = self._make_hotkey_listener()
        self._shutting_down = False
        self._stopped = threading.Event()

    def _make_hotkey_listener(self) -> HotkeyListener:
        hotkeys = self.config.hotkeys
        return HotkeyListener(
            on_type_clipboard=self._on_type_clipboard,
            on_toggle_pause=self._on_toggle_pause,
            on_stop=self.engine.stop,
            type_clipboard=hotkeys.type_clipboard,
            toggle_pause=hotkeys.toggle_pause,
            stop=hotkeys.stop,
        )

    # -- Hotkey handlers --

    def _on_type_clipboard(self) -> None:
        # Runs off the listener thread, type_clipboard sleeps while focus settles
        def _type():
            if self.engine.type_clipboard():
                logger.info("Typing clipboard content")
            else:
                logger.warning("Clipboard is empty, nothing to type")
        threading.Thread(target=_type, daemon=True).start()

    def _on_toggle_pause(self) -> None:
        if self.engine.state is RunnerState.PAUSED:
            self.engine.resume()
        else:
            self.engine.pause()

    # -- Control socket helpers (called by ControlServer) --

    def reload_config(self) -> None:
        old = self.config
        new = load_config()
        changed = []

        # Engine settings: update in place, next job picks them up
        if new.engine.words_per_minute != old.engine.words_per_minute:
            self.engine.set_words_per_minute(new.engine.words_per_minute)
            changed.append("engine(words_per_minute)")
        if new.engine.batch_mode != old.engine.batch_mode:
            self.engine.set_batch_mode(new.engine.batch_mode)
            changed.append("engine(batch_mode)")
        if (new.engine.min_batch_size, new.engine.max_batch_size) != \
                (old.engine.min_batch_size, old.engine.max_batch_size):
            self.engine.set_batch_sizes(new.engine.min_batch_size, new.engine.max_batch_size)
            changed.append("engine(batch_size)")
        if new.engine.default_delay != old.engine.default_delay:
            self.engine.config.default_delay = new.engine.default_delay
            changed.append("engine(default_delay)")

        # Injector: rebuild the backend if it changed
        if new.injector.backend != old.injector.backend:
            try:
                self.adapter.injector = create_injector(new.injector.backend, new.injector.timeout)
                changed.append(f"injector({new.injector.backend})")
            except ValueError as e:
                logger.error("Keeping injector %s: %s", old.injector.backend, e)
                new.injector.backend = old.injector.backend
        if new.injector.timeout != old.injector.timeout:
            self.adapter.timeout = new.injector.timeout
            changed.append("injector(timeout)")

        if new.clipboard != old.clipboard:
            self.engine.clipboard_config = new.clipboard
            changed.append("clipboard")

        # HotkeyListener: rebuild if any shortcut changed
        if new.hotkeys != old.hotkeys:
            self.hotkey_listener.stop()
            self.config = new
            self.hotkey_listener = self._make_hotkey_listener()
            if new.hotkeys.enabled:
                self.hotkey_listener.start()
            changed.append("hotkeys")

        if new.logging.debug != old.logging.debug:
            logging.getLogger().setLevel(logging.DEBUG if new.logging.debug else logging.INFO)
            changed.append("logging(debug)")

        # Keep the live engine config object, it is shared with the engine
        new.engine = self.engine.config
        self.config = new
        summary = ", ".join(changed) if changed else "no changes"
        logger.info("Config reloaded: %s", summary)

    def _shutdown(self) -> None:
        """Stop typing, close the control socket and release the hotkeys."""
        if self._shutting_down:
            return
        self._shutting_down = True
        print("\nShutting down...")
        self.engine.stop()
        self.control_server.shutdown()
        self.hotkey_listener.stop()
        self._stopped.set()

    def run(self) -> None:
        """Start the daemon and block until shutdown."""
        signal.signal(signal.SIGTERM, lambda sig, frame: self._shutdown())
        signal.signal(signal.SIGINT, lambda sig, frame: self._shutdown())

        engine_cfg = self.config.engine
        print("=" * 50)
        print("Paced Typist Daemon")
        print("=" * 50)
        print(f"Speed: {engine_cfg.words_per_minute} WPM "
              f"(batch mode {'on' if engine_cfg.batch_mode else 'off'}, "
              f"batches {engine_cfg.min_batch_size}-{engine_cfg.max_batch_size} chars)")
        print(f"Injector: {self.adapter.injector.name} (timeout {self.adapter.timeout:.0f}s)")
        if self.config.hotkeys.enabled and self.hotkey_listener.bindings:
            hotkeys = self.config.hotkeys
            print(f"Type clipboard: {hotkeys.type_clipboard}")
            print(f"Pause/resume: {hotkeys.toggle_pause}")
            print(f"Stop: {hotkeys.stop}")
        print("Press Ctrl+C to stop")
        print("=" * 50)

        control_thread = threading.Thread(target=self.control_server.run, daemon=True)
        control_thread.start()
        print(f"Control server listening on {CONTROL_SOCK_PATH}")

        if self.config.hotkeys.enabled:
            self.hotkey_listener.start()

        print("Ready!")
        while not self._stopped.wait(0.5):
            pass


def main():
    # Ensure print output is unbuffered (visible in log files when running in background)
    sys.stdout.reconfigure(line_buffering=True)
    os.makedirs(os.path.dirname(CONTROL_SOCK_PATH), exist_ok=True)
    daemon = TypistDaemon()
    daemon.run()


if __name__ == "__main__":
    main()
