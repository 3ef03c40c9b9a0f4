"""Command-line client for the paced typist daemon.

Usage:
    typist-ctl status
    typist-ctl type <text...>
    typist-ctl clipboard
    typist-ctl pause | resume | stop | reload | shutdown
    typist-ctl wpm <n>
    typist-ctl batch on|off
    typist-ctl test [text...]    type locally without a daemon
"""

import json
import sys

from typist.config import load_config
from typist.control import send_command

DEFAULT_TEST_TEXT = (
    "This is a quick typing test. It should type faster than average "
    "but remain natural."
)

SIMPLE_COMMANDS = {
    "status": "status",
    "clipboard": "type_clipboard",
    "pause": "pause",
    "resume": "resume",
    "stop": "stop",
    "reload": "reload_config",
    "shutdown": "shutdown",
}


def build_command(args: list[str]) -> dict:
    """Translate command-line arguments into a control socket request."""
    if not args:
        raise ValueError("missing command")
    name, rest = args[0], args[1:]

    if name in SIMPLE_COMMANDS:
        return {"cmd": SIMPLE_COMMANDS[name]}
    if name == "type":
        if not rest:
            raise ValueError("type needs text")
        return {"cmd": "type", "text": " ".join(rest)}
    if name == "wpm":
        if len(rest) != 1:
            raise ValueError("wpm needs a number")
        return {"cmd": "set_wpm", "wpm": rest[0]}
    if name == "batch":
        if len(rest) != 1 or rest[0] not in ("on", "off"):
            raise ValueError("batch needs 'on' or 'off'")
        return {"cmd": "set_batch_mode", "enabled": rest[0] == "on"}
    raise ValueError(f"unknown command: {name}")


def run_typing_test(text: str) -> None:
    """Type ``text`` into the focused window with the configured engine."""
    from typist.engine import TypingEngine
    from typist.injector import InjectorAdapter, create_injector
    from typist.main import make_event_logger, setup_logging

    config = load_config()
    setup_logging(config.logging.debug)
    engine = TypingEngine(
        InjectorAdapter(
            create_injector(config.injector.backend, config.injector.timeout),
            timeout=config.injector.timeout,
        ),
        config=config.engine,
    )
    engine.events.subscribe_all(make_event_logger(config.logging.preview_chars))
    print(f"Typing test: {text}")
    engine.enqueue_text(text, metadata={"source": "test"})
    engine.join()


def main(argv: list[str] = None) -> int:
    args = sys.argv[1:] if argv is None else argv

    if args and args[0] == "test":
        run_typing_test(" ".join(args[1:]) or DEFAULT_TEST_TEXT)
        return 0

    try:
        request = build_command(args)
    except ValueError as e:
        print(f"typist-ctl: {e}", file=sys.stderr)
        print(__doc__, file=sys.stderr)
        return 2

    try:
        reply = send_command(request)
    except (FileNotFoundError, ConnectionRefusedError):
        print("typist-ctl: daemon is not running", file=sys.stderr)
        return 1

    print(json.dumps(reply))
    return 1 if "error" in reply else 0


if __name__ == "__main__":
    sys.exit(main())
