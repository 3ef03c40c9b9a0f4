"""End-to-end engine runs through the real adapter with a fake key injector."""

import random
import threading

from typist.config import EngineConfig
from typist.engine import RunnerState, TypingEngine
from typist.events import Event
from typist.injector import InjectorAdapter, KeyInjector
from typist.pacer import ControlToken


class ScreenInjector(KeyInjector):
    """Pretends to be the focused text field."""

    name = "screen"

    def __init__(self, fail_on=None):
        self.buffer = []
        self.calls = 0
        self.fail_on = fail_on
        self._lock = threading.Lock()

    def type_text(self, text):
        with self._lock:
            self.calls += 1
            if self.fail_on and self.fail_on in text:
                raise OSError("focus lost")
            self.buffer.append(text)

    def press_key(self, token):
        with self._lock:
            self.calls += 1
            self.buffer.append({ControlToken.ENTER: "\n", ControlToken.TAB: "\t"}[token])

    @property
    def screen(self):
        return "".join(self.buffer)


def _engine(injector, **config):
    return TypingEngine(
        InjectorAdapter(injector, timeout=2.0),
        config=EngineConfig(**config),
        rng=random.Random(7),
        sleep=lambda s: None,
    )


class TestEngineFlow:

    def test_multiline_text_arrives_intact(self):
        injector = ScreenInjector()
        engine = _engine(injector)
        text = "Dear team,\n\tThe build is green. Ship it!\nThanks; bye: {done}\n"

        engine.enqueue_text(text)
        assert engine.join(timeout=5)

        assert injector.screen == text
        assert engine.state is RunnerState.IDLE

    def test_failed_instruction_is_skipped_not_retried(self):
        injector = ScreenInjector(fail_on="X")
        engine = _engine(injector, batch_mode=False)
        done = []
        engine.events.subscribe(Event.JOB_DONE, done.append)

        job = engine.enqueue_text("aXb")
        assert engine.join(timeout=5)

        assert injector.screen == "ab"
        assert injector.calls == 3
        assert done == [job]

    def test_concurrent_producers_all_typed(self):
        injector = ScreenInjector()
        engine = _engine(injector)
        done = []
        engine.events.subscribe(Event.JOB_DONE, done.append)

        def produce(n):
            for i in range(5):
                engine.enqueue_text(f"<{n}:{i}>")

        threads = [threading.Thread(target=produce, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        # Workers may hand over between producers; wait until everything drained
        for _ in range(50):
            if len(done) == 20 and engine.join(timeout=0.1):
                break
            engine.join(timeout=0.1)

        assert len(done) == 20
        assert injector.screen == "".join(job.text for job in done)
        for n in range(4):
            mine = [job.text for job in done if job.text.startswith(f"<{n}:")]
            assert mine == [f"<{n}:{i}>" for i in range(5)]
