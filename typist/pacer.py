"""Human-paced batching of text into timed injection instructions.

The pacer performs no I/O. It turns a string into a finite sequence of
``Instruction`` objects, each carrying either a literal text batch or a
control token plus the delay to wait *after* dispatching it.

Timing model: ``seconds_per_char = 60 / (wpm * AVERAGE_CHARS_PER_WORD)``.
A batch of ``n`` characters waits ``base = seconds_per_char * n * 0.85``
(slightly faster than nominal typing) plus up to 8% random jitter, plus an
extra pause after sentence-ending punctuation.
"""

import random
from dataclasses import dataclass
from enum import Enum
from typing import Iterator

from typist.config import AVERAGE_CHARS_PER_WORD

SPEED_FACTOR = 0.85
JITTER_RATIO = 0.08
RANDOM_FLUSH_PROBABILITY = 0.12

ENTER_SETTLE = 0.08    # seconds after an ENTER token
TAB_SETTLE = 0.04      # seconds after a TAB token
SENTENCE_PAUSE = 0.26  # extra seconds after . ! ?

BREAK_PUNCTUATION = frozenset(".!?,;:")
SENTENCE_PUNCTUATION = frozenset(".!?")


class ControlToken(str, Enum):
    """Structural keystrokes that are not literal text."""
    ENTER = "ENTER"
    TAB = "TAB"


# Characters that are never typed literally
_CONTROL_CHARS = {
    "\n": (ControlToken.ENTER, ENTER_SETTLE),
    "\t": (ControlToken.TAB, TAB_SETTLE),
}


@dataclass(frozen=True)
class Instruction:
    payload: "str | ControlToken"
    delay: float  # seconds to wait after dispatch

    @property
    def is_control(self) -> bool:
        return isinstance(self.payload, ControlToken)


def seconds_per_char(words_per_minute: int) -> float:
    return 60.0 / (words_per_minute * AVERAGE_CHARS_PER_WORD)


def flush_delay(length: int, per_char: float, rng: random.Random, extra: float = 0.0) -> float:
    """Post-dispatch wait for a batch of ``length`` characters."""
    base = per_char * length * SPEED_FACTOR
    jitter = rng.random() * base * JITTER_RATIO
    return max(0.0, base + jitter + extra)


def pace(
    text: str,
    *,
    words_per_minute: int,
    batch_mode: bool = True,
    min_batch_size: int = 3,
    max_batch_size: int = 12,
    rng: random.Random = None,
) -> Iterator[Instruction]:
    """Yield the instructions that type ``text`` at the given speed.

    Args:
        text: The text to type
        words_per_minute: Target speed, already clamped by the caller
        batch_mode: Group characters into variable-length batches
        min_batch_size: Smallest batch eligible for a random early flush
        max_batch_size: Hard upper bound on a literal batch
        rng: Random source for jitter and batch boundaries
    """
    if rng is None:
        rng = random.Random()
    per_char = seconds_per_char(words_per_minute)

    if not batch_mode:
        yield from _pace_per_char(text, per_char, rng)
        return

    batch = []

    def flush(extra: float = 0.0) -> Instruction:
        chunk = "".join(batch)
        batch.clear()
        return Instruction(chunk, flush_delay(len(chunk), per_char, rng, extra))

    for ch in text:
        if ch in _CONTROL_CHARS:
            token, settle = _CONTROL_CHARS[ch]
            if batch:
                yield flush()
            yield Instruction(token, settle)
            continue

        batch.append(ch)

        if ch in BREAK_PUNCTUATION or len(batch) >= max_batch_size:
            extra = SENTENCE_PAUSE if ch in SENTENCE_PUNCTUATION else 0.0
            yield flush(extra)
            continue

        # Random early flush keeps batch boundaries irregular
        if len(batch) >= min_batch_size and rng.random() < RANDOM_FLUSH_PROBABILITY:
            yield flush()

    if batch:
        yield flush()


def _pace_per_char(text: str, per_char: float, rng: random.Random) -> Iterator[Instruction]:
    for ch in text:
        payload = _CONTROL_CHARS[ch][0] if ch in _CONTROL_CHARS else ch
        yield Instruction(payload, flush_delay(1, per_char, rng))
