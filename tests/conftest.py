"""Shared test fixtures.

Add fixtures here that are used across multiple test files.
"""

import io
import time
from collections import deque
from collections.abc import Callable, Iterable, Iterator

import pytest

from esoplay.config import Settings
from esoplay.lib.channel import DuplexChannel


class ScriptedKeys:
    """Key source that replays a fixed list of tokens, one per tick.

    ``on_tick`` is called with the 1-based tick number before the key is
    returned, which lets a test act as the interpreter between ticks.
    """

    def __init__(
        self,
        tokens: Iterable[str] = (),
        on_tick: Callable[[int], None] | None = None,
    ) -> None:
        self.tokens = deque(tokens)
        self.on_tick = on_tick
        self.calls = 0

    def next_key(self, timeout: float) -> str:
        self.calls += 1
        if self.on_tick is not None:
            self.on_tick(self.calls)
        if self.tokens:
            return self.tokens.popleft()
        time.sleep(timeout)
        return ""


@pytest.fixture
def fast_settings() -> Settings:
    """Settings with a 1 ms tick for loop tests."""
    return Settings(ticks_per_second=1000)


@pytest.fixture
def channel() -> Iterator[DuplexChannel]:
    """An open channel; the test plays the interpreter side."""
    ch = DuplexChannel.open()
    yield ch
    ch.close()


@pytest.fixture
def sink() -> io.BytesIO:
    """Stand-in for the terminal output stream."""
    return io.BytesIO()


@pytest.fixture
def scripted_keys() -> type[ScriptedKeys]:
    """The ScriptedKeys class, for tests that build their own key scripts."""
    return ScriptedKeys
