"""Keyboard sampling for the tick loop.

The loop needs exactly two things from the terminal: "is input
available within this tick window" and "read one whitespace-delimited
token". :class:`TerminalKeys` provides both on top of a raw file
descriptor with ``select`` so the wait never exceeds the tick period.

Tokens are buffered: a line holding several tokens yields one token per
tick, and the leftovers are handed out on the following ticks without
waiting.
"""

import codecs
import logging
import os
import select
import sys
import time
from collections import deque
from typing import Protocol

logger = logging.getLogger(__name__)

READ_SIZE = 4096


class KeySource(Protocol):
    """Anything that can produce at most one key per tick."""

    def next_key(self, timeout: float) -> str:
        """Return the next token, or ``""`` if none arrived within *timeout* seconds.

        May raise OSError if waiting on the underlying input fails.
        """
        ...


class TerminalKeys:
    """Reads whitespace-delimited tokens from a file descriptor.

    Args:
        fd: Descriptor to read from. Defaults to the process's stdin.
        encoding: Text encoding of the input; undecodable bytes are replaced.
    """

    def __init__(self, fd: int | None = None, encoding: str = "utf-8") -> None:
        self.fd = sys.stdin.fileno() if fd is None else fd
        self.closed = False
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._tokens: deque[str] = deque()
        self._partial = ""

    def _absorb(self, text: str) -> None:
        text = self._partial + text
        parts = text.split()
        if parts and not text[-1].isspace():
            self._partial = parts.pop()
        else:
            self._partial = ""
        self._tokens.extend(parts)

    def _finish(self) -> None:
        self.closed = True
        self._absorb(self._decoder.decode(b"", final=True))
        if self._partial:
            self._tokens.append(self._partial)
            self._partial = ""
        logger.debug("Input stream closed")

    def next_key(self, timeout: float) -> str:
        if self._tokens:
            return self._tokens.popleft()
        if self.closed:
            # Nothing more can arrive; keep the tick pacing anyway.
            time.sleep(timeout)
            return ""

        deadline = time.monotonic() + timeout
        while True:
            remaining = max(0.0, deadline - time.monotonic())
            ready, _, _ = select.select([self.fd], [], [], remaining)
            if not ready:
                return ""
            data = os.read(self.fd, READ_SIZE)
            if not data:
                self._finish()
            else:
                self._absorb(self._decoder.decode(data))
            if self._tokens:
                return self._tokens.popleft()
            if self.closed:
                return ""
