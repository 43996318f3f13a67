"""Wire protocol helpers.

Input protocol (supervisor to interpreter), one line per tick::

    K=<token>T=<integer-milliseconds>\\n

Output protocol (interpreter to supervisor): unstructured bytes relayed
verbatim, except for an in-band sentinel that ends the session and is
never shown to the user.

Examples:
    Parse a tick line the way an interpreter would::

        >>> parse_tick_line("K=aT=120")
        TickMessage(key='a', elapsed_ms=120)

    Strip a sentinel that arrives in two pieces::

        >>> scanner = SentinelScanner(b"<<END>>")
        >>> scanner.feed(b"hi<<EN")
        b'hi'
        >>> scanner.feed(b"D>>!")
        b'!'
        >>> scanner.found
        True
"""

from esoplay.models import TickMessage


def parse_tick_line(line: str) -> TickMessage:
    """Parse one line of the input protocol.

    The elapsed field is always the digits after the last ``T=``, so a
    key that itself contains ``T=`` still round-trips.
    """
    text = line.rstrip("\r\n")
    if not text.startswith("K="):
        raise ValueError(f"not a tick line: {line!r}")
    key, sep, elapsed = text[2:].rpartition("T=")
    if not sep or not elapsed.isdigit():
        raise ValueError(f"not a tick line: {line!r}")
    return TickMessage(key=key, elapsed_ms=int(elapsed))


def partial_suffix_length(data: bytes, marker: bytes) -> int:
    """Length of the longest suffix of *data* that is a proper prefix of *marker*."""
    for size in range(min(len(data), len(marker) - 1), 0, -1):
        if data.endswith(marker[:size]):
            return size
    return 0


class SentinelScanner:
    """Removes the sentinel from a byte stream delivered in arbitrary pieces.

    A trailing piece that could be the start of the sentinel is held back
    until the next call to :meth:`feed` (or :meth:`flush`), so a sentinel
    split across reads or across ticks is still recognised as one
    occurrence. Every occurrence is removed; ``found`` flips on the first.
    """

    def __init__(self, sentinel: bytes) -> None:
        if not sentinel:
            raise ValueError("sentinel must not be empty")
        self.sentinel = sentinel
        self.found = False
        self.occurrences = 0
        self._pending = b""

    @property
    def pending(self) -> bytes:
        return self._pending

    def feed(self, data: bytes) -> bytes:
        """Consume *data* and return the bytes that are safe to forward."""
        buf = self._pending + data
        out = bytearray()
        while True:
            index = buf.find(self.sentinel)
            if index == -1:
                break
            out += buf[:index]
            buf = buf[index + len(self.sentinel) :]
            self.occurrences += 1
            self.found = True
        keep = partial_suffix_length(buf, self.sentinel)
        self._pending = buf[len(buf) - keep :] if keep else b""
        out += buf[: len(buf) - keep]
        return bytes(out)

    def flush(self) -> bytes:
        """Release held-back bytes once the stream has ended."""
        pending, self._pending = self._pending, b""
        return pending
