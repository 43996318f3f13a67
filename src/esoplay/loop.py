"""The tick loop: pacing, input sampling, framing and output relay.

Each tick:

1. waits up to one tick period for a key;
2. sends ``K=<key>T=<elapsed-ms>`` to the interpreter;
3. drains the interpreter's output;
4. strips the sentinel and forwards the rest to the terminal.

The loop ends when the sentinel is seen or when the interpreter's input
can no longer be written to. All state lives on the :class:`Session`
passed to every tick.
"""

import logging
import time
from collections.abc import Callable
from enum import StrEnum
from typing import BinaryIO

from esoplay.config import Settings
from esoplay.lib.channel import DuplexChannel
from esoplay.lib.keys import KeySource
from esoplay.lib.protocol import SentinelScanner
from esoplay.models import EndReason, TickMessage

logger = logging.getLogger(__name__)


class SessionState(StrEnum):
    RUNNING = "running"
    TERMINATED = "terminated"


class Session:
    """Run-scoped context owned by the top-level control routine.

    Args:
        channel: Supervisor ends of the duplex channel.
        scanner: Sentinel filter applied to everything relayed.
        sink: Binary stream that receives the interpreter's output.
        clock: Monotonic clock in seconds.
    """

    def __init__(
        self,
        channel: DuplexChannel,
        scanner: SentinelScanner,
        sink: BinaryIO,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.channel = channel
        self.scanner = scanner
        self.sink = sink
        self.clock = clock
        self.started_at = clock()
        self.state = SessionState.RUNNING
        self.end_reason: EndReason | None = None
        self.last_elapsed_ms = 0
        self.ticks_sent = 0
        self.bytes_forwarded = 0
        self.output_eof = False

    @property
    def running(self) -> bool:
        return self.state is SessionState.RUNNING and self.end_reason is None

    def elapsed_ms(self) -> int:
        """Milliseconds since the session started, never lower than last time."""
        elapsed = int((self.clock() - self.started_at) * 1000)
        self.last_elapsed_ms = max(self.last_elapsed_ms, elapsed)
        return self.last_elapsed_ms

    def stop(self, reason: EndReason) -> None:
        if self.end_reason is None:
            self.end_reason = reason

    def relay(self, data: bytes) -> None:
        """Filter *data* through the sentinel scanner and forward what is left."""
        output = self.scanner.feed(data)
        if self.scanner.found and self.state is SessionState.RUNNING:
            self.state = SessionState.TERMINATED
            self.stop(EndReason.SENTINEL)
            logger.debug("Sentinel seen after %d ticks", self.ticks_sent)
        self.forward(output)

    def forward(self, data: bytes) -> None:
        if not data:
            return
        self.sink.write(data)
        self.sink.flush()
        self.bytes_forwarded += len(data)


def run_tick(session: Session, keys: KeySource, config: Settings) -> None:
    """Run one iteration of the loop."""
    try:
        key = keys.next_key(config.tick_seconds)
    except OSError as e:
        logger.warning("Waiting for input failed: %s", e)
        key = ""

    message = TickMessage(key=key, elapsed_ms=session.elapsed_ms())
    try:
        session.channel.send(message.encode())
    except OSError as e:
        logger.error("Interpreter input is closed: %s", e)
        session.stop(EndReason.BROKEN_PIPE)
        return
    session.ticks_sent += 1

    result = session.channel.drain(config.read_chunk_size, mode=config.drain_mode)
    if result["error"] is not None:
        logger.warning("Reading interpreter output failed: %s", result["error"])
    if result["eof"] and not session.output_eof:
        session.output_eof = True
        logger.debug("Interpreter output reached end of stream")

    session.relay(result["data"])


def run_loop(session: Session, keys: KeySource, config: Settings) -> EndReason:
    """Tick until the session ends and return why it ended."""
    logger.info(
        "Tick loop started at %d ticks/s (drain=%s)",
        config.ticks_per_second,
        config.drain_mode,
    )
    while session.running:
        run_tick(session, keys, config)
    assert session.end_reason is not None
    logger.info(
        "Tick loop stopped (%s) after %d ticks", session.end_reason, session.ticks_sent
    )
    return session.end_reason
