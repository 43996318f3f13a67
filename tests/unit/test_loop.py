"""Tests for the tick loop.

The test plays the interpreter: it writes output into the channel's
stdout pipe and reads tick lines back from the stdin pipe.
"""

import errno
import io
import os
from collections.abc import Iterator

import pytest

from esoplay.config import Settings
from esoplay.lib.channel import DrainResult, DuplexChannel
from esoplay.lib.protocol import SentinelScanner, parse_tick_line
from esoplay.loop import Session, SessionState, run_loop, run_tick
from esoplay.models import EndReason, TickMessage

SENTINEL = b">>ESOPLAY.TERMINATE<<"


def sent_lines(channel: DuplexChannel) -> list[TickMessage]:
    """Every tick line the supervisor has written so far."""
    channel.stdin.close_write()
    data = bytearray()
    while chunk := os.read(channel.stdin.read_fd, 65536):
        data += chunk
    return [parse_tick_line(line) for line in data.decode().splitlines()]


def make_session(
    channel: DuplexChannel, sink: io.BytesIO, clock: Iterator[float] | None = None
) -> Session:
    if clock is None:
        return Session(channel, SentinelScanner(SENTINEL), sink)
    return Session(channel, SentinelScanner(SENTINEL), sink, clock=lambda: next(clock))


class TestTermination:
    """The sentinel ends the session exactly once."""

    def test_sentinel_ends_after_one_tick(
        self, channel: DuplexChannel, sink: io.BytesIO, fast_settings: Settings, scripted_keys
    ) -> None:
        os.write(channel.stdout.write_fd, b"hello" + SENTINEL + b"world")
        session = make_session(channel, sink)

        reason = run_loop(session, scripted_keys(), fast_settings)

        assert reason is EndReason.SENTINEL
        assert session.state is SessionState.TERMINATED
        assert sink.getvalue() == b"helloworld"
        assert session.ticks_sent == 1
        assert len(sent_lines(channel)) == 1

    def test_no_tick_after_detection(
        self, channel: DuplexChannel, sink: io.BytesIO, fast_settings: Settings, scripted_keys
    ) -> None:
        """Pending keys are not sent once the sentinel has been seen."""
        os.write(channel.stdout.write_fd, SENTINEL)
        keys = scripted_keys(["a", "b", "c"])

        run_loop(make_session(channel, sink), keys, fast_settings)

        assert [m.key for m in sent_lines(channel)] == ["a"]
        assert keys.calls == 1

    def test_sentinel_split_across_reads(
        self, channel: DuplexChannel, sink: io.BytesIO, scripted_keys
    ) -> None:
        """A tiny read buffer cuts the sentinel; it is still found and stripped."""
        config = Settings(ticks_per_second=1000, read_chunk_size=4)
        os.write(channel.stdout.write_fd, b"out:" + SENTINEL + b":end")
        session = make_session(channel, sink)

        run_loop(session, scripted_keys(), config)

        assert sink.getvalue() == b"out::end"
        assert session.ticks_sent == 1

    def test_sentinel_split_across_ticks(
        self, channel: DuplexChannel, sink: io.BytesIO, fast_settings: Settings, scripted_keys
    ) -> None:
        """Half a sentinel in one tick and the rest in the next is one occurrence."""
        pieces = {1: b"abc>>ESOPLAY.TER", 2: b"MINATE<<def"}

        def interpreter(tick: int) -> None:
            if tick in pieces:
                os.write(channel.stdout.write_fd, pieces[tick])

        session = make_session(channel, sink)
        run_loop(session, scripted_keys(on_tick=interpreter), fast_settings)

        assert sink.getvalue() == b"abcdef"
        assert session.ticks_sent == 2
        assert session.scanner.occurrences == 1


class TestTickMessages:
    """What the interpreter receives."""

    def test_token_is_sent(
        self, channel: DuplexChannel, sink: io.BytesIO, fast_settings: Settings, scripted_keys
    ) -> None:
        os.write(channel.stdout.write_fd, SENTINEL)

        run_loop(make_session(channel, sink), scripted_keys(["a"]), fast_settings)

        (line,) = sent_lines(channel)
        assert line.key == "a"

    def test_elapsed_never_decreases(
        self, channel: DuplexChannel, sink: io.BytesIO, fast_settings: Settings, scripted_keys
    ) -> None:
        """A clock that steps back does not make elapsed time go backwards."""
        clock = iter([0.0, 0.5, 0.25, 0.75])

        def interpreter(tick: int) -> None:
            if tick == 3:
                os.write(channel.stdout.write_fd, SENTINEL)

        session = make_session(channel, sink, clock)
        run_loop(session, scripted_keys(on_tick=interpreter), fast_settings)

        assert [m.elapsed_ms for m in sent_lines(channel)] == [500, 500, 750]
        assert session.last_elapsed_ms == 750

    def test_wait_error_sends_empty_key(
        self, channel: DuplexChannel, sink: io.BytesIO, fast_settings: Settings
    ) -> None:
        """A failing input wait is logged and the tick goes on without a key."""

        class BrokenKeys:
            def next_key(self, timeout: float) -> str:
                raise OSError(errno.EBADF, "Bad file descriptor")

        session = make_session(channel, sink)
        run_tick(session, BrokenKeys(), fast_settings)

        assert session.ticks_sent == 1
        assert sent_lines(channel)[0].key == ""


class TestIoFailures:
    """Which I/O errors end the loop."""

    def test_broken_pipe_stops_loop(
        self, channel: DuplexChannel, sink: io.BytesIO, fast_settings: Settings, scripted_keys
    ) -> None:
        channel.stdin.close_read()
        session = make_session(channel, sink)

        reason = run_loop(session, scripted_keys(["a"]), fast_settings)

        assert reason is EndReason.BROKEN_PIPE
        assert session.ticks_sent == 0
        assert session.state is SessionState.RUNNING
        assert not session.running

    def test_read_error_is_not_fatal(
        self, sink: io.BytesIO, fast_settings: Settings, scripted_keys
    ) -> None:
        """A failed drain is logged; the next tick proceeds normally."""

        class FlakyChannel:
            def __init__(self) -> None:
                self.sent: list[bytes] = []
                self.frames: list[DrainResult] = [
                    DrainResult(data=b"x", eof=False, error=OSError(errno.EIO, "EIO")),
                    DrainResult(data=b"y" + SENTINEL, eof=False, error=None),
                ]

            def send(self, data: bytes) -> None:
                self.sent.append(data)

            def drain(self, chunk_size: int, *, mode: str) -> DrainResult:
                return self.frames.pop(0)

        fake = FlakyChannel()
        session = Session(fake, SentinelScanner(SENTINEL), sink)  # type: ignore[arg-type]

        reason = run_loop(session, scripted_keys(), fast_settings)

        assert reason is EndReason.SENTINEL
        assert len(fake.sent) == 2
        assert sink.getvalue() == b"xy"

    def test_eof_drain_mode(
        self, channel: DuplexChannel, sink: io.BytesIO, scripted_keys
    ) -> None:
        """In eof mode the whole stream is one frame once writers are gone."""
        config = Settings(ticks_per_second=1000, drain_mode="eof")
        os.write(channel.stdout.write_fd, SENTINEL + b"late output")
        channel.stdout.close_write()
        session = make_session(channel, sink)

        run_loop(session, scripted_keys(), config)

        assert sink.getvalue() == b"late output"
        assert session.output_eof


@pytest.mark.parametrize("payload", [b"", b"plain text\n"])
def test_forward_counts_bytes(payload: bytes, channel: DuplexChannel) -> None:
    sink = io.BytesIO()
    session = make_session(channel, sink)

    session.forward(payload)

    assert sink.getvalue() == payload
    assert session.bytes_forwarded == len(payload)
