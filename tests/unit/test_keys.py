"""Tests for TerminalKeys token sampling."""

import os
import time
from collections.abc import Iterator

import pytest

from esoplay.lib.keys import TerminalKeys


@pytest.fixture
def terminal() -> Iterator[tuple[TerminalKeys, int]]:
    """A TerminalKeys reading from a pipe, plus the pipe's write end."""
    read_fd, write_fd = os.pipe()
    yield TerminalKeys(read_fd), write_fd
    os.close(read_fd)
    os.close(write_fd)


class TestTerminalKeys:
    """Tests for reading whitespace-delimited tokens within a tick."""

    def test_timeout_gives_empty_key(self, terminal: tuple[TerminalKeys, int]) -> None:
        keys, _ = terminal
        start = time.monotonic()

        assert keys.next_key(0.05) == ""
        assert time.monotonic() - start >= 0.04

    def test_reads_one_token(self, terminal: tuple[TerminalKeys, int]) -> None:
        keys, write_fd = terminal
        os.write(write_fd, b"a\n")

        assert keys.next_key(1.0) == "a"

    def test_tokens_spread_over_ticks(self, terminal: tuple[TerminalKeys, int]) -> None:
        """Several tokens on one line come out one per call."""
        keys, write_fd = terminal
        os.write(write_fd, b"left  up\tright\n")

        assert [keys.next_key(0.01) for _ in range(4)] == ["left", "up", "right", ""]

    def test_whitespace_only_line(self, terminal: tuple[TerminalKeys, int]) -> None:
        keys, write_fd = terminal
        os.write(write_fd, b"   \n")

        assert keys.next_key(0.02) == ""

    def test_partial_token_waits_for_delimiter(
        self, terminal: tuple[TerminalKeys, int]
    ) -> None:
        keys, write_fd = terminal
        os.write(write_fd, b"ab")
        assert keys.next_key(0.02) == ""

        os.write(write_fd, b"c d\n")
        assert keys.next_key(0.02) == "abc"
        assert keys.next_key(0.02) == "d"

    def test_eof_flushes_last_token(self) -> None:
        read_fd, write_fd = os.pipe()
        keys = TerminalKeys(read_fd)
        os.write(write_fd, b"last")
        os.close(write_fd)
        try:
            assert keys.next_key(0.05) == "last"
            assert keys.closed
            assert keys.next_key(0.01) == ""
        finally:
            os.close(read_fd)

    def test_multibyte_split_across_reads(
        self, terminal: tuple[TerminalKeys, int]
    ) -> None:
        """A UTF-8 character cut between two reads is decoded once whole."""
        keys, write_fd = terminal
        encoded = "é\n".encode()
        os.write(write_fd, encoded[:1])
        assert keys.next_key(0.02) == ""

        os.write(write_fd, encoded[1:])
        assert keys.next_key(0.05) == "é"
