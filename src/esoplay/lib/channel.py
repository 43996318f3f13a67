"""Duplex pipe channel between the supervisor and the interpreter.

Two unidirectional pipes are created before any process is forked so
that every descendant inherits the endpoints:

- the **stdin pipe** carries tick messages from the supervisor to the
  interpreter;
- the **stdout pipe** carries the interpreter's output back.

After the fork each side closes the endpoints it does not use. The
supervisor keeps the stdin write end and the stdout read end, the bridge
keeps the other two and turns them into its own standard streams.

Examples:
    Open a channel and drain whatever is ready::

        >>> channel = DuplexChannel.open()
        >>> channel.send(b"K=T=0\\n")
        >>> channel.drain(1024, mode="bounded")["data"]
        b''
"""

import logging
import os
import select
from typing import Literal, TypedDict

logger = logging.getLogger(__name__)


class ChannelError(OSError):
    """Raised when the pipes of a channel cannot be created."""


class DrainResult(TypedDict):
    """Result of draining the output pipe once."""

    data: bytes
    eof: bool
    error: OSError | None


class Pipe:
    """One OS pipe. Each end can be closed independently, closing twice is a no-op."""

    def __init__(self, read_fd: int, write_fd: int) -> None:
        self._read_fd: int | None = read_fd
        self._write_fd: int | None = write_fd

    @classmethod
    def open(cls) -> "Pipe":
        try:
            read_fd, write_fd = os.pipe()
        except OSError as e:
            raise ChannelError(e.errno, f"pipe creation failed: {e.strerror}") from e
        return cls(read_fd, write_fd)

    @property
    def read_fd(self) -> int:
        if self._read_fd is None:
            raise ValueError("read end is closed")
        return self._read_fd

    @property
    def write_fd(self) -> int:
        if self._write_fd is None:
            raise ValueError("write end is closed")
        return self._write_fd

    @property
    def read_closed(self) -> bool:
        return self._read_fd is None

    @property
    def write_closed(self) -> bool:
        return self._write_fd is None

    def close_read(self) -> None:
        if self._read_fd is not None:
            fd, self._read_fd = self._read_fd, None
            os.close(fd)

    def close_write(self) -> None:
        if self._write_fd is not None:
            fd, self._write_fd = self._write_fd, None
            os.close(fd)

    def close(self) -> None:
        self.close_read()
        self.close_write()


def write_all(fd: int, data: bytes) -> None:
    """Write every byte of *data*, retrying on short writes.

    Raises BrokenPipeError (or another OSError) when the receiving side
    has gone away.
    """
    view = memoryview(data)
    while view:
        written = os.write(fd, view)
        view = view[written:]


def read_until_eof(fd: int, chunk_size: int) -> bytes:
    """Read from *fd* until every writer has closed it."""
    chunks: list[bytes] = []
    while True:
        chunk = os.read(fd, chunk_size)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


class DuplexChannel:
    """The stdin/stdout pipe pair connecting supervisor and interpreter."""

    def __init__(self, stdin: Pipe, stdout: Pipe) -> None:
        self.stdin = stdin
        self.stdout = stdout

    @classmethod
    def open(cls) -> "DuplexChannel":
        """Create both pipes. Raises ChannelError if either cannot be made."""
        stdin = Pipe.open()
        try:
            stdout = Pipe.open()
        except ChannelError:
            stdin.close()
            raise
        logger.debug(
            "Opened channel: stdin=(%d, %d) stdout=(%d, %d)",
            stdin.read_fd,
            stdin.write_fd,
            stdout.read_fd,
            stdout.write_fd,
        )
        return cls(stdin, stdout)

    # --- Closing discipline ---

    def close_for_supervisor(self) -> None:
        """Drop the ends only the interpreter side uses."""
        self.stdin.close_read()
        self.stdout.close_write()

    def close_for_bridge(self) -> None:
        """Drop the ends only the supervisor uses."""
        self.stdin.close_write()
        self.stdout.close_read()

    def close(self) -> None:
        self.stdin.close()
        self.stdout.close()

    # --- Supervisor side I/O ---

    def send(self, data: bytes) -> None:
        """Write *data* to the interpreter's stdin."""
        write_all(self.stdin.write_fd, data)

    def drain(
        self, chunk_size: int, *, mode: Literal["bounded", "eof"] = "bounded"
    ) -> DrainResult:
        """Read the output pipe into one frame.

        In ``bounded`` mode only bytes that are already available are
        read, so the call returns promptly while writers are alive. In
        ``eof`` mode reading continues until every writer has closed the
        pipe. Either way a read error ends the drain and is returned
        alongside whatever was read before it.
        """
        fd = self.stdout.read_fd
        frame = bytearray()
        eof = False
        error: OSError | None = None
        while True:
            if mode == "bounded":
                try:
                    ready, _, _ = select.select([fd], [], [], 0)
                except OSError as e:
                    error = e
                    break
                if not ready:
                    break
            try:
                chunk = os.read(fd, chunk_size)
            except OSError as e:
                error = e
                break
            if not chunk:
                eof = True
                break
            frame += chunk
        return DrainResult(data=bytes(frame), eof=eof, error=error)

    def read_remaining(self, chunk_size: int) -> bytes:
        """Block until the output pipe reaches end-of-stream and return the rest."""
        return read_until_eof(self.stdout.read_fd, chunk_size)
