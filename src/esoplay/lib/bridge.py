"""Interpreter bridge process.

The bridge is a forked child of the supervisor. It:

1. turns the interpreter side of the duplex channel into its own stdin
   and stdout, closing the original descriptors after duplication;
2. launches ``interpreter <file>`` as its own child, inheriting those
   standard streams;
3. reports the launch outcome on a dedicated control pipe;
4. without waiting for the interpreter, writes the sentinel into the
   output pipe and exits.

The interpreter is therefore a grandchild of the supervisor. Its pid
reaches the supervisor only through the launch report.
"""

import logging
import os
import subprocess
import traceback
from typing import NoReturn

from pydantic import ValidationError

from esoplay.lib.channel import DuplexChannel, Pipe, read_until_eof, write_all
from esoplay.models import LaunchReport, ProcessHandles

logger = logging.getLogger(__name__)

STDIN_FILENO = 0
STDOUT_FILENO = 1


class InterpreterLaunchError(RuntimeError):
    """Raised when the bridge or the interpreter could not be started."""


def launch_interpreter(interpreter: str, file: str) -> LaunchReport:
    """Start ``interpreter file`` with the current standard streams.

    The interpreter is looked up on PATH. The child is not waited for.
    """
    try:
        proc = subprocess.Popen([interpreter, file])
    except OSError as e:
        return LaunchReport(error=f"{interpreter}: {e.strerror or e}")
    return LaunchReport(interpreter_pid=proc.pid)


def _redirect_standard_streams(channel: DuplexChannel) -> None:
    read_fd = channel.stdin.read_fd
    write_fd = channel.stdout.write_fd
    os.dup2(read_fd, STDIN_FILENO)
    os.dup2(write_fd, STDOUT_FILENO)
    if read_fd != STDIN_FILENO:
        channel.stdin.close_read()
    if write_fd != STDOUT_FILENO:
        channel.stdout.close_write()


def _bridge_main(
    channel: DuplexChannel,
    control: Pipe,
    interpreter: str,
    file: str,
    sentinel: bytes,
) -> NoReturn:
    status = 1
    try:
        control.close_read()
        channel.close_for_bridge()
        _redirect_standard_streams(channel)

        report = launch_interpreter(interpreter, file)
        write_all(control.write_fd, report.model_dump_json(exclude_none=True).encode() + b"\n")
        control.close_write()

        write_all(STDOUT_FILENO, sentinel)
        status = 0 if report.ok else 1
    except Exception:
        traceback.print_exc()
    finally:
        os._exit(status)


def spawn_bridge(
    channel: DuplexChannel,
    interpreter: str,
    file: str,
    *,
    sentinel: bytes,
) -> tuple[ProcessHandles, Pipe]:
    """Fork the bridge process.

    Returns the process registry (interpreter pid still unknown) and the
    control pipe, whose write end is already closed on this side. The
    caller applies its own closing discipline to *channel*.
    """
    control = Pipe.open()
    try:
        pid = os.fork()
    except OSError as e:
        control.close()
        raise InterpreterLaunchError(f"could not fork bridge: {e}") from e

    if pid == 0:
        _bridge_main(channel, control, interpreter, file, sentinel)

    control.close_write()
    logger.debug("Spawned bridge pid=%d for %s %s", pid, interpreter, file)
    return ProcessHandles(bridge_pid=pid), control


def read_launch_report(control: Pipe) -> LaunchReport:
    """Block until the bridge has reported, then close the control pipe.

    Raises InterpreterLaunchError if the interpreter could not be started
    or the bridge exited without a usable report.
    """
    try:
        raw = read_until_eof(control.read_fd, 4096)
    finally:
        control.close_read()

    line = raw.strip()
    if not line:
        raise InterpreterLaunchError("bridge exited without a launch report")
    try:
        report = LaunchReport.model_validate_json(line)
    except ValidationError as e:
        raise InterpreterLaunchError(f"malformed launch report: {e}") from e
    if not report.ok:
        raise InterpreterLaunchError(report.error)
    logger.debug("Interpreter running as pid=%s", report.interpreter_pid)
    return report
