"""Lifecycle reaper: final synchronization with the process tree.

Runs once the tick loop has stopped, whatever the reason. The waits
here are unbounded: an interpreter that never exits keeps the
supervisor waiting forever.
"""

import logging
import os

from esoplay.lib.channel import DuplexChannel
from esoplay.models import ProcessHandles

logger = logging.getLogger(__name__)


def wait_bridge(handles: ProcessHandles) -> int | None:
    """Wait for the bridge process and record its exit code."""
    if handles.bridge_reaped:
        return handles.bridge_status
    try:
        _, status = os.waitpid(handles.bridge_pid, 0)
    except ChildProcessError:
        logger.warning("Bridge pid=%d was already reaped", handles.bridge_pid)
        return None
    handles.bridge_status = os.waitstatus_to_exitcode(status)
    logger.debug("Bridge exited with status %d", handles.bridge_status)
    return handles.bridge_status


def reap(channel: DuplexChannel, handles: ProcessHandles, chunk_size: int) -> bytes:
    """Shut the channel down and wait for every spawned process.

    Closes the interpreter's input first so an interpreter reading until
    end-of-file can finish, waits for the bridge, then reads the output
    pipe until every writer (the interpreter included) has let go of it.
    Returns the bytes read during that final flush, unfiltered.
    """
    channel.stdin.close_write()
    wait_bridge(handles)

    remaining = b""
    if not channel.stdout.read_closed:
        try:
            remaining = channel.read_remaining(chunk_size)
        except OSError as e:
            logger.warning("Final read of interpreter output failed: %s", e)
        finally:
            channel.stdout.close_read()
    if handles.interpreter_pid is not None:
        logger.debug("Interpreter pid=%d released its output", handles.interpreter_pid)
    return remaining
