"""Session orchestration.

Key steps:
1. Open the duplex channel before anything is forked
2. Fork the bridge, apply the supervisor's closing discipline
3. Wait for the bridge's launch report
4. Run the tick loop
5. Reap the process tree, relaying whatever output is still in flight
"""

import logging
import sys
import time
from typing import BinaryIO

from esoplay.config import Settings, settings
from esoplay.lib.bridge import read_launch_report, spawn_bridge
from esoplay.lib.channel import DuplexChannel
from esoplay.lib.keys import KeySource, TerminalKeys
from esoplay.lib.protocol import SentinelScanner
from esoplay.loop import Session, run_loop
from esoplay.models import EndReason, SessionResult
from esoplay.reaper import reap, wait_bridge

logger = logging.getLogger(__name__)


def run_session(
    interpreter: str,
    file: str,
    *,
    config: Settings | None = None,
    keys: KeySource | None = None,
    sink: BinaryIO | None = None,
) -> SessionResult:
    """Play *file* with *interpreter* until the session ends.

    Args:
        interpreter: Executable name or path, looked up on PATH.
        file: Passed to the interpreter as its only argument.
        config: Settings to use. Defaults to the module-level settings.
        keys: Key source. Defaults to tokens read from stdin.
        sink: Where interpreter output goes. Defaults to stdout.

    Returns:
        SessionResult describing how the session went.

    Raises:
        ChannelError: If the pipes could not be created.
        InterpreterLaunchError: If the bridge or the interpreter failed to start.
    """
    config = config or settings
    keys = keys if keys is not None else TerminalKeys()
    sink = sink if sink is not None else sys.stdout.buffer

    started = time.monotonic()
    channel = DuplexChannel.open()
    try:
        handles, control = spawn_bridge(
            channel, interpreter, file, sentinel=config.sentinel_bytes
        )
    except BaseException:
        channel.close()
        raise
    channel.close_for_supervisor()

    try:
        report = read_launch_report(control)
    except BaseException:
        try:
            wait_bridge(handles)
        finally:
            channel.close()
        raise
    handles.interpreter_pid = report.interpreter_pid
    logger.info(
        "Playing %s with %s (bridge=%d, interpreter=%s)",
        file,
        interpreter,
        handles.bridge_pid,
        handles.interpreter_pid,
    )

    session = Session(channel, SentinelScanner(config.sentinel_bytes), sink)
    try:
        end_reason = run_loop(session, keys, config)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting the session down")
        session.stop(EndReason.INTERRUPTED)
        end_reason = EndReason.INTERRUPTED
    finally:
        try:
            session.relay(reap(channel, handles, config.read_chunk_size))
            session.forward(session.scanner.flush())
        finally:
            channel.close()

    return SessionResult(
        interpreter=interpreter,
        file=file,
        end_reason=end_reason,
        ticks_sent=session.ticks_sent,
        bytes_forwarded=session.bytes_forwarded,
        sentinel_seen=session.scanner.found,
        last_elapsed_ms=session.last_elapsed_ms,
        bridge_status=handles.bridge_status,
        interpreter_pid=handles.interpreter_pid,
        duration_seconds=time.monotonic() - started,
    )
