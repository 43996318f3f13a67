"""Library pieces the supervisor is assembled from.

Modules:
- bridge: Bridge process fork, interpreter launch, launch report channel
- channel: Duplex pipe channel (stdin/stdout pipes) and drain
- keys: Keyboard token source with tick-bounded waits
- protocol: Input line parsing and in-band sentinel scanning
"""

from esoplay.lib.bridge import (
    InterpreterLaunchError,
    launch_interpreter,
    read_launch_report,
    spawn_bridge,
)
from esoplay.lib.channel import (
    ChannelError,
    DrainResult,
    DuplexChannel,
    Pipe,
    read_until_eof,
    write_all,
)
from esoplay.lib.keys import KeySource, TerminalKeys
from esoplay.lib.protocol import (
    SentinelScanner,
    parse_tick_line,
    partial_suffix_length,
)

__all__ = [
    # Bridge
    "InterpreterLaunchError",
    "launch_interpreter",
    "read_launch_report",
    "spawn_bridge",
    # Channel
    "ChannelError",
    "DrainResult",
    "DuplexChannel",
    "Pipe",
    "read_until_eof",
    "write_all",
    # Keys
    "KeySource",
    "TerminalKeys",
    # Protocol
    "SentinelScanner",
    "parse_tick_line",
    "partial_suffix_length",
]
