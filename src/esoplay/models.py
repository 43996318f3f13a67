"""Data models shared by the supervisor and the bridge.

The key pattern is:
1. Immutable pydantic models for anything that crosses a process boundary
2. Plain mutable models for state owned by a single process
3. A summary model returned from every session
"""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TickMessage(BaseModel):
    """One line of the input protocol, sent to the interpreter every tick.

    Serialized as ``K=<key>T=<elapsed_ms>`` followed by a newline. ``key``
    is empty when no input arrived within the tick window.
    """

    model_config = ConfigDict(frozen=True)

    key: str = Field(default="", description="Whitespace-free token, or empty")
    elapsed_ms: int = Field(ge=0, description="Milliseconds since session start")

    def encode(self) -> bytes:
        """Serialize to the wire format."""
        return f"K={self.key}T={self.elapsed_ms}\n".encode("utf-8")


class LaunchReport(BaseModel):
    """Outcome of the bridge's attempt to start the interpreter.

    Written by the bridge as a single JSON line on the control pipe.
    Exactly one of ``interpreter_pid`` and ``error`` is set.
    """

    model_config = ConfigDict(frozen=True)

    interpreter_pid: int | None = None
    error: str | None = None

    @model_validator(mode="after")
    def exactly_one_outcome(self) -> "LaunchReport":
        if (self.interpreter_pid is None) == (self.error is None):
            raise ValueError("launch report needs exactly one of interpreter_pid/error")
        return self

    @property
    def ok(self) -> bool:
        return self.error is None


class ProcessHandles(BaseModel):
    """Registry of every process spawned for a session."""

    bridge_pid: int
    interpreter_pid: int | None = None
    bridge_status: int | None = Field(
        default=None, description="Exit code of the bridge once reaped"
    )

    @property
    def bridge_reaped(self) -> bool:
        return self.bridge_status is not None


class EndReason(StrEnum):
    """Why the tick loop stopped."""

    SENTINEL = "sentinel"
    BROKEN_PIPE = "broken_pipe"
    INTERRUPTED = "interrupted"


class SessionResult(BaseModel):
    """Summary of a finished session."""

    interpreter: str
    file: str
    end_reason: EndReason
    ticks_sent: int = 0
    bytes_forwarded: int = 0
    sentinel_seen: bool = False
    last_elapsed_ms: int = 0
    bridge_status: int | None = None
    interpreter_pid: int | None = None
    duration_seconds: float | None = None
