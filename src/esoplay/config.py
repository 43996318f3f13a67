"""Configuration management using pydantic-settings.

Key patterns:
1. Multiple env files (.env, .env.local) - local overrides shared
2. validation_alias for explicit env var names
3. Singleton instance for easy import
4. CLI flags override fields by re-validating a merged dict

Usage:
    from esoplay.config import settings
    print(settings.ticks_per_second)
"""

import logging
from typing import Literal, Self

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DrainMode = Literal["bounded", "eof"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

DEFAULT_SENTINEL = ">>ESOPLAY.TERMINATE<<"


class Settings(BaseSettings):
    """Supervisor settings loaded from environment variables.

    All variables use the ``ESOPLAY_`` prefix.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def warn_eof_drain(self) -> Self:
        """Warn when the blocking drain is selected.

        In ``eof`` mode a tick only finishes once every writer of the
        output pipe has closed it, so the loop stalls for the whole
        lifetime of a long-running interpreter.
        """
        if self.drain_mode == "eof":
            logger.warning(
                "Drain mode 'eof' blocks each tick until the interpreter exits"
            )
        return self

    # ==========================================================================
    # TIMING
    # ==========================================================================

    ticks_per_second: int = Field(
        default=10,
        gt=0,
        validation_alias="ESOPLAY_TICKS_PER_SECOND",
        description="Tick rate of the polling loop",
    )

    # ==========================================================================
    # I/O
    # ==========================================================================

    read_chunk_size: int = Field(
        default=1024,
        gt=0,
        validation_alias="ESOPLAY_READ_CHUNK_SIZE",
        description="Size of the buffer used for each read of the output pipe",
    )

    drain_mode: DrainMode = Field(
        default="bounded",
        validation_alias="ESOPLAY_DRAIN_MODE",
        description="'bounded' reads what is ready; 'eof' reads until all writers close",
    )

    sentinel: str = Field(
        default=DEFAULT_SENTINEL,
        min_length=1,
        validation_alias="ESOPLAY_SENTINEL",
        description="In-band marker that ends the session",
    )

    # ==========================================================================
    # LOGGING
    # ==========================================================================

    log_level: LogLevel = Field(
        default="WARNING",
        validation_alias="ESOPLAY_LOG_LEVEL",
        description="Log level used when --verbose is not given",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.upper()
        return value

    @property
    def tick_seconds(self) -> float:
        """Length of one tick in seconds."""
        return 1.0 / self.ticks_per_second

    @property
    def sentinel_bytes(self) -> bytes:
        """The sentinel as it appears on the wire."""
        return self.sentinel.encode("utf-8")


# Singleton instance
settings = Settings.model_validate({})
