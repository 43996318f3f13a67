"""esoplay command line.

Runs a file with an interpreter under the tick supervisor. Interpreter
output goes to stdout; diagnostics and logs go to stderr.

Usage:
    esoplay ./bf examples/snake.bf
    esoplay --ticks-per-second 30 python3 game.py
    uv run python -m esoplay --drain eof ./interp prog.txt
"""

import logging
from enum import StrEnum
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from esoplay.config import Settings, settings
from esoplay.core import run_session
from esoplay.lib.bridge import InterpreterLaunchError
from esoplay.lib.channel import ChannelError
from esoplay.models import EndReason, SessionResult
from esoplay.version import __version__

logger = logging.getLogger(__name__)

console = Console(stderr=True, highlight=False)

EXIT_STARTUP_FAILURE = 1
EXIT_LAUNCH_FAILURE = 127
EXIT_INTERRUPTED = 130

app = typer.Typer(
    name="esoplay",
    help="Execution environment for esoteric languages",
    no_args_is_help=True,
    add_completion=False,
    pretty_exceptions_show_locals=False,
)


class DrainChoice(StrEnum):
    bounded = "bounded"
    eof = "eof"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"esoplay {__version__}")
        raise typer.Exit()


def _print_summary(result: SessionResult) -> None:
    """Print a session summary to stderr."""
    table = Table.grid(padding=(0, 2))
    table.add_row("Interpreter", f"{result.interpreter} {result.file}")
    table.add_row("Ended by", str(result.end_reason))
    table.add_row("Ticks sent", str(result.ticks_sent))
    table.add_row("Bytes relayed", str(result.bytes_forwarded))
    table.add_row("Last tick", f"{result.last_elapsed_ms} ms")
    if result.bridge_status is not None:
        table.add_row("Bridge status", str(result.bridge_status))
    if result.duration_seconds is not None:
        table.add_row("Duration", f"{result.duration_seconds:.2f}s")
    console.print(Panel(table, title="esoplay session", expand=False))


@app.command(no_args_is_help=True)
def play(
    interpreter: Annotated[
        str, typer.Argument(help="interpreter to call to execute the file")
    ],
    file: Annotated[str, typer.Argument(help="file to play")],
    ticks_per_second: Annotated[
        int | None,
        typer.Option(
            "--ticks-per-second",
            "-t",
            min=1,
            help="Tick rate (default: ESOPLAY_TICKS_PER_SECOND or 10)",
        ),
    ] = None,
    drain: Annotated[
        DrainChoice | None,
        typer.Option("--drain", help="How output is read each tick"),
    ] = None,
    summary: Annotated[
        bool,
        typer.Option("--summary", help="Print a session summary to stderr"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging"),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show the version and exit",
        ),
    ] = False,
) -> None:
    """Play FILE with INTERPRETER, feeding it one K=<key>T=<ms> line per tick."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=settings.log_level)

    overrides: dict[str, object] = {}
    if ticks_per_second is not None:
        overrides["ticks_per_second"] = ticks_per_second
    if drain is not None:
        overrides["drain_mode"] = drain.value
    config = Settings.model_validate({**settings.model_dump(), **overrides})

    try:
        result = run_session(interpreter, file, config=config)
    except ChannelError as e:
        console.print(f"[bold red]error:[/] could not set up pipes: {escape(str(e))}")
        raise typer.Exit(EXIT_STARTUP_FAILURE)
    except InterpreterLaunchError as e:
        console.print(f"[bold red]error:[/] interpreter launch failed: {escape(str(e))}")
        raise typer.Exit(EXIT_LAUNCH_FAILURE)

    if summary:
        _print_summary(result)
    if result.end_reason is EndReason.INTERRUPTED:
        raise typer.Exit(EXIT_INTERRUPTED)


if __name__ == "__main__":
    app()
