"""Execution environment for esoteric languages.

Drives an external interpreter as a subordinate process, feeding it one
``K=<key>T=<elapsed-ms>`` line per tick and relaying its output to the
terminal until the ``>>ESOPLAY.TERMINATE<<`` sentinel appears.

Structure:
- esoplay/config.py: Configuration via pydantic-settings
- esoplay/models.py: Tick messages, launch reports, process handles, results
- esoplay/core.py: Session orchestration (run_session)
- esoplay/loop.py: Session state and the tick loop
- esoplay/reaper.py: Final wait on the process tree
- esoplay/lib/: Reusable pieces
  - channel.py: Duplex pipe channel and closing discipline
  - bridge.py: Forked bridge that launches the interpreter
  - keys.py: Keyboard token sampling with a tick timeout
  - protocol.py: Tick line parsing and sentinel stripping
- esoplay/cli/: typer command line
"""

from esoplay.version import __version__

__all__ = ["__version__"]
