"""Package version.

Bump rules:
- Patch (1.0.x): bug fixes, logging or config tweaks
- Minor (1.x.0): new options, new drain modes, protocol additions that
  existing interpreters can ignore
- Major (x.0.0): changes to the tick line or the sentinel handling
"""

__version__ = "1.0.0"
