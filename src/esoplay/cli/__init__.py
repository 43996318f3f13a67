"""Command line entry point (``esoplay`` / ``python -m esoplay``)."""
