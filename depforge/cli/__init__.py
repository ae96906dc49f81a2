"""depforge CLI: a Typer-based command-line interface.

Provides the ``depforge`` command: list artifacts, show the reconciliation
plan for a set of targets, and execute it.

All output uses Rich for formatted terminal display.
"""
