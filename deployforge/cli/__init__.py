"""Deployforge CLI — Typer-based command-line interface.

Provides the ``deployforge`` command with subcommands for running the
pipeline, monitoring a run, resolving release tags, and probing a health
endpoint.

All output uses Rich for formatted terminal display.
"""
