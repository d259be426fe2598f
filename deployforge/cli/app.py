"""Main Typer application — imports and registers all CLI commands.

Entry point: ``deployforge`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from deployforge.cli.commands.monitor_cmd import monitor_cmd
from deployforge.cli.commands.probe import probe_cmd
from deployforge.cli.commands.resolve import resolve_cmd
from deployforge.cli.commands.run_cmd import run_cmd
from deployforge.config import config

app = typer.Typer(
    name="deployforge",
    help="Deployforge: build once, validate in dev, promote to production.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


def configure_logging(level: str) -> None:
    """Route all ``deployforge`` loggers through a Rich handler at *level*."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    handler = RichHandler(rich_tracebacks=True, show_path=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt="[%X]"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())
    # Request logs would echo probe URLs on every attempt.
    logging.getLogger("httpx").setLevel(logging.WARNING)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None,
        "--log-level",
        help="Log level (defaults to DEPLOYFORGE_LOG_LEVEL).",
    ),
) -> None:
    configure_logging(log_level or ("DEBUG" if config.debug else config.log_level))


# Register subcommands
app.command(name="run", help="Build, validate in dev, and promote to production.")(run_cmd)
app.command(name="monitor", help="Show the Run Monitor for a run.")(monitor_cmd)
app.command(name="resolve", help="Resolve a tag to its artifact digest.")(resolve_cmd)
app.command(name="probe", help="Probe a health endpoint once with a bounded budget.")(probe_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
