"""``deployforge probe URL`` — one-off health probe with a bounded budget."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape

from deployforge.config import config
from deployforge.core.errors import ProbeExhausted
from deployforge.core.health_prober import HealthProber
from deployforge.models.health import ProbeSpec

console = Console()


def probe_cmd(
    base_url: str = typer.Argument(..., help="Base URL of the service."),
    path: str = typer.Option(None, "--path", help="Health path (default from settings)."),
    expected_status: int = typer.Option(None, "--expect", help="Expected status code."),
    attempts: int = typer.Option(None, "--attempts", "-n", min=1, help="Maximum attempts."),
    interval: float = typer.Option(
        None, "--interval", "-i", min=0, help="Seconds between attempts."
    ),
) -> None:
    """Poll BASE_URL + path until it answers with the expected status."""
    spec = ProbeSpec(
        base_url=base_url,
        path=path or config.health_path,
        expected_status=expected_status or config.expected_status,
        max_attempts=attempts or config.probe_max_attempts,
        interval_seconds=config.probe_interval_seconds if interval is None else interval,
        request_timeout_seconds=config.probe_request_timeout_seconds,
    )
    try:
        outcome = HealthProber().probe(spec)
    except ProbeExhausted as exc:
        console.print(f"[bold red]Unhealthy:[/bold red] {escape(exc.reason)}")
        raise typer.Exit(code=1) from exc
    console.print(
        f"[green]Healthy:[/green] {outcome.url} "
        f"(status {outcome.last_status_code}, attempt {outcome.attempts}/{spec.max_attempts})"
    )
