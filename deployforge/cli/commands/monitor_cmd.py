"""``deployforge monitor RUN_ID`` — show the Run Monitor for a pipeline run.

Displays every stage's state, the artifact digest, any rollback outcome
and the hash chain status.  Supports continuous live mode and chain
verification.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from deployforge.config import config
from deployforge.core.run_ledger import LedgerIntegrityError, RunLedger
from deployforge.monitor.projection import MonitorProjection
from deployforge.monitor.renderer import MonitorRenderer

console = Console()


def monitor_cmd(
    run_id: str = typer.Argument(
        None,
        help="The pipeline run ID to monitor (default: the latest run).",
    ),
    live: bool = typer.Option(
        False, "--live", "-L",
        help="Enable continuous live monitoring mode (Ctrl+C to exit).",
    ),
    verify_chain: bool = typer.Option(
        False, "--verify-chain", "-V",
        help="Verify the hash chain integrity before displaying.",
    ),
    refresh_hz: float = typer.Option(
        2.0, "--refresh", "-r", help="Refresh rate in Hz for live mode.",
    ),
    ledger_db: Path = typer.Option(
        None, "--ledger", "-l", help="Path to the ledger SQLite database.",
    ),
) -> None:
    """Show the Run Monitor for a pipeline run.

    The monitor is a pure read-only projection over the Run Ledger.
    """
    db_path = ledger_db or config.ledger_path
    if not db_path.exists():
        console.print(f"[bold red]Ledger not found:[/bold red] {db_path}")
        console.print("[dim]Start a run first with: deployforge run[/dim]")
        raise typer.Exit(code=1)

    ledger = RunLedger(db_path)
    projection = MonitorProjection(ledger)
    renderer = MonitorRenderer(console=console)

    all_runs = ledger.get_all_run_ids()
    run_id = run_id or (all_runs[0] if all_runs else "")
    if run_id not in all_runs:
        console.print(f"[bold red]Run not found:[/bold red] {run_id or '-'}")
        if all_runs:
            console.print("\n[bold]Available runs:[/bold]")
            for rid in all_runs[:10]:
                console.print(f"  [cyan]{rid}[/cyan]")
            if len(all_runs) > 10:
                console.print(f"  [dim]... and {len(all_runs) - 10} more[/dim]")
        raise typer.Exit(code=1)

    if verify_chain:
        console.print("[bold cyan]Verifying hash chain...[/bold cyan]")
        try:
            renderer.print_chain_verification(run_id, ledger.verify_chain(run_id))
        except LedgerIntegrityError as exc:
            console.print(f"[bold red]Chain verification failed:[/bold red] {exc}")
            renderer.print_chain_verification(run_id, False)
            raise typer.Exit(code=1) from exc
        console.print()

    if live:
        console.print(
            f"[dim]Live monitoring run {run_id} at {refresh_hz} Hz. Press Ctrl+C to exit.[/dim]"
        )
        renderer.render_live(run_id, projection, refresh_hz=refresh_hz)
    else:
        renderer.print_snapshot(projection.snapshot(run_id))
