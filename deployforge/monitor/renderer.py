"""Rich terminal renderer for the Deployforge Run Monitor.

Turns ``MonitorSnapshot`` into Rich renderables for terminal display,
with color-coded stage states and optional continuous ``Rich.Live`` mode.

Color scheme
------------
- green     : PASSED
- red       : FAILED
- yellow    : RUNNING
- dim       : NOT_STARTED, SKIPPED
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from rich.console import Console, Group
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from deployforge.models.stages import StageState

if TYPE_CHECKING:
    from deployforge.monitor.projection import MonitorProjection, MonitorSnapshot


# ---------------------------------------------------------------------------
# State -> Rich style mapping
# ---------------------------------------------------------------------------

_STATE_STYLES: dict[StageState, str] = {
    StageState.PASSED: "bold green",
    StageState.FAILED: "bold red",
    StageState.RUNNING: "bold yellow",
    StageState.NOT_STARTED: "dim",
    StageState.SKIPPED: "dim",
}

_STATE_LABELS: dict[StageState, str] = {
    StageState.PASSED: "[green]PASSED[/green]",
    StageState.FAILED: "[bold red]FAILED[/bold red]",
    StageState.RUNNING: "[yellow]RUNNING[/yellow]",
    StageState.NOT_STARTED: "[dim]NOT STARTED[/dim]",
    StageState.SKIPPED: "[dim]SKIPPED[/dim]",
}

_RUN_STATUS_STYLES: dict[str, str] = {
    "succeeded": "bold green",
    "failed": "bold red",
    "rolled_back": "bold magenta",
    "running": "bold yellow",
}


class MonitorRenderer:
    """Renders ``MonitorSnapshot`` as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Single snapshot render
    # ------------------------------------------------------------------

    def render_snapshot(self, snapshot: MonitorSnapshot) -> Panel:
        """Render a snapshot as a Rich Panel containing a Table."""
        table = self._build_stage_table(snapshot)

        style = _RUN_STATUS_STYLES.get(snapshot.status, "")
        status = f"[{style}]{snapshot.status}[/{style}]" if style else snapshot.status
        summary_parts: list[str] = [
            f"[bold]Run:[/bold] {snapshot.run_id}",
            f"[bold]Status:[/bold] {status}",
            f"[bold]Progress:[/bold] {snapshot.completed_count}/{snapshot.total_stages}",
            f"[bold]Digest:[/bold] {snapshot.artifact_digest or '-'}",
        ]
        chain_status = (
            "[green]valid[/green]" if snapshot.chain_valid else "[bold red]BROKEN[/bold red]"
        )
        summary_parts.append(f"[bold]Chain:[/bold] {chain_status}")

        lines = [Text.from_markup("  |  ".join(summary_parts))]
        if snapshot.rollback is not None:
            lines.append(Text.from_markup(self._rollback_line(snapshot.rollback)))

        return Panel(
            Group(table, Text(""), *lines),
            title="[bold]Deployforge Run Monitor[/bold]",
            subtitle=f"Last updated: {snapshot.last_updated.strftime('%Y-%m-%d %H:%M:%S UTC')}",
            border_style="blue",
            padding=(1, 2),
        )

    @staticmethod
    def _rollback_line(rollback: dict) -> str:
        if rollback.get("succeeded"):
            return (
                f"[magenta][bold]Rollback:[/bold] restored "
                f"{rollback.get('restored_digest') or '-'}[/magenta]"
            )
        manual = " (manual intervention required)" if rollback.get(
            "requires_manual_intervention"
        ) else ""
        return (
            f"[bold red]Rollback failed:[/bold red] "
            f"{escape(str(rollback.get('error_message') or rollback.get('error_type')))}{manual}"
        )

    def _build_stage_table(self, snapshot: MonitorSnapshot) -> Table:
        table = Table(show_header=True, header_style="bold cyan", expand=True)

        table.add_column("#", style="dim", width=3, justify="right")
        table.add_column("Stage", min_width=25)
        table.add_column("State", min_width=12, justify="center")
        table.add_column("Details", min_width=20)

        for i, stage in enumerate(snapshot.stages):
            name_style = _STATE_STYLES.get(stage.state, "")

            details_parts: list[str] = []
            if stage.error_message:
                details_parts.append(f"[red]{escape(stage.error_message)}[/red]")
            if stage.upstream_failure:
                details_parts.append(f"[dim]after {stage.upstream_failure}[/dim]")
            if stage.entered_at:
                details_parts.append(f"[dim]{stage.entered_at.strftime('%H:%M:%S')}[/dim]")
            details = " | ".join(details_parts) if details_parts else "[dim]-[/dim]"

            table.add_row(
                str(i),
                f"[{name_style}]{stage.display_name}[/{name_style}]",
                _STATE_LABELS.get(stage.state, stage.state.value),
                details,
            )

        return table

    # ------------------------------------------------------------------
    # Continuous live rendering
    # ------------------------------------------------------------------

    def render_live(
        self,
        run_id: str,
        projection: MonitorProjection,
        *,
        refresh_hz: float = 2.0,
    ) -> None:
        """Re-render the run until interrupted with Ctrl+C."""
        interval = 1.0 / max(refresh_hz, 0.1)

        with Live(console=self.console, refresh_per_second=refresh_hz) as live:
            try:
                while True:
                    live.update(self.render_snapshot(projection.snapshot(run_id)))
                    time.sleep(interval)
            except KeyboardInterrupt:
                live.update(self.render_snapshot(projection.snapshot(run_id)))

    # ------------------------------------------------------------------
    # Standalone print
    # ------------------------------------------------------------------

    def print_snapshot(self, snapshot: MonitorSnapshot) -> None:
        self.console.print(self.render_snapshot(snapshot))

    def print_chain_verification(self, run_id: str, valid: bool) -> None:
        if valid:
            self.console.print(f"[green]Hash chain for run {run_id} is valid.[/green]")
        else:
            self.console.print(f"[bold red]Hash chain for run {run_id} is BROKEN![/bold red]")
