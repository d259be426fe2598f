"""``deployforge run SOURCE_DIR`` — execute the full pipeline for one commit.

Exit codes: 0 succeeded, 1 failed, 2 rolled back.
"""

from __future__ import annotations

import shlex
import subprocess
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from deployforge.config import config
from deployforge.core.errors import PipelineError
from deployforge.core.orchestrator import Orchestrator
from deployforge.core.production_guard import ProductionConfigError
from deployforge.core.secret_scope import EnvironmentCredentialStore
from deployforge.models.config import PipelineConfig
from deployforge.models.runs import PipelineRun, RunStatus
from deployforge.monitor.projection import MonitorProjection
from deployforge.monitor.renderer import MonitorRenderer
from deployforge.routing.sinks import NotificationSink
from deployforge.routing.sinks.local_file import LocalFileSink
from deployforge.routing.sinks.webhook import WebhookSink
from deployforge.targets import LocalFileDeploymentTarget

console = Console()

EXIT_CODES: dict[RunStatus, int] = {
    RunStatus.SUCCEEDED: 0,
    RunStatus.FAILED: 1,
    RunStatus.ROLLED_BACK: 2,
}


def _split(command: str | None) -> list[str] | None:
    return shlex.split(command) if command else None


def _detect_commit(source_dir: Path) -> str:
    try:
        completed = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            cwd=source_dir,
            capture_output=True,
            text=True,
            timeout=10,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        return "unknown"
    return completed.stdout.strip() if completed.returncode == 0 else "unknown"


def _sinks() -> list[NotificationSink]:
    sinks: list[NotificationSink] = []
    if config.events_path is not None:
        sinks.append(LocalFileSink(config.events_path))
    if config.webhook_url:
        sinks.append(WebhookSink(config.webhook_url))
    return sinks


def _summary(run: PipelineRun) -> Panel:
    lines = [
        f"[bold]Run:[/bold] {run.run_id}",
        f"[bold]Commit:[/bold] {run.commit_sha}",
        f"[bold]Digest:[/bold] {run.artifact_digest or '-'}",
        f"[bold]Status:[/bold] {run.status.value}",
    ]
    if run.failed_stage:
        lines.append(f"[bold red]Failed stage:[/bold red] {run.failed_stage}")
        lines.append(f"[red]{escape(run.error_message or '')}[/red]")
    if run.rollback is not None:
        if run.rollback.succeeded:
            lines.append(f"[magenta]Rolled back to {run.rollback.restored_digest}[/magenta]")
        else:
            lines.append(
                f"[bold red]Rollback failed:[/bold red] {escape(run.rollback.error_message or '')}"
            )
            if run.rollback.requires_manual_intervention:
                lines.append("[bold red]Manual intervention required.[/bold red]")
    style = {0: "green", 1: "red", 2: "magenta"}[EXIT_CODES[run.status]]
    return Panel("\n".join(lines), title="[bold]Deployforge[/bold]", border_style=style)


def run_cmd(
    source_dir: Path = typer.Argument(
        Path("."), help="Build context directory.", exists=True, file_okay=False,
    ),
    commit: str = typer.Option(None, "--commit", "-c", help="Commit id (default: git HEAD)."),
    service: str = typer.Option(None, "--service", "-s", help="Service name on the targets."),
    build_cmd: str = typer.Option(None, "--build-cmd", help="Build command."),
    unit_test_cmd: str = typer.Option(None, "--unit-test-cmd", help="Unit test command."),
    integration_test_cmd: str = typer.Option(
        None, "--integration-test-cmd", help="Integration test command."
    ),
    dev_url: str = typer.Option(None, "--dev-url", help="Dev base URL."),
    prod_url: str = typer.Option(None, "--prod-url", help="Production base URL."),
    release_version: str = typer.Option(
        None, "--release", help="Release version, e.g. 1.4.2 (tags v1.4.2, v1.4, v1)."
    ),
    probe_attempts: int = typer.Option(None, "--probe-attempts", min=1, help="Probe attempts."),
    probe_interval: float = typer.Option(
        None, "--probe-interval", min=0, help="Seconds between probe attempts."
    ),
    stage_timeout: float = typer.Option(None, "--stage-timeout", help="Per-stage timeout."),
) -> None:
    """Run build -> unit-test -> deploy-dev -> smoke-test-dev -> integration-test
    -> deploy-prod -> smoke-test-prod for one commit.
    """
    pipeline_config = PipelineConfig.from_settings(
        config,
        service_name=service,
        build_command=_split(build_cmd),
        unit_test_command=_split(unit_test_cmd),
        integration_test_command=_split(integration_test_cmd),
        dev_url=dev_url,
        prod_url=prod_url,
        release_version=release_version,
        probe_max_attempts=probe_attempts,
        probe_interval_seconds=probe_interval,
        stage_timeout_seconds=stage_timeout,
    )

    try:
        orchestrator = Orchestrator(
            pipeline_config,
            dev_target=LocalFileDeploymentTarget("dev", config.targets_path / "dev.json"),
            prod_target=LocalFileDeploymentTarget(
                "production", config.targets_path / "production.json"
            ),
            credential_store=EnvironmentCredentialStore(),
            prod_config=config,
            sinks=_sinks(),
        )
    except ProductionConfigError as exc:
        console.print(f"[bold red]{escape(str(exc))}[/bold red]")
        raise typer.Exit(code=1) from exc

    commit_sha = commit or _detect_commit(source_dir)
    try:
        run = orchestrator.run(commit_sha, source_dir)
    except PipelineError as exc:
        console.print(f"[bold red]Pipeline error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc
    finally:
        orchestrator.dispatcher.close()

    MonitorRenderer(console=console).print_snapshot(
        MonitorProjection(orchestrator.ledger).snapshot(run.run_id)
    )
    console.print(_summary(run))
    raise typer.Exit(code=EXIT_CODES[run.status])
