"""Unit tests for the MonitorRenderer — Rich panel output and state styles."""

from __future__ import annotations

from datetime import datetime, timezone

from rich.console import Console
from rich.panel import Panel

from deployforge.models.stages import StageState
from deployforge.monitor.projection import MonitorSnapshot, StageStatus
from deployforge.monitor.renderer import _STATE_LABELS, _STATE_STYLES, MonitorRenderer

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_snapshot(
    chain_valid: bool = True,
    status: str = "running",
    rollback: dict | None = None,
    stages: list[StageStatus] | None = None,
) -> MonitorSnapshot:
    default_stages = stages or [
        StageStatus(stage_id="build", display_name="Build", state=StageState.PASSED),
        StageStatus(stage_id="unit-test", display_name="Unit Tests", state=StageState.RUNNING),
        StageStatus(stage_id="deploy-dev", display_name="Deploy to Dev"),
    ]
    return MonitorSnapshot(
        run_id="test-run-001",
        status=status,
        artifact_digest="sha256:" + "9f" * 32,
        stages=default_stages,
        rollback=rollback,
        chain_valid=chain_valid,
        last_updated=datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc),
    )


def _render(snapshot: MonitorSnapshot) -> str:
    console = Console(record=True, width=160)
    MonitorRenderer(console=console).print_snapshot(snapshot)
    return console.export_text()


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestStateMappings:
    def test_every_state_has_style_and_label(self):
        for state in StageState:
            assert state in _STATE_STYLES
            assert state in _STATE_LABELS


class TestRenderSnapshot:
    def test_returns_panel(self):
        assert isinstance(MonitorRenderer().render_snapshot(_make_snapshot()), Panel)

    def test_output_contains_stages_and_digest(self):
        text = _render(_make_snapshot())
        assert "Deployforge Run Monitor" in text
        assert "Build" in text
        assert "Deploy to Dev" in text
        assert "PASSED" in text
        assert "NOT STARTED" in text
        assert "sha256:" + "9f" * 32 in text
        assert "1/3" in text

    def test_chain_status(self):
        assert "valid" in _render(_make_snapshot(chain_valid=True))
        assert "BROKEN" in _render(_make_snapshot(chain_valid=False))

    def test_failed_stage_details(self):
        stages = [
            StageStatus(
                stage_id="build", display_name="Build", state=StageState.FAILED,
                error_type="BuildError", error_message="exited with 2: [error] bad",
            ),
            StageStatus(
                stage_id="unit-test", display_name="Unit Tests",
                state=StageState.SKIPPED, upstream_failure="build",
            ),
        ]
        text = _render(_make_snapshot(status="failed", stages=stages))
        assert "exited with 2: [error] bad" in text
        assert "after build" in text

    def test_rollback_succeeded(self):
        text = _render(_make_snapshot(
            status="rolled_back",
            rollback={"succeeded": True, "restored_digest": "sha256:prev"},
        ))
        assert "restored sha256:prev" in text

    def test_rollback_failed_needs_manual_intervention(self):
        text = _render(_make_snapshot(
            status="rolled_back",
            rollback={
                "succeeded": False,
                "error_type": "NoPriorDeployment",
                "error_message": "Rollback of 'app' failed",
                "requires_manual_intervention": True,
            },
        ))
        assert "Rollback failed" in text
        assert "manual intervention required" in text

    def test_chain_verification_messages(self):
        console = Console(record=True, width=120)
        renderer = MonitorRenderer(console=console)
        renderer.print_chain_verification("r1", True)
        renderer.print_chain_verification("r1", False)
        text = console.export_text()
        assert "is valid" in text
        assert "BROKEN" in text
