"""Unit tests for the CLI — command registration and basic behavior."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from deployforge.cli.app import app
from deployforge.core.hasher import digest_of
from deployforge.core.run_ledger import RunLedger
from deployforge.core.tag_registry import TagRegistry
from deployforge.models.ledger import RUN_STAGE_ID, LedgerEntry

runner = CliRunner()


# ---------------------------------------------------------------------------
# Test: CLI help and registration
# ---------------------------------------------------------------------------


class TestCliApp:
    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        # Typer's no_args_is_help may exit with 0 or 2 depending on version
        assert result.exit_code in (0, 2)
        assert "usage" in result.output.lower()

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("run", "monitor", "resolve", "probe"):
            assert command in result.output

    @pytest.mark.parametrize("command", ["run", "monitor", "resolve", "probe"])
    def test_command_help(self, command: str):
        assert runner.invoke(app, [command, "--help"]).exit_code == 0


# ---------------------------------------------------------------------------
# Test: resolve
# ---------------------------------------------------------------------------


class TestResolveCommand:
    def test_resolves_tag(self, tmp_dir: Path):
        db = tmp_dir / "tags.db"
        digest = digest_of(b"release")
        TagRegistry(db).publish_release("1.2.3", digest)

        result = runner.invoke(app, ["resolve", "v1.2", "--tags", str(db)])
        assert result.exit_code == 0
        assert digest in result.output

    def test_unknown_tag(self, tmp_dir: Path):
        db = tmp_dir / "tags.db"
        TagRegistry(db)
        result = runner.invoke(app, ["resolve", "v9", "--tags", str(db)])
        assert result.exit_code == 1
        assert "Unknown tag" in result.output

    def test_missing_registry(self, tmp_dir: Path):
        result = runner.invoke(app, ["resolve", "latest", "--tags", str(tmp_dir / "none.db")])
        assert result.exit_code == 1

    def test_list_all(self, tmp_dir: Path):
        db = tmp_dir / "tags.db"
        TagRegistry(db).set("latest", digest_of(b"x"))
        result = runner.invoke(app, ["resolve", "--all", "--tags", str(db)])
        assert result.exit_code == 0
        assert "latest" in result.output


# ---------------------------------------------------------------------------
# Test: monitor
# ---------------------------------------------------------------------------


class TestMonitorCommand:
    def test_missing_ledger(self, tmp_dir: Path):
        result = runner.invoke(app, ["monitor", "--ledger", str(tmp_dir / "none.db")])
        assert result.exit_code == 1
        assert "Ledger not found" in result.output

    def test_latest_run_by_default(self, tmp_dir: Path):
        db = tmp_dir / "ledger.db"
        RunLedger(db).append(LedgerEntry(
            run_id="df-run-1", stage_id=RUN_STAGE_ID, state_transition="pending->running",
        ))
        result = runner.invoke(app, ["monitor", "--ledger", str(db), "--verify-chain"])
        assert result.exit_code == 0
        assert "df-run-1" in result.output
        assert "is valid" in result.output

    def test_unknown_run(self, tmp_dir: Path):
        db = tmp_dir / "ledger.db"
        RunLedger(db).append(LedgerEntry(
            run_id="df-run-1", stage_id=RUN_STAGE_ID, state_transition="pending->running",
        ))
        result = runner.invoke(app, ["monitor", "df-other", "--ledger", str(db)])
        assert result.exit_code == 1
        assert "Run not found" in result.output


# ---------------------------------------------------------------------------
# Test: run
# ---------------------------------------------------------------------------


class TestRunCommand:
    def test_fails_without_dev_health_url(
        self, tmp_dir: Path, source_dir: Path, monkeypatch
    ):
        monkeypatch.chdir(tmp_dir)
        result = runner.invoke(app, ["run", str(source_dir), "--commit", "abc123"])

        assert result.exit_code == 1
        assert "smoke-test-dev" in result.output
        assert (tmp_dir / ".deployforge" / "ledger.db").exists()
        assert (tmp_dir / ".deployforge" / "targets" / "dev.json").exists()
        assert not (tmp_dir / ".deployforge" / "targets" / "production.json").exists()

    def test_failing_unit_tests(self, tmp_dir: Path, source_dir: Path, monkeypatch):
        monkeypatch.chdir(tmp_dir)
        result = runner.invoke(
            app,
            ["run", str(source_dir), "--commit", "abc123", "--unit-test-cmd", "false"],
        )
        assert result.exit_code == 1
        assert "unit-test" in result.output
        assert not (tmp_dir / ".deployforge" / "targets" / "dev.json").exists()


# ---------------------------------------------------------------------------
# Test: probe
# ---------------------------------------------------------------------------


class TestProbeCommand:
    def test_unreachable_endpoint(self):
        result = runner.invoke(
            app,
            ["probe", "http://127.0.0.1:9", "--attempts", "1", "--interval", "0"],
        )
        assert result.exit_code == 1
        assert "Unhealthy" in result.output

    def test_malformed_url_reports_unhealthy(self):
        result = runner.invoke(
            app,
            ["probe", "http://bad\x01host", "--attempts", "1", "--interval", "0"],
        )
        assert result.exit_code == 1
        assert "Unhealthy" in result.output
