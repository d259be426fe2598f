"""Tests for the Orchestrator — wiring and stage assembly."""

from __future__ import annotations

from pathlib import Path

import pytest

from deployforge.config import ProdConfig
from deployforge.core.builder import BuildContext
from deployforge.core.orchestrator import Orchestrator
from deployforge.core.production_guard import ProductionConfigError
from deployforge.core.secret_scope import InMemoryCredentialStore
from deployforge.models.config import PipelineConfig
from deployforge.models.runs import RunStatus
from deployforge.models.secrets import EnvironmentScope
from deployforge.models.stages import STAGE_ORDER
from deployforge.stages import CommandStage, SmokeTestStage
from deployforge.targets import InMemoryDeploymentTarget


def _orchestrator(tmp_dir: Path, **overrides) -> Orchestrator:
    prod_config = overrides.pop("prod_config", ProdConfig(_env_file=None))
    values: dict[str, object] = {
        "artifact_store_path": tmp_dir / "artifacts",
        "ledger_db_path": tmp_dir / "ledger.db",
        "tag_db_path": tmp_dir / "tags.db",
    }
    values.update(overrides)
    return Orchestrator(
        PipelineConfig(**values),
        dev_target=InMemoryDeploymentTarget("dev"),
        prod_target=InMemoryDeploymentTarget("production"),
        credential_store=InMemoryCredentialStore(),
        prod_config=prod_config,
    )


class TestOrchestrator:
    def test_storage_created(self, tmp_dir: Path):
        orch = _orchestrator(tmp_dir)
        assert (tmp_dir / "ledger.db").exists()
        assert orch.registry.store is orch.artifact_store

    def test_build_stages_in_order(self, tmp_dir: Path, source_dir: Path):
        orch = _orchestrator(tmp_dir, dev_url="http://dev", prod_url="http://prod")
        stages = orch.build_stages(BuildContext(source_dir=source_dir, commit_sha="abc"))

        assert [s.stage_id for s in stages] == STAGE_ORDER
        assert [s.scope for s in stages] == [
            None,
            None,
            EnvironmentScope.DEV,
            EnvironmentScope.DEV,
            EnvironmentScope.DEV,
            EnvironmentScope.PRODUCTION,
            EnvironmentScope.PRODUCTION,
        ]
        assert stages[0].produces_artifact is True
        assert not any(s.produces_artifact for s in stages[1:])

    def test_stage_timeouts_from_config(self, tmp_dir: Path, source_dir: Path):
        orch = _orchestrator(tmp_dir, stage_timeout_seconds=42.0)
        stages = orch.build_stages(BuildContext(source_dir=source_dir, commit_sha="abc"))
        assert all(s.timeout_seconds == 42.0 for s in stages[1:])
        assert isinstance(stages[1], CommandStage)
        assert isinstance(stages[3], SmokeTestStage)

    def test_missing_dev_url_fails_dev_smoke(self, tmp_dir: Path, source_dir: Path):
        orch = _orchestrator(tmp_dir)
        run = orch.run("abc123", source_dir)
        assert run.status == RunStatus.FAILED
        assert run.failed_stage == "smoke-test-dev"
        assert "no health endpoint" in run.error_message
        assert orch.verify_chain(run.run_id)

    def test_production_guard_runs_first(self, tmp_dir: Path):
        with pytest.raises(ProductionConfigError):
            _orchestrator(
                tmp_dir,
                prod_config=ProdConfig(_env_file=None, environment="production"),
            )
        assert not (tmp_dir / "ledger.db").exists()

    def test_truncated_stage_list_is_refused_before_recording(
        self, tmp_dir: Path, source_dir: Path
    ):
        orch = _orchestrator(tmp_dir)
        stages = orch.build_stages(BuildContext(source_dir=source_dir, commit_sha="abc"))
        with pytest.raises(ValueError):
            orch.run("abc123", source_dir, stages=[stages[0], stages[2]])
        assert orch.ledger.get_all_run_ids() == []
