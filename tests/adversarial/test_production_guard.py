"""Adversarial tests for the production configuration guard.

These tests assert that production mode enforces hard constraints and that
permissive settings cannot leak into production runs.
"""

from __future__ import annotations

import pytest

from deployforge.config import ProdConfig
from deployforge.core.orchestrator import Orchestrator
from deployforge.core.production_guard import (
    MAX_PRODUCTION_PROBE_SECONDS,
    ProductionConfigError,
    enforce_production_constraints,
)
from deployforge.core.secret_scope import InMemoryCredentialStore
from deployforge.models.config import PipelineConfig
from deployforge.targets import InMemoryDeploymentTarget


def _prod(**kwargs) -> ProdConfig:
    values = {"environment": "production", "prod_url": "https://api.example.com"}
    values.update(kwargs)
    return ProdConfig(_env_file=None, **values)


# ---------------------------------------------------------------------------
# Test: debug mode
# ---------------------------------------------------------------------------


class TestProductionGuardDebugMode:
    """Production must not run with debug=True."""

    def test_debug_true_in_production_raises(self):
        with pytest.raises(ProductionConfigError, match="debug=True"):
            enforce_production_constraints(_prod(debug=True))

    def test_debug_false_in_production_passes(self):
        enforce_production_constraints(_prod(debug=False))  # should not raise

    def test_debug_true_in_development_allowed(self):
        enforce_production_constraints(ProdConfig(_env_file=None, debug=True))


# ---------------------------------------------------------------------------
# Test: production health endpoint and probe budget
# ---------------------------------------------------------------------------


class TestProductionGuardProbing:
    def test_missing_prod_url_raises(self):
        with pytest.raises(ProductionConfigError, match="DEPLOYFORGE_PROD_URL"):
            enforce_production_constraints(_prod(prod_url=""))

    def test_pipeline_prod_url_wins_over_settings(self):
        pipeline = PipelineConfig(prod_url="https://api.example.com")
        enforce_production_constraints(_prod(prod_url=""), pipeline)

    def test_pipeline_without_prod_url_raises(self):
        with pytest.raises(ProductionConfigError):
            enforce_production_constraints(_prod(), PipelineConfig(prod_url=""))

    def test_default_budget_accepted(self):
        assert 15 * 10.0 <= MAX_PRODUCTION_PROBE_SECONDS
        enforce_production_constraints(_prod())

    def test_oversized_budget_rejected(self):
        pipeline = PipelineConfig(
            prod_url="https://api.example.com",
            probe_max_attempts=1000,
            probe_interval_seconds=60.0,
        )
        with pytest.raises(ProductionConfigError, match="Probe budget"):
            enforce_production_constraints(_prod(), pipeline)

    def test_all_violations_reported_together(self):
        with pytest.raises(ProductionConfigError) as excinfo:
            enforce_production_constraints(
                _prod(debug=True, prod_url="", probe_max_attempts=1000)
            )
        message = str(excinfo.value)
        assert "debug=True" in message
        assert "DEPLOYFORGE_PROD_URL" in message
        assert "Probe budget" in message


# ---------------------------------------------------------------------------
# Test: the orchestrator cannot be built around a bad production config
# ---------------------------------------------------------------------------


class TestOrchestratorGuard:
    def test_orchestrator_refuses_debug_production(self, tmp_path):
        pipeline_config = PipelineConfig(
            ledger_db_path=tmp_path / "ledger.db",
            artifact_store_path=tmp_path / "artifacts",
            tag_db_path=tmp_path / "tags.db",
            prod_url="https://api.example.com",
        )
        with pytest.raises(ProductionConfigError):
            Orchestrator(
                pipeline_config,
                dev_target=InMemoryDeploymentTarget("dev"),
                prod_target=InMemoryDeploymentTarget("production"),
                credential_store=InMemoryCredentialStore(),
                prod_config=_prod(debug=True),
            )

    def test_orchestrator_accepts_valid_production(self, tmp_path):
        pipeline_config = PipelineConfig(
            ledger_db_path=tmp_path / "ledger.db",
            artifact_store_path=tmp_path / "artifacts",
            tag_db_path=tmp_path / "tags.db",
            prod_url="https://api.example.com",
        )
        orchestrator = Orchestrator(
            pipeline_config,
            dev_target=InMemoryDeploymentTarget("dev"),
            prod_target=InMemoryDeploymentTarget("production"),
            credential_store=InMemoryCredentialStore(),
            prod_config=_prod(),
        )
        assert orchestrator.ledger is not None
