"""Tests for runtime settings and pipeline configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from deployforge.config import ProdConfig
from deployforge.models.config import PipelineConfig


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in ("ENVIRONMENT", "LOG_LEVEL", "DEBUG", "PROBE_MAX_ATTEMPTS", "PROD_URL"):
        monkeypatch.delenv(f"DEPLOYFORGE_{key}", raising=False)


class TestProdConfig:
    def test_defaults(self):
        config = ProdConfig(_env_file=None)
        assert config.environment == "development"
        assert config.log_level == "INFO"
        assert config.probe_max_attempts == 15
        assert config.probe_interval_seconds == 10.0
        assert config.forward_all_secrets is True

    def test_is_production(self):
        assert ProdConfig(_env_file=None).is_production is False
        assert ProdConfig(_env_file=None, environment="production").is_production is True

    def test_default_paths(self):
        config = ProdConfig(_env_file=None)
        assert config.ledger_path == Path(".deployforge/ledger.db")
        assert config.targets_path == Path(".deployforge/targets")
        assert config.events_path is None

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("DEPLOYFORGE_ENVIRONMENT", "production")
        monkeypatch.setenv("DEPLOYFORGE_PROBE_MAX_ATTEMPTS", "30")
        monkeypatch.setenv("DEPLOYFORGE_PROD_URL", "https://api.example.com")
        config = ProdConfig(_env_file=None)
        assert config.is_production
        assert config.probe_max_attempts == 30
        assert config.prod_url == "https://api.example.com"

    def test_env_file(self, tmp_dir: Path):
        env_file = tmp_dir / ".env"
        env_file.write_text("DEPLOYFORGE_LOG_LEVEL=DEBUG\nDEPLOYFORGE_DEV_URL=http://dev\n")
        config = ProdConfig(_env_file=env_file)
        assert config.log_level == "DEBUG"
        assert config.dev_url == "http://dev"

    def test_invalid_attempts_rejected(self, monkeypatch):
        monkeypatch.setenv("DEPLOYFORGE_PROBE_MAX_ATTEMPTS", "0")
        with pytest.raises(ValueError):
            ProdConfig(_env_file=None)


class TestPipelineConfig:
    def test_from_settings(self):
        settings = ProdConfig(
            _env_file=None, service_name="api", dev_url="http://dev", probe_max_attempts=5
        )
        config = PipelineConfig.from_settings(settings)
        assert config.service_name == "api"
        assert config.dev_url == "http://dev"
        assert config.probe_max_attempts == 5
        assert config.ledger_db_path == settings.ledger_path

    def test_overrides_skip_none(self):
        settings = ProdConfig(_env_file=None, dev_url="http://dev")
        config = PipelineConfig.from_settings(settings, dev_url=None, prod_url="http://prod")
        assert config.dev_url == "http://dev"
        assert config.prod_url == "http://prod"

    def test_probe_spec(self):
        config = PipelineConfig(health_path="/ready", probe_max_attempts=4, expected_status=204)
        spec = config.probe_spec("http://svc")
        assert spec.url == "http://svc/ready"
        assert spec.max_attempts == 4
        assert spec.expected_status == 204
        assert spec.interval_seconds == 10.0
