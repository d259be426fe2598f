"""Per-project pipeline configuration."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from deployforge.config import ProdConfig
from deployforge.models.health import ProbeSpec


class PipelineConfig(BaseModel):
    """Project-level configuration for a Deployforge pipeline."""

    model_config = ConfigDict(frozen=True)

    project_name: str = "deployforge"
    service_name: str = "app"
    artifact_store_path: Path = Path(".deployforge/artifacts")
    ledger_db_path: Path = Path(".deployforge/ledger.db")
    tag_db_path: Path = Path(".deployforge/tags.db")

    # Commands; an empty list means "nothing to run"
    build_command: list[str] = []
    unit_test_command: list[str] = []
    integration_test_command: list[str] = []

    # Health endpoints
    dev_url: str = ""
    prod_url: str = ""
    health_path: str = "/health"
    expected_status: int = 200
    probe_max_attempts: int = Field(default=15, ge=1)
    probe_interval_seconds: float = Field(default=10.0, ge=0)
    probe_request_timeout_seconds: float = Field(default=5.0, gt=0)

    stage_timeout_seconds: float = Field(default=900.0, gt=0)
    forward_all_secrets: bool = True
    release_version: str | None = None  # e.g. "1.4.2" -> tags v1.4.2, v1.4, v1

    @classmethod
    def from_settings(cls, settings: ProdConfig, **overrides: object) -> PipelineConfig:
        """Build a PipelineConfig from env settings, then apply overrides."""
        values: dict[str, object] = {
            "service_name": settings.service_name,
            "artifact_store_path": settings.artifact_store_path,
            "ledger_db_path": settings.ledger_path,
            "tag_db_path": settings.tag_db_path,
            "dev_url": settings.dev_url,
            "prod_url": settings.prod_url,
            "health_path": settings.health_path,
            "expected_status": settings.expected_status,
            "probe_max_attempts": settings.probe_max_attempts,
            "probe_interval_seconds": settings.probe_interval_seconds,
            "probe_request_timeout_seconds": settings.probe_request_timeout_seconds,
            "stage_timeout_seconds": settings.stage_timeout_seconds,
            "forward_all_secrets": settings.forward_all_secrets,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def probe_spec(self, base_url: str) -> ProbeSpec:
        return ProbeSpec(
            base_url=base_url,
            path=self.health_path,
            expected_status=self.expected_status,
            max_attempts=self.probe_max_attempts,
            interval_seconds=self.probe_interval_seconds,
            request_timeout_seconds=self.probe_request_timeout_seconds,
        )
