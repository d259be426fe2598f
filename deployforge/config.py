"""Runtime configuration — env-driven.

Centralized config using pydantic-settings.  Reads from a .env file and
DEPLOYFORGE_* environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProdConfig(BaseSettings):
    """Runtime configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export DEPLOYFORGE_ENVIRONMENT=production
        export DEPLOYFORGE_LOG_LEVEL=DEBUG
        export DEPLOYFORGE_PROBE_MAX_ATTEMPTS=30

    Or via .env file::

        DEPLOYFORGE_PROD_URL=https://api.example.com
        DEPLOYFORGE_WEBHOOK_URL=https://hooks.example.com/deploys
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="DEPLOYFORGE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"
    debug: bool = False

    # Storage paths
    ledger_path: Path = Path(".deployforge/ledger.db")
    artifact_store_path: Path = Path(".deployforge/artifacts")
    tag_db_path: Path = Path(".deployforge/tags.db")
    targets_path: Path = Path(".deployforge/targets")
    events_path: Path | None = None

    # Service under deployment
    service_name: str = "app"
    dev_url: str = ""
    prod_url: str = ""
    health_path: str = "/health"
    expected_status: int = 200

    # Health probe budget (attempts x interval)
    probe_max_attempts: int = Field(default=15, ge=1)
    probe_interval_seconds: float = Field(default=10.0, ge=0)
    probe_request_timeout_seconds: float = Field(default=5.0, gt=0)

    # Upper bound on any single stage
    stage_timeout_seconds: float = Field(default=900.0, gt=0)

    # Forward every secret, then filter by stage scope
    forward_all_secrets: bool = True

    # Notifications
    webhook_url: str = ""

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"


# Module-level singleton: import as `from deployforge.config import config`
config = ProdConfig()
