"""Health probe models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ProbeSpec(BaseModel):
    """What to probe and how long to keep trying."""

    model_config = ConfigDict(frozen=True)

    base_url: str
    path: str = "/health"
    expected_status: int = 200
    max_attempts: int = Field(default=15, ge=1)
    interval_seconds: float = Field(default=10.0, ge=0)
    request_timeout_seconds: float = Field(default=5.0, gt=0)

    @property
    def url(self) -> str:
        path = self.path if self.path.startswith("/") else f"/{self.path}"
        return self.base_url.rstrip("/") + path


class HealthCheckResult(BaseModel):
    """Outcome of a single probe attempt.  Discarded after evaluation."""

    model_config = ConfigDict(frozen=True)

    attempt: int
    status_code: int | None = None
    error: str | None = None
    passed: bool = False


class ProbeOutcome(BaseModel):
    """Aggregate pass/fail that survives into the stage result."""

    model_config = ConfigDict(frozen=True)

    url: str
    passed: bool
    attempts: int
    last_status_code: int | None = None
    last_error: str | None = None
