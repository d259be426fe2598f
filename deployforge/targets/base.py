"""Deployment target protocol and the Deployment record."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field


class Deployment(BaseModel):
    """One request to run *service* at *digest*.

    Targets return as soon as the request is accepted; the service may not
    be live yet.  Liveness is the health prober's job.
    """

    model_config = ConfigDict(frozen=True)

    deployment_id: str = Field(default_factory=lambda: f"dep-{uuid.uuid4().hex[:12]}")
    service: str
    digest: str
    environment: str
    rollback_of: str | None = None  # deployment_id this rollback replaced
    requested_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


@runtime_checkable
class DeploymentTarget(Protocol):
    """Contract of a deployment platform."""

    @property
    def environment(self) -> str:
        """Name of the environment this target deploys to."""
        ...

    def redeploy(self, service: str, digest: str) -> Deployment:
        """Request *service* to run *digest*.  Returns before it is live."""
        ...

    def rollback(self, service: str) -> Deployment:
        """Return *service* to its previous deployment.

        Raises ``NoPriorDeployment`` if there is nothing to go back to.
        """
        ...

    def current(self, service: str) -> Deployment | None:
        """Return the deployment currently requested for *service*."""
        ...
