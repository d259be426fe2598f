"""In-memory deployment target keeping per-service history."""

from __future__ import annotations

import logging
import threading

from deployforge.core.errors import DeploymentError, NoPriorDeployment
from deployforge.core.hasher import is_digest
from deployforge.targets.base import Deployment

logger = logging.getLogger(__name__)


class InMemoryDeploymentTarget:
    """Deployment target that records requests in memory.

    History is a stack per service: ``redeploy`` pushes, ``rollback`` pops
    the live deployment and re-requests the one beneath it.

    Parameters
    ----------
    environment:
        Environment name (``"dev"``, ``"production"``).
    fail_redeploy:
        If set, every ``redeploy`` raises ``DeploymentError`` with this message.
    """

    def __init__(self, environment: str, *, fail_redeploy: str | None = None) -> None:
        self._environment = environment
        self._fail_redeploy = fail_redeploy
        self._history: dict[str, list[Deployment]] = {}
        self._lock = threading.Lock()
        self.rollback_calls: list[str] = []

    @property
    def environment(self) -> str:
        return self._environment

    def redeploy(self, service: str, digest: str) -> Deployment:
        if not is_digest(digest):
            raise DeploymentError(f"Refusing to deploy {digest!r}: not a content digest")
        if self._fail_redeploy:
            raise DeploymentError(self._fail_redeploy)
        deployment = Deployment(service=service, digest=digest, environment=self._environment)
        with self._lock:
            self._history.setdefault(service, []).append(deployment)
            self._persist()
        logger.info(
            "[%s] redeploy %s -> %s (%s)",
            self._environment, service, digest, deployment.deployment_id,
        )
        return deployment

    def rollback(self, service: str) -> Deployment:
        with self._lock:
            self.rollback_calls.append(service)
            history = self._history.get(service, [])
            if len(history) < 2:
                raise NoPriorDeployment(service)
            replaced = history.pop()
            previous = history.pop()
            restored = Deployment(
                service=service,
                digest=previous.digest,
                environment=self._environment,
                rollback_of=replaced.deployment_id,
            )
            history.append(restored)
            self._persist()
        logger.warning(
            "[%s] rolled back %s from %s to %s",
            self._environment, service, replaced.digest, restored.digest,
        )
        return restored

    def current(self, service: str) -> Deployment | None:
        with self._lock:
            history = self._history.get(service, [])
            return history[-1] if history else None

    def history(self, service: str) -> list[Deployment]:
        with self._lock:
            return list(self._history.get(service, []))

    def _persist(self) -> None:
        """Hook for durable subclasses; called with the lock held."""
