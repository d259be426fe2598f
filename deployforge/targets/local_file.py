"""Deployment target persisted to a local JSON file.

Layout: one file per environment, ``{"service": [deployment, ...]}``.
Used by the CLI so that rollback history survives between runs.
"""

from __future__ import annotations

import json
from pathlib import Path

from deployforge.targets.base import Deployment
from deployforge.targets.memory import InMemoryDeploymentTarget


class LocalFileDeploymentTarget(InMemoryDeploymentTarget):
    """InMemoryDeploymentTarget whose history is loaded from and saved to disk."""

    def __init__(self, environment: str, path: Path) -> None:
        super().__init__(environment)
        self._path = Path(path)
        if self._path.exists():
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            self._history = {
                service: [Deployment.model_validate(item) for item in items]
                for service, items in raw.items()
            }

    @property
    def path(self) -> Path:
        return self._path

    def _persist(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            service: [d.model_dump(mode="json") for d in history]
            for service, history in self._history.items()
        }
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(self._path)
