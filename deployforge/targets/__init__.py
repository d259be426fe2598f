"""Deployment targets — where a digest gets deployed.

Every target implements the ``DeploymentTarget`` protocol: asynchronous
``redeploy`` to a digest, ``rollback`` to the previous deployment, and
``current`` to inspect what is live.
"""

from deployforge.targets.base import Deployment, DeploymentTarget
from deployforge.targets.local_file import LocalFileDeploymentTarget
from deployforge.targets.memory import InMemoryDeploymentTarget

__all__ = [
    "Deployment",
    "DeploymentTarget",
    "InMemoryDeploymentTarget",
    "LocalFileDeploymentTarget",
]
