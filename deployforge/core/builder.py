"""Artifact builder — one immutable artifact per pipeline run.

The build runs an optional command inside the source directory, then
packages the directory as a deterministic gzip'd tarball: entries sorted,
timestamps and ownership normalised, VCS metadata excluded.  Identical
trees therefore always produce the identical digest.
"""

from __future__ import annotations

import gzip
import io
import logging
import os
import subprocess
import tarfile
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from deployforge.core.errors import BuildError
from deployforge.core.registry import ArtifactRegistry
from deployforge.core.secret_scope import without_scoped_secrets
from deployforge.core.tag_registry import release_tags
from deployforge.models.artifacts import Artifact

logger = logging.getLogger(__name__)

_EXCLUDED_DIRS = frozenset({".git", ".hg", ".svn", "__pycache__", ".deployforge"})

LATEST_TAG = "latest"


class BuildContext(BaseModel):
    """Everything the builder needs for one run."""

    model_config = ConfigDict(frozen=True)

    source_dir: Path
    commit_sha: str
    name: str = "app"
    build_command: list[str] = []
    release_version: str | None = None
    timeout_seconds: float = 900.0


def _iter_files(root: Path) -> list[Path]:
    files: list[Path] = []
    for path in sorted(root.rglob("*")):
        relative = path.relative_to(root)
        if any(part in _EXCLUDED_DIRS for part in relative.parts):
            continue
        if path.is_file():
            files.append(path)
    return files


def package_directory(root: Path) -> bytes:
    """Return a deterministic ``.tar.gz`` of *root*."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w", format=tarfile.PAX_FORMAT) as tar:
        for path in _iter_files(root):
            info = tarfile.TarInfo(name=path.relative_to(root).as_posix())
            info.size = path.stat().st_size
            info.mtime = 0
            info.uid = info.gid = 0
            info.uname = info.gname = ""
            info.mode = 0o755 if path.stat().st_mode & 0o111 else 0o644
            with path.open("rb") as handle:
                tar.addfile(info, handle)
    return gzip.compress(buffer.getvalue(), mtime=0)


class ArtifactBuilder:
    """Builds and publishes the run's single artifact.

    Parameters
    ----------
    registry:
        Where the artifact is pushed.  The push completes before
        ``build`` returns, so downstream stages can always pull by digest.
    """

    def __init__(self, registry: ArtifactRegistry) -> None:
        self._registry = registry

    def build(self, context: BuildContext) -> Artifact:
        """Build, package and push.  Raises ``BuildError`` on any failure."""
        source = context.source_dir
        if not source.is_dir():
            raise BuildError(f"Build context {source} is not a directory")

        if context.build_command:
            self._run_build_command(context)

        if not _iter_files(source):
            raise BuildError(f"Build context {source} contains no files")

        data = package_directory(source)
        tags = [LATEST_TAG]
        if context.release_version:
            try:
                tags.extend(release_tags(context.release_version))
            except ValueError as exc:
                raise BuildError(str(exc)) from exc

        artifact = self._registry.push(
            data,
            name=context.name,
            tags=tags,
            metadata={"commit_sha": context.commit_sha},
        )
        logger.info(
            "Built %s at %s -> %s (%d bytes)",
            context.name,
            context.commit_sha[:12],
            artifact.digest,
            artifact.size_bytes,
        )
        return artifact

    @staticmethod
    def _run_build_command(context: BuildContext) -> None:
        logger.info("Running build command: %s", " ".join(context.build_command))
        try:
            completed = subprocess.run(
                context.build_command,
                cwd=context.source_dir,
                env=without_scoped_secrets(os.environ),
                capture_output=True,
                text=True,
                timeout=context.timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise BuildError(
                f"Build command timed out after {context.timeout_seconds:g}s"
            ) from exc
        except OSError as exc:
            raise BuildError(f"Build command could not start: {exc}") from exc

        if completed.returncode != 0:
            tail = (completed.stderr or completed.stdout).strip().splitlines()[-20:]
            raise BuildError(
                f"Build command exited with {completed.returncode}"
                + (":\n" + "\n".join(tail) if tail else "")
            )
