"""Mutable tag -> digest pointers backed by SQLite.

Tags are for humans.  They are last-writer-wins: concurrent runs may
repoint the same tag and the final value is whichever write committed
last.  A tag update never touches the content a digest refers to.

Floating release tags: publishing version ``1.4.2`` points ``v1.4.2``,
``v1.4`` and ``v1`` at the same digest, so consumers pinned to a major
or minor line follow compatible releases.
"""

from __future__ import annotations

import re
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from deployforge.models.artifacts import TagBinding

_CREATE_TAGS = """
CREATE TABLE IF NOT EXISTS tags (
    tag         TEXT PRIMARY KEY,
    digest      TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
"""

_SEMVER = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)(?:[-+].*)?$")


class TagNotFoundError(KeyError):
    """Raised when a tag has never been set."""


def release_tags(version: str) -> list[str]:
    """Return the exact and floating tags for a release version.

    >>> release_tags("1.4.2")
    ['v1.4.2', 'v1.4', 'v1']

    Pre-release versions (``1.5.0-rc.1``) only get their exact tag, so a
    release candidate never moves the floating pointers.
    """
    match = _SEMVER.match(version)
    if not match:
        raise ValueError(f"Not a semantic version: {version!r}")
    major, minor, _patch = match.groups()
    exact = version if version.startswith("v") else f"v{version}"
    if "-" in version:
        return [exact]
    return [exact, f"v{major}.{minor}", f"v{major}"]


class TagRegistry:
    """Last-writer-wins tag namespace shared by all runs.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.  Created if it does not exist.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute(_CREATE_TAGS)
            conn.commit()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False, timeout=30)
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def set(self, tag: str, digest: str) -> TagBinding:
        """Point *tag* at *digest*, replacing any previous target."""
        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO tags (tag, digest, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(tag) DO UPDATE SET digest = excluded.digest, "
                "updated_at = excluded.updated_at",
                (tag, digest, now.isoformat()),
            )
            conn.commit()
        return TagBinding(tag=tag, digest=digest, updated_at=now)

    def set_many(self, tags: list[str], digest: str) -> list[TagBinding]:
        return [self.set(tag, digest) for tag in tags]

    def publish_release(self, version: str, digest: str) -> list[TagBinding]:
        """Point the exact and floating release tags at *digest*."""
        return self.set_many(release_tags(version), digest)

    def resolve(self, tag: str) -> str:
        """Return the digest *tag* currently points at."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT digest FROM tags WHERE tag = ?", (tag,)
            ).fetchone()
        if row is None:
            raise TagNotFoundError(tag)
        return row[0]

    def get(self, tag: str) -> TagBinding | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT tag, digest, updated_at FROM tags WHERE tag = ?", (tag,)
            ).fetchone()
        return TagBinding(tag=row[0], digest=row[1], updated_at=row[2]) if row else None

    def list_tags(self, digest: str | None = None) -> list[TagBinding]:
        query = "SELECT tag, digest, updated_at FROM tags"
        params: tuple[str, ...] = ()
        if digest is not None:
            query += " WHERE digest = ?"
            params = (digest,)
        with self._connect() as conn:
            rows = conn.execute(query + " ORDER BY tag", params).fetchall()
        return [TagBinding(tag=t, digest=d, updated_at=u) for t, d, u in rows]
