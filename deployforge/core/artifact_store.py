"""Content-addressed, immutable blob store.

Storage layout: {base_path}/{sha256[0:2]}/{sha256[2:4]}/{sha256}.dat
No delete method — content is immutable once stored.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from deployforge.core.hasher import digest_of, sha256_hex, strip_digest_prefix


class ArtifactIntegrityError(RuntimeError):
    """Raised when stored bytes no longer hash to their address."""


class ContentAddressedStore:
    """SHA-256 keyed, immutable blob store.

    Storing the same content twice is a no-op (idempotent).  Writes go to a
    temporary file first and are renamed into place, so a concurrent reader
    never observes a partially written blob.

    Parameters
    ----------
    base_path:
        Root directory for blob storage.
    """

    def __init__(self, base_path: Path) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)

    def _blob_path(self, hex_digest: str) -> Path:
        return self._base / hex_digest[:2] / hex_digest[2:4] / f"{hex_digest}.dat"

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    def put(self, data: bytes) -> str:
        """Store *data* and return its ``"sha256:<hex>"`` digest."""
        digest = digest_of(data)
        hex_digest = strip_digest_prefix(digest)
        path = self._blob_path(hex_digest)

        if path.exists():
            if not self.verify(digest):
                raise ArtifactIntegrityError(
                    f"Existing blob at {digest} failed integrity check"
                )
            return digest

        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return digest

    # ------------------------------------------------------------------
    # Retrieve
    # ------------------------------------------------------------------

    def get(self, digest: str) -> bytes:
        """Return the bytes stored under *digest*, re-verifying integrity."""
        hex_digest = strip_digest_prefix(digest)
        path = self._blob_path(hex_digest)
        if not path.exists():
            raise FileNotFoundError(f"Blob not found: {digest}")
        data = path.read_bytes()
        if sha256_hex(data) != hex_digest:
            raise ArtifactIntegrityError(f"Blob {digest} was modified after storage")
        return data

    # ------------------------------------------------------------------
    # Check and verify
    # ------------------------------------------------------------------

    def exists(self, digest: str) -> bool:
        return self._blob_path(strip_digest_prefix(digest)).exists()

    def verify(self, digest: str) -> bool:
        """Re-hash stored data and compare against the digest."""
        hex_digest = strip_digest_prefix(digest)
        path = self._blob_path(hex_digest)
        if not path.exists():
            return False
        return sha256_hex(path.read_bytes()) == hex_digest
