"""Local file sink — appends events to one JSON-lines file per run.

Layout: {base_path}/{run_id}.jsonl
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any

from deployforge.models.events import PipelineEvent

logger = logging.getLogger(__name__)


class LocalFileSink:
    """Writes events to ``{base_path}/{run_id}.jsonl``.

    Parameters
    ----------
    base_path:
        Root directory for event files.  Defaults to ``.deployforge/events``.
    """

    def __init__(self, base_path: Path | str | None = None) -> None:
        self._base = Path(base_path) if base_path else Path(".deployforge/events")
        self._base.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    @property
    def sink_name(self) -> str:
        return "local_file"

    def accept(self, event: PipelineEvent) -> None:
        target = self._base / f"{event.run_id}.jsonl"
        line = json.dumps(event.model_dump(mode="json"), sort_keys=True)
        with self._lock, target.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")
        logger.debug("LocalFileSink: wrote %s to %s", event.event_id, target)

    def read_events(self, run_id: str) -> list[dict[str, Any]]:
        """Return every event recorded for *run_id*, oldest first."""
        path = self._base / f"{run_id}.jsonl"
        if not path.exists():
            return []
        return [
            json.loads(line)
            for line in path.read_text(encoding="utf-8").splitlines()
            if line.strip()
        ]
