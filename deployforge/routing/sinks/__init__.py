"""Sink protocol for Deployforge notifications.

All sinks implement ``NotificationSink``: a ``sink_name`` property and an
``accept(event)`` method.  The dispatcher calls ``accept`` on every
registered sink for every event.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from deployforge.models.events import PipelineEvent


@runtime_checkable
class NotificationSink(Protocol):
    """Protocol that every Deployforge sink must implement.

    Attributes
    ----------
    sink_name : str
        A unique human-readable identifier (e.g. ``"local_file"``).
    """

    @property
    def sink_name(self) -> str:
        ...

    def accept(self, event: PipelineEvent) -> None:
        """Deliver *event*.  May raise; the dispatcher logs and moves on."""
        ...


__all__ = ["NotificationSink"]
