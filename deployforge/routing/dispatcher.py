"""NotificationDispatcher — routes pipeline events to every configured sink.

Every event is fanned out to every registered sink.  Sink failures are
logged but do not prevent delivery to the remaining sinks.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from deployforge.models.events import PipelineEvent

if TYPE_CHECKING:
    from deployforge.routing.sinks import NotificationSink

logger = logging.getLogger(__name__)


class SinkDispatchError(RuntimeError):
    """Raised when every registered sink failed for an event."""


class NotificationDispatcher:
    """Routes events to ALL configured sinks.

    Usage
    -----
    >>> dispatcher = NotificationDispatcher()
    >>> dispatcher.register_sink(LocalFileSink(".deployforge/events"))
    >>> dispatcher.dispatch(event)
    """

    def __init__(self, sinks: list[NotificationSink] | None = None) -> None:
        self._sinks: list[NotificationSink] = []
        for sink in sinks or []:
            self.register_sink(sink)

    # ------------------------------------------------------------------
    # Sink management
    # ------------------------------------------------------------------

    def register_sink(self, sink: NotificationSink) -> None:
        """Register a sink.  Registering the same instance twice is a no-op."""
        if sink not in self._sinks:
            self._sinks.append(sink)
            logger.info("Registered sink: %s", sink.sink_name)

    @property
    def registered_sinks(self) -> list[NotificationSink]:
        return list(self._sinks)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(self, event: PipelineEvent) -> list[str]:
        """Dispatch *event* to every sink; return the names that accepted it.

        Raises
        ------
        SinkDispatchError
            If *all* sinks fail.  Individual failures are tolerated.
        """
        if not self._sinks:
            return []

        succeeded: list[str] = []
        errors: list[tuple[str, Exception]] = []

        for sink in self._sinks:
            try:
                sink.accept(event)
                succeeded.append(sink.sink_name)
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "Sink %s failed for event %s: %s", sink.sink_name, event.event_id, exc
                )
                errors.append((sink.sink_name, exc))

        if errors and not succeeded:
            raise SinkDispatchError(
                f"All {len(errors)} sinks failed for event {event.event_id}: "
                + "; ".join(f"{name}: {exc}" for name, exc in errors)
            )
        return succeeded

    def publish(self, event: PipelineEvent) -> None:
        """Fire-and-forget dispatch: never raises."""
        try:
            self.dispatch(event)
        except SinkDispatchError as exc:
            logger.warning("Notification for run %s dropped: %s", event.run_id, exc)

    def close(self) -> None:
        """Release sinks that hold resources, such as an HTTP client."""
        for sink in self._sinks:
            close = getattr(sink, "close", None)
            if callable(close):
                close()
