"""Deployforge event routing — fans pipeline events out to notification sinks.

Sinks are pluggable targets: a per-run JSON-lines file, a webhook, or any
custom sink implementing the ``NotificationSink`` protocol.  Notification is
fire-and-forget: a sink failure is logged and never changes a run's outcome.
"""

from deployforge.routing.dispatcher import NotificationDispatcher, SinkDispatchError

__all__ = ["NotificationDispatcher", "SinkDispatchError"]
