"""
Non-persistent EventSink implementations.

``InMemoryEventSink`` backs tests and evaluations, ``LoggingEventSink``
mirrors events to the structured logger, and ``CompositeEventSink`` tees
one event stream into several backends.
"""

from __future__ import annotations

import logging
from typing import Any

from allowance_kernel.domain.application import LifecycleEvent, LifecycleEventKind
from allowance_kernel.domain.ports import EventSink
from allowance_kernel.logging_config import get_logger

logger = get_logger("services.event_sinks")


class InMemoryEventSink:
    """Simple in-memory event log (useful for tests)."""

    def __init__(self) -> None:
        self.events: list[LifecycleEvent] = []

    def record(self, kind: str, **fields: Any) -> None:
        self.events.append(
            LifecycleEvent(
                seq=len(self.events) + 1,
                kind=LifecycleEventKind(kind),
                application_id=fields["id"],
                fields=dict(fields),
            )
        )

    def kinds(self, application_id: int | None = None) -> list[str]:
        return [
            e.kind.value for e in self.events
            if application_id is None or e.application_id == application_id
        ]


class LoggingEventSink:
    """Emit each lifecycle event as a structured log line."""

    def __init__(self, event_logger: logging.Logger | None = None, level: int = logging.INFO):
        self._logger = event_logger or get_logger("events")
        self._level = level

    def record(self, kind: str, **fields: Any) -> None:
        self._logger.log(
            self._level,
            "lifecycle_event",
            extra={"kind": LifecycleEventKind(kind).value, "fields": fields},
        )


class CompositeEventSink:
    """
    Tee events to a primary sink and any number of mirrors.

    The primary sink's errors propagate.  Mirrors are best-effort: a
    failing mirror is logged and never blocks the triggering operation.
    """

    def __init__(self, primary: EventSink, *mirrors: EventSink):
        self._primary = primary
        self._mirrors = [m for m in mirrors if m is not None]

    def record(self, kind: str, **fields: Any) -> None:
        self._primary.record(kind, **fields)
        for mirror in self._mirrors:
            try:
                mirror.record(kind, **fields)
            except Exception:
                logger.warning(
                    "event_mirror_failed",
                    extra={"kind": str(kind), "mirror": type(mirror).__name__},
                    exc_info=True,
                )
