"""In-memory diagnostics sink."""

import threading
from typing import TypeVar

from ....core.services.diagnostics import DiagnosticEvent

E = TypeVar("E", bound=DiagnosticEvent)


class RecordingDiagnosticsSink:
    """Keeps every emitted event in memory, in emission order."""

    def __init__(self, max_events: int | None = None):
        self.max_events = max_events
        self._events: list[DiagnosticEvent] = []
        self._lock = threading.Lock()

    def emit(self, event: DiagnosticEvent) -> None:
        with self._lock:
            self._events.append(event)
            if self.max_events is not None and len(self._events) > self.max_events:
                del self._events[: len(self._events) - self.max_events]

    @property
    def events(self) -> list[DiagnosticEvent]:
        with self._lock:
            return list(self._events)

    def of_type(self, event_type: type[E]) -> list[E]:
        return [e for e in self.events if isinstance(e, event_type)]

    def for_request(self, request_id: str) -> list[DiagnosticEvent]:
        return [e for e in self.events if e.request_id == request_id]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
