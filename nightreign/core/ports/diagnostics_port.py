"""Port definition for diagnostics event sinks."""

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..services.diagnostics import DiagnosticEvent


class DiagnosticsSink(Protocol):
    """Receives typed pipeline events (console, file, log pipe, memory)."""

    def emit(self, event: "DiagnosticEvent") -> None:
        """Record one event.

        Args:
            event: The event to record.
        """
        ...
