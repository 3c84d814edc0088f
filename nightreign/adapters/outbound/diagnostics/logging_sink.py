"""Diagnostics sink that writes events to the standard logging pipe."""

import json
import logging

from ....config.logging import get_logger
from ....core.services.diagnostics import DiagnosticEvent, PipelineSummary

DIAGNOSTICS_LOGGER = "search.diagnostics"

_SEPARATOR = "=" * 60


def format_zero_result_banner(summary: PipelineSummary) -> str:
    """Build the delimited warning banner for a request with no results."""
    lines = [
        "",
        _SEPARATOR,
        f"ZERO RESULTS for query: {summary.query or ''}",
        _SEPARATOR,
        "Timing breakdown:",
    ]
    if summary.embedding:
        cache_hit = summary.embedding.details.get("cacheHit", False)
        lines.append(
            f"  - Embedding: {summary.embedding.duration_ms:.0f}ms (cache: {str(cache_hit).lower()})"
        )
    mode = summary.search.details.get("mode", "unknown")
    lines.append(f"  - Search: {summary.search.duration_ms:.0f}ms (mode: {mode})")
    if summary.rerank:
        lines.append(f"  - Rerank: {summary.rerank.duration_ms:.0f}ms")
    lines.append(_SEPARATOR)
    return "\n".join(lines)


class LoggingDiagnosticsSink:
    """Writes each event as ``[SEARCH:STAGE] message {json}``.

    The structured payload is also attached as ``extra={"data": ...}`` so the
    JSON formatter can emit it as a field.
    """

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or get_logger(DIAGNOSTICS_LOGGER)

    def emit(self, event: DiagnosticEvent) -> None:
        payload = event.to_dict()
        prefix = f"[SEARCH:{event.stage.upper()}]"
        self.logger.log(
            event.level.logging_level,
            "%s %s %s",
            prefix,
            event.message,
            json.dumps(payload["data"], indent=2, default=str),
            extra={"data": payload},
        )

        if isinstance(event, PipelineSummary) and not event.has_results:
            self.logger.warning(format_zero_result_banner(event))
