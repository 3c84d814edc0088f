"""Diagnostics sinks."""

from .logging_sink import LoggingDiagnosticsSink, format_zero_result_banner
from .recording_sink import RecordingDiagnosticsSink

__all__ = ["LoggingDiagnosticsSink", "RecordingDiagnosticsSink", "format_zero_result_banner"]
