"""Observability helpers."""

from chatledger.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_pipeline_run,
    record_classification,
    record_parser_failure,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_pipeline_run",
    "record_classification",
    "record_parser_failure",
]
