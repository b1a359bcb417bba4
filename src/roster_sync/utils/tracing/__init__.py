"""
Distributed tracing for sync passes using OpenTelemetry.

Spans cover the whole pass, each store read, each apply path and
connection pool acquisition.
"""

from .context import add_span_attributes, trace_operation
from .tracer import get_tracer, initialize_tracing, shutdown_tracing

__all__ = [
    "initialize_tracing",
    "get_tracer",
    "shutdown_tracing",
    "trace_operation",
    "add_span_attributes",
]
