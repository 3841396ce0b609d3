# Observability package
from .logging import (
    get_correlation_id,
    get_logger,
    set_correlation_id,
    setup_logging,
    stdio_mode_enabled,
)
from .metrics import get_metrics, setup_metrics
from .tracing import get_tracer, setup_tracing, trace_mcp_tool

__all__ = [
    "get_logger",
    "setup_logging",
    "stdio_mode_enabled",
    "get_correlation_id",
    "set_correlation_id",
    "setup_tracing",
    "get_tracer",
    "trace_mcp_tool",
    "setup_metrics",
    "get_metrics",
]
