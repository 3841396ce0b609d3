# Prometheus metrics for the VFB3 MCP gateway

from typing import Callable

from prometheus_client import Counter, Gauge, Histogram, Info, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..config import Config, Settings
from .logging import get_logger

logger = get_logger(__name__)

# ===== Request metrics =====
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ===== MCP tool metrics =====
mcp_tool_calls_total = Counter(
    "mcp_tool_calls_total",
    "Total MCP tool calls",
    ["tool_name", "status"],  # status: success, backend_failure, error
)

mcp_tool_duration_seconds = Histogram(
    "mcp_tool_duration_seconds",
    "MCP tool execution duration in seconds",
    ["tool_name"],
    buckets=(0.01, 0.05, 0.1, 0.2, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
)

# ===== Session metrics =====
mcp_sessions_active = Gauge(
    "mcp_sessions_active",
    "Sessions currently registered with the gateway",
)

mcp_session_events_total = Counter(
    "mcp_session_events_total",
    "Session lifecycle events",
    ["event"],  # created, terminated, closed, rejected
)

# ===== Backend metrics =====
backend_requests_total = Counter(
    "backend_requests_total",
    "Outbound backend requests",
    ["backend", "outcome"],  # outcome: ok, failure
)

backend_request_duration_seconds = Histogram(
    "backend_request_duration_seconds",
    "Outbound backend request duration in seconds",
    ["backend"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# ===== Service info =====
service_info = Info(
    "vfb3_mcp",
    "VFB3 MCP service information",
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Middleware to collect HTTP request metrics for Prometheus.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip metrics endpoint itself
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        endpoint = request.url.path

        with http_request_duration_seconds.labels(
            method=method, endpoint=endpoint
        ).time():
            response = await call_next(request)

        http_requests_total.labels(
            method=method,
            endpoint=endpoint,
            status=response.status_code,
        ).inc()

        return response


def setup_metrics(config: Config, settings: Settings) -> None:
    """
    Setup Prometheus metrics collection.

    Args:
        config: Application config
        settings: Environment settings
    """
    logger.info("Setting up Prometheus metrics")

    service_info.info(
        {
            "version": config.app.version,
            "environment": settings.env,
            "service_name": settings.otel_service_name,
        }
    )

    logger.info("Prometheus metrics enabled")


def get_metrics() -> bytes:
    """
    Get current metrics in Prometheus exposition format.

    Returns:
        Metrics as bytes
    """
    return generate_latest()
