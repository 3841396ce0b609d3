# OpenTelemetry tracing setup and MCP tool spans

from contextlib import contextmanager
from typing import Any, Dict, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import SpanKind

from ..config import Config, Settings
from .logging import get_logger
from .metrics import mcp_tool_calls_total, mcp_tool_duration_seconds

logger = get_logger(__name__)


def setup_tracing(app, config: Config, settings: Settings) -> Optional[TracerProvider]:
    """
    Setup OpenTelemetry tracing for the FastAPI app.

    Args:
        app: FastAPI application instance
        config: Application config
        settings: Environment settings

    Returns:
        TracerProvider (always created, even without exporter)
    """
    try:
        logger.info(
            "Setting up OpenTelemetry tracing",
            endpoint=settings.otel_exporter_otlp_endpoint or "in-memory",
            service=settings.otel_service_name,
        )

        resource = Resource.create(
            {
                SERVICE_NAME: settings.otel_service_name,
                SERVICE_VERSION: config.app.version,
            }
        )
        provider = TracerProvider(resource=resource)

        if settings.otel_exporter_otlp_endpoint:
            otlp_exporter = OTLPSpanExporter(
                endpoint=f"{settings.otel_exporter_otlp_endpoint}/v1/traces"
            )
            provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
            logger.info("OTLP exporter configured")
        else:
            logger.info("OpenTelemetry tracing enabled (in-memory, no exporter)")

        trace.set_tracer_provider(provider)
        FastAPIInstrumentor.instrument_app(app)

        logger.info("OpenTelemetry tracing enabled successfully")
        return provider

    except Exception as e:
        logger.error("Failed to setup OpenTelemetry tracing", error=str(e))
        provider = TracerProvider()
        trace.set_tracer_provider(provider)
        return provider


def get_tracer(name: str):
    """Get a tracer instance"""
    return trace.get_tracer(name)


class ToolOutcome:
    """Mutable status slot a tool call fills in before its span closes."""

    def __init__(self) -> None:
        self.status = "success"


@contextmanager
def trace_mcp_tool(tool_name: str, arguments: Dict[str, Any], session_id: str = ""):
    """
    Context manager to trace MCP tool execution with metrics.

    The caller may set ``outcome.status = "backend_failure"`` on the yielded
    object; raised exceptions are recorded as ``error``.

    Args:
        tool_name: Name of the MCP tool
        arguments: Tool arguments
        session_id: Session the call belongs to

    Yields:
        ToolOutcome
    """
    tracer = get_tracer(__name__)
    outcome = ToolOutcome()

    with tracer.start_as_current_span(
        f"mcp.tool.{tool_name}",
        kind=SpanKind.INTERNAL,
        attributes={
            "mcp.tool.name": tool_name,
            "mcp.tool.args": str(arguments),
            "mcp.session.id": session_id,
        },
    ) as span:
        with mcp_tool_duration_seconds.labels(tool_name=tool_name).time():
            try:
                yield outcome
            except Exception as e:
                mcp_tool_calls_total.labels(tool_name=tool_name, status="error").inc()
                span.set_attribute("mcp.tool.status", "error")
                span.set_attribute("mcp.tool.error", str(e))
                span.record_exception(e)
                raise
            mcp_tool_calls_total.labels(
                tool_name=tool_name, status=outcome.status
            ).inc()
            span.set_attribute("mcp.tool.status", outcome.status)
