# FastAPI MCP server: Streamable HTTP gateway, health and metrics endpoints

import json
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from mcp.server.streamable_http import MCP_SESSION_ID_HEADER
from starlette.responses import Response

from src.clients.remote_client import RemoteClient
from src.mcp_server.dispatcher import ToolDispatcher
from src.mcp_server.docs_page import render_docs_page
from src.mcp_server.gateway import ProtocolGateway, build_security_settings
from src.mcp_server.mcp_app import build_mcp_server
from src.mcp_server.models import HealthResponse
from src.mcp_server.telemetry import UsageBeacon
from src.query.facets import DEFAULT_FACET_TYPES, discover_facet_types
from src.shared.config import Config, Settings, init_config
from src.shared.observability import (
    get_correlation_id,
    get_logger,
    set_correlation_id,
    setup_logging,
    setup_metrics,
    setup_tracing,
)
from src.shared.observability.metrics import PrometheusMiddleware, get_metrics

logger = get_logger(__name__)


def create_app(
    config: Optional[Config] = None,
    settings: Optional[Settings] = None,
    remote_client: Optional[RemoteClient] = None,
) -> FastAPI:
    """Build the HTTP application.

    ``remote_client`` is used as-is when given (and not closed on shutdown);
    otherwise one is opened from the backend config for the app's lifetime.
    """
    if config is None or settings is None:
        config, settings = init_config()
    setup_logging(config.app.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting MCP server", version=config.app.version, mode="http")
        client = remote_client or RemoteClient(
            config.backends.term_info_url,
            config.backends.solr_url,
            timeout=config.backends.timeout_seconds,
        )
        beacon = UsageBeacon.from_config(config.telemetry, config.app.version)

        facet_types = DEFAULT_FACET_TYPES
        if config.facets.discovery_enabled:
            facet_types = await discover_facet_types(client)

        def server_factory(session_id: str):
            dispatcher = ToolDispatcher(client, session_id=session_id, beacon=beacon)
            return build_mcp_server(
                dispatcher, version=config.app.version, facet_types=facet_types
            )

        gateway = ProtocolGateway(
            server_factory,
            json_response=config.gateway.json_response,
            security_settings=build_security_settings(
                config.gateway.allowed_hosts, config.gateway.allowed_origins
            ),
            docs_page=render_docs_page(config.app.version),
        )
        try:
            async with gateway.run():
                app.state.gateway = gateway
                logger.info("MCP server started successfully")
                yield
        finally:
            app.state.gateway = None
            await beacon.aclose()
            if remote_client is None:
                await client.aclose()
            logger.info("MCP server shut down successfully")

    app = FastAPI(
        title=config.app.name,
        version=config.app.version,
        description="Virtual Fly Brain MCP server",
        lifespan=lifespan,
    )
    app.state.gateway = None
    app.state.config = config

    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.gateway.allowed_origins or ["*"],
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[MCP_SESSION_ID_HEADER],
    )

    setup_tracing(app, config, settings)
    setup_metrics(config, settings)

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        """Add correlation ID to request context"""
        corr_id = request.headers.get("X-Correlation-ID")
        if not corr_id:
            corr_id = get_correlation_id()
        else:
            set_correlation_id(corr_id)

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = corr_id
        return response

    @app.get("/health", response_model=HealthResponse)
    async def health():
        """Health check endpoint"""
        gateway = app.state.gateway
        return HealthResponse(
            status="healthy" if gateway is not None else "starting",
            timestamp=datetime.now(timezone.utc).isoformat(),
            version=config.app.version,
            active_sessions=gateway.active_sessions if gateway is not None else 0,
        )

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint"""
        return Response(content=get_metrics(), media_type="text/plain; version=0.0.4")

    async def _mcp_streamable_http_app(scope, receive, send) -> None:
        gateway = app.state.gateway
        if gateway is None:
            response = Response(
                content=json.dumps({"status": "starting"}),
                media_type="application/json",
                status_code=503,
            )
            await response(scope, receive, send)
            return
        await gateway(scope, receive, send)

    # Mounted last so /health and /metrics match first.
    app.mount("/", _mcp_streamable_http_app)
    return app


app = create_app()


def serve() -> None:
    config, settings = init_config()
    logger.info("Starting VFB3 MCP server in HTTP mode", port=settings.port)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=config.app.log_level.lower(),
    )


if __name__ == "__main__":
    serve()
