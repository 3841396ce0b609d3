"""
STDIO MCP Server for desktop MCP clients.
Runs the shared low-level MCP server over STDIO transport as one implicit session.
"""

from __future__ import annotations

import builtins
import logging

# --- STDIO-SAFE BOOTSTRAP: Must be at the very top ---
import os
import sys
import warnings

os.environ.setdefault("PYTHONUNBUFFERED", "1")
os.environ.setdefault("VFB_MCP_STDIO_MODE", "1")

# 1) Route all Python logging to STDERR (never STDOUT)
root = logging.getLogger()
for h in list(root.handlers):
    root.removeHandler(h)

stderr_handler = logging.StreamHandler(sys.stderr)
stderr_handler.setFormatter(
    logging.Formatter(fmt="%(asctime)s %(levelname)s %(name)s: %(message)s")
)
root.addHandler(stderr_handler)
root.setLevel(logging.INFO)

for noisy in ("httpx", "httpcore", "opentelemetry", "asyncio"):
    logging.getLogger(noisy).setLevel(logging.WARNING)

# 2) Redirect accidental print() calls to STDERR
_builtin_print = builtins.print


def _stderr_print(*args, **kwargs):
    kwargs.setdefault("file", sys.stderr)
    return _builtin_print(*args, **kwargs)


builtins.print = _stderr_print

warnings.simplefilter("default")

# 3) Configure structlog to use STDERR (our app uses structlog via get_logger)
import structlog  # noqa: E402

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer(),  # Human-readable for stderr
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)
# --- END STDIO-SAFE BOOTSTRAP ---

from uuid import uuid4  # noqa: E402

import anyio  # noqa: E402
from mcp.server.lowlevel.server import NotificationOptions  # noqa: E402
from mcp.server.stdio import stdio_server  # noqa: E402

from src.clients.remote_client import RemoteClient  # noqa: E402
from src.mcp_server.dispatcher import ToolDispatcher  # noqa: E402
from src.mcp_server.mcp_app import build_mcp_server  # noqa: E402
from src.mcp_server.telemetry import UsageBeacon  # noqa: E402
from src.query.facets import DEFAULT_FACET_TYPES, discover_facet_types  # noqa: E402
from src.shared.config import init_config  # noqa: E402
from src.shared.observability import get_logger  # noqa: E402

logger = get_logger(__name__)


async def run_stdio_server() -> None:
    config, _ = init_config()
    root.setLevel(getattr(logging, config.app.log_level.upper(), logging.INFO))
    session_id = f"stdio-{uuid4().hex}"
    beacon = UsageBeacon.from_config(config.telemetry, config.app.version)

    async with RemoteClient(
        config.backends.term_info_url,
        config.backends.solr_url,
        timeout=config.backends.timeout_seconds,
    ) as client:
        facet_types = DEFAULT_FACET_TYPES
        if config.facets.discovery_enabled:
            facet_types = await discover_facet_types(client)

        dispatcher = ToolDispatcher(client, session_id=session_id, beacon=beacon)
        server = build_mcp_server(
            dispatcher, version=config.app.version, facet_types=facet_types
        )
        init_options = server.create_initialization_options(
            notification_options=NotificationOptions()
        )
        try:
            async with stdio_server() as (read_stream, write_stream):
                logger.info("VFB MCP server running on stdio", session_id=session_id)
                await server.run(read_stream, write_stream, init_options)
        finally:
            await beacon.aclose()


def main() -> None:
    logger.info("Starting VFB3 MCP server with STDIO transport")
    anyio.run(run_stdio_server)


if __name__ == "__main__":
    main()
