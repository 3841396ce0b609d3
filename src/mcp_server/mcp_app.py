"""
Shared MCP server factory for STDIO and HTTP transports.

One low-level ``Server`` is built per session, bound to that session's
ToolDispatcher.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

import mcp.types as types
from mcp.server.lowlevel.server import Server
from mcp.shared.exceptions import McpError

from src.mcp_server.dispatcher import (
    TOOL_GET_TERM_INFO,
    TOOL_RUN_QUERY,
    TOOL_SEARCH_TERMS,
    InvalidArgumentsError,
    ToolDispatcher,
    UnknownToolError,
)
from src.query.facets import DEFAULT_FACET_TYPES
from src.shared.observability import get_logger

logger = get_logger(__name__)

SERVER_NAME = "vfb3-mcp-server"

INSTRUCTIONS = (
    "Tools for Virtual Fly Brain (VFB) data. Use search_terms to find VFB ids "
    "for a term, get_term_info for details on an id, and run_query for the "
    "queries listed in a term's info (e.g. PaintedDomains)."
)

GET_TERM_INFO_DESCRIPTION = "Get term information from VirtualFlyBrain using a VFB ID"
RUN_QUERY_DESCRIPTION = "Run a query on VirtualFlyBrain using a VFB ID and query type"

GET_TERM_INFO_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string", "description": "VFB ID (e.g., VFB_jrcv0i43)"},
    },
    "required": ["id"],
}

RUN_QUERY_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string", "description": "VFB ID (e.g., VFB_00101567)"},
        "query_type": {
            "type": "string",
            "description": "Query type (e.g., PaintedDomains)",
        },
    },
    "required": ["id", "query_type"],
}

SEARCH_TERMS_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "query": {"type": "string", "description": "Search query (e.g., medulla)"},
        "filter_types": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Filter results to only include items matching ALL of these facets_annotation types (AND logic)",
        },
        "exclude_types": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Exclude results matching ANY of these facets_annotation types (OR logic)",
        },
        "boost_types": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Boost ranking of results matching these facets_annotation types without excluding others",
        },
    },
    "required": ["query"],
}


def search_terms_description(facet_types: Sequence[str]) -> str:
    return (
        "Search for VFB terms using the Solr search server. Results can be "
        "filtered, excluded, or boosted by entity type using facets_annotation "
        "values.\n\n"
        f"Available filter types: {', '.join(facet_types)}\n\n"
        "Multiple filter_types are ANDed (results must match ALL). Multiple "
        "exclude_types are ORed (any match excludes). boost_types soft-rank "
        "matching results higher without excluding others."
    )


def _tool_definitions(facet_types: Sequence[str]) -> list[dict[str, Any]]:
    readonly = types.ToolAnnotations(
        readOnlyHint=True,
        openWorldHint=True,
        idempotentHint=True,
        destructiveHint=False,
    )
    return [
        {
            "name": TOOL_GET_TERM_INFO,
            "description": GET_TERM_INFO_DESCRIPTION,
            "input_schema": GET_TERM_INFO_INPUT_SCHEMA,
            "annotations": readonly,
        },
        {
            "name": TOOL_RUN_QUERY,
            "description": RUN_QUERY_DESCRIPTION,
            "input_schema": RUN_QUERY_INPUT_SCHEMA,
            "annotations": readonly,
        },
        {
            "name": TOOL_SEARCH_TERMS,
            "description": search_terms_description(facet_types),
            "input_schema": SEARCH_TERMS_INPUT_SCHEMA,
            "annotations": readonly,
        },
    ]


def build_mcp_server(
    dispatcher: ToolDispatcher,
    *,
    version: str,
    facet_types: Optional[Sequence[str]] = None,
) -> Server:
    server = Server(SERVER_NAME, version=version, instructions=INSTRUCTIONS)
    tool_definitions = _tool_definitions(facet_types or DEFAULT_FACET_TYPES)

    @server.list_tools()
    async def _list_tools():
        logger.debug("ListTools request", session_id=dispatcher.session_id)
        return [
            types.Tool(
                name=tool["name"],
                description=tool["description"],
                inputSchema=tool["input_schema"],
                annotations=tool["annotations"],
            )
            for tool in tool_definitions
        ]

    # Registered directly, not via @server.call_tool(): an unknown tool or bad
    # arguments must surface as a JSON-RPC error, not an isError result.
    async def _call_tool(req: types.CallToolRequest) -> types.ServerResult:
        name = req.params.name
        try:
            result = await dispatcher.dispatch(name, req.params.arguments)
        except UnknownToolError as exc:
            raise McpError(
                types.ErrorData(code=types.METHOD_NOT_FOUND, message=str(exc))
            ) from exc
        except InvalidArgumentsError as exc:
            raise McpError(
                types.ErrorData(code=types.INVALID_PARAMS, message=str(exc))
            ) from exc
        except McpError:
            raise
        except Exception as exc:
            logger.error(
                "Error calling tool",
                tool=name,
                session_id=dispatcher.session_id,
                error=str(exc),
                exc_info=True,
            )
            raise McpError(
                types.ErrorData(
                    code=types.INTERNAL_ERROR, message=f"Error calling tool {name}"
                )
            ) from exc

        return types.ServerResult(
            types.CallToolResult(
                content=[types.TextContent(type="text", text=result.text)],
                isError=False,
            )
        )

    server.request_handlers[types.CallToolRequest] = _call_tool
    return server
