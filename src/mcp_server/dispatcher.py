"""
Tool dispatch for one MCP session.

Maps a tool name and argument record onto get_term_info, run_query or
search_terms, validates the required fields and shapes the backend result
into a ToolResult.

Backend failures are folded into the result text in one place
(``fold_backend_result``): clients always get text back, never a protocol
fault, when a backend is degraded. Only DispatchError escapes as an error.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from src.clients.remote_client import BackendOk, BackendResult, RemoteClient
from src.mcp_server.telemetry import UsageBeacon
from src.query.query_compiler import FacetQuery, compile_query
from src.shared.observability import get_logger, trace_mcp_tool

logger = get_logger(__name__)

TOOL_GET_TERM_INFO = "get_term_info"
TOOL_RUN_QUERY = "run_query"
TOOL_SEARCH_TERMS = "search_terms"
TOOL_NAMES = (TOOL_GET_TERM_INFO, TOOL_RUN_QUERY, TOOL_SEARCH_TERMS)


class DispatchError(Exception):
    """Base for tool invocations that cannot be dispatched."""


class UnknownToolError(DispatchError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class InvalidArgumentsError(DispatchError):
    pass


@dataclass(frozen=True)
class ToolResult:
    text: str
    backend_failure: bool = False


def fold_backend_result(result: BackendResult, failure_prefix: str) -> ToolResult:
    if isinstance(result, BackendOk):
        return ToolResult(json.dumps(result.payload, indent=2, ensure_ascii=False))
    return ToolResult(f"{failure_prefix}: {result.description}", backend_failure=True)


def _require_str(arguments: Mapping[str, Any], field: str) -> str:
    value = arguments.get(field)
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgumentsError(f"'{field}' is required and must be a non-empty string")
    return value.strip()


def _optional_tokens(arguments: Mapping[str, Any], field: str) -> List[str]:
    value = arguments.get(field)
    if value is None:
        return []
    if not isinstance(value, (list, tuple)) or not all(
        isinstance(item, str) for item in value
    ):
        raise InvalidArgumentsError(f"'{field}' must be an array of strings")
    return list(value)


class ToolDispatcher:
    def __init__(
        self,
        client: RemoteClient,
        session_id: str = "",
        beacon: Optional[UsageBeacon] = None,
    ) -> None:
        self._client = client
        self.session_id = session_id
        self._beacon = beacon
        self._handlers: Dict[str, Callable[[Mapping[str, Any]], Awaitable[ToolResult]]] = {
            TOOL_GET_TERM_INFO: self.get_term_info,
            TOOL_RUN_QUERY: self.run_query,
            TOOL_SEARCH_TERMS: self.search_terms,
        }

    async def dispatch(
        self, name: str, arguments: Optional[Mapping[str, Any]]
    ) -> ToolResult:
        arguments = arguments or {}
        logger.info(
            "Tool call", tool=name, arguments=arguments, session_id=self.session_id
        )
        handler = self._handlers.get(name)
        if handler is None:
            logger.warning("Unknown tool requested", tool=name, session_id=self.session_id)
            raise UnknownToolError(name)

        if self._beacon is not None:
            self._beacon.record(self.session_id, name)

        with trace_mcp_tool(name, dict(arguments), self.session_id) as outcome:
            result = await handler(arguments)
            if result.backend_failure:
                outcome.status = "backend_failure"
        return result

    async def get_term_info(self, arguments: Mapping[str, Any]) -> ToolResult:
        term_id = _require_str(arguments, "id")
        result = await self._client.get_term_info(term_id)
        return fold_backend_result(result, "Error fetching term info")

    async def run_query(self, arguments: Mapping[str, Any]) -> ToolResult:
        term_id = _require_str(arguments, "id")
        query_type = _require_str(arguments, "query_type")
        result = await self._client.run_query(term_id, query_type)
        return fold_backend_result(result, "Error running query")

    async def search_terms(self, arguments: Mapping[str, Any]) -> ToolResult:
        facet_query = FacetQuery(
            query=_require_str(arguments, "query"),
            filter_types=_optional_tokens(arguments, "filter_types"),
            exclude_types=_optional_tokens(arguments, "exclude_types"),
            boost_types=_optional_tokens(arguments, "boost_types"),
        )
        compiled = compile_query(facet_query)
        result = await self._client.search(compiled.to_params())
        return fold_backend_result(result, "Error searching terms")
