import json
from unittest.mock import AsyncMock

import anyio
import mcp.types as types
import pytest
from mcp.shared.exceptions import McpError

from src.mcp_server.dispatcher import ToolDispatcher
from src.mcp_server.mcp_app import (
    SERVER_NAME,
    build_mcp_server,
    search_terms_description,
)


def _call(server, name, arguments):
    handler = server.request_handlers[types.CallToolRequest]
    request = types.CallToolRequest(
        method="tools/call",
        params=types.CallToolRequestParams(name=name, arguments=arguments),
    )
    return anyio.run(handler, request)


def _list_tools(server):
    handler = server.request_handlers[types.ListToolsRequest]
    return anyio.run(handler, types.ListToolsRequest(method="tools/list"))


@pytest.fixture
def server(remote_client):
    dispatcher = ToolDispatcher(remote_client, session_id="session-1")
    return build_mcp_server(
        dispatcher, version="1.2.1", facet_types=("neuron", "adult", "larva")
    )


def test_server_identity(server):
    assert server.name == SERVER_NAME
    assert server.version == "1.2.1"


def test_lists_three_read_only_tools(server):
    result = _list_tools(server).root

    names = [tool.name for tool in result.tools]
    assert names == ["get_term_info", "run_query", "search_terms"]
    for tool in result.tools:
        assert tool.annotations.readOnlyHint is True

    by_name = {tool.name: tool for tool in result.tools}
    assert by_name["get_term_info"].inputSchema["required"] == ["id"]
    assert by_name["run_query"].inputSchema["required"] == ["id", "query_type"]
    assert by_name["search_terms"].inputSchema["required"] == ["query"]


def test_search_terms_description_lists_facet_vocabulary(server):
    tools = {tool.name: tool for tool in _list_tools(server).root.tools}

    assert "neuron, adult, larva" in tools["search_terms"].description
    assert "ANDed" in search_terms_description(["x"])


def test_call_tool_returns_text_content(server, backend):
    result = _call(server, "get_term_info", {"id": "VFB_jrcv0i43"}).root

    assert result.isError is False
    assert len(result.content) == 1
    assert result.content[0].type == "text"
    assert json.loads(result.content[0].text) == backend.term_info_payload


def test_backend_failure_is_a_successful_call(server, backend):
    backend.respond_with(500, "boom")

    result = _call(server, "search_terms", {"query": "medulla"}).root

    assert result.isError is False
    assert result.content[0].text.startswith("Error searching terms: HTTP 500")


def test_unknown_tool_is_method_not_found(server, backend):
    with pytest.raises(McpError) as exc_info:
        _call(server, "drop_tables", {})

    assert exc_info.value.error.code == types.METHOD_NOT_FOUND
    assert "drop_tables" in exc_info.value.error.message
    assert backend.requests == []


def test_missing_argument_is_invalid_params(server):
    with pytest.raises(McpError) as exc_info:
        _call(server, "run_query", {"id": "VFB_00101567"})

    assert exc_info.value.error.code == types.INVALID_PARAMS


def test_unexpected_failure_is_internal_error():
    dispatcher = ToolDispatcher(AsyncMock(), session_id="session-1")
    dispatcher.dispatch = AsyncMock(side_effect=RuntimeError("kaboom"))
    server = build_mcp_server(dispatcher, version="1.2.1")

    with pytest.raises(McpError) as exc_info:
        _call(server, "get_term_info", {"id": "x"})

    assert exc_info.value.error.code == types.INTERNAL_ERROR
    assert "kaboom" not in exc_info.value.error.message
