"""
Session-scoped MCP gateway for the Streamable HTTP transport.

Routes every inbound HTTP message to the session it belongs to:

    POST   no session id + initialize  -> new session (transport + server)
    POST   known session id            -> that session's transport
    GET    known session id            -> long-lived SSE stream
    GET    Accept: text/html           -> documentation page
    DELETE known session id            -> terminate and deregister

Anything else without a usable session id is rejected with a JSON-RPC
"invalid session" error before it reaches a transport. Each session runs
its own low-level MCP server on a task in the gateway's task group.
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional, Sequence

import anyio
from anyio.abc import TaskGroup, TaskStatus
from mcp.server.lowlevel.server import Server
from mcp.server.streamable_http import (
    MCP_SESSION_ID_HEADER,
    StreamableHTTPServerTransport,
)
from mcp.server.transport_security import TransportSecuritySettings
from starlette.requests import Request
from starlette.responses import HTMLResponse, Response
from starlette.types import Message, Receive, Scope, Send

from src.mcp_server.errors import GatewayError, InternalError, ProtocolError
from src.mcp_server.session_registry import SessionHandle, SessionRegistry
from src.shared.observability import get_logger
from src.shared.observability.metrics import mcp_session_events_total

logger = get_logger(__name__)

ServerFactory = Callable[[str], Server]

NO_SESSION_MESSAGE = "Bad Request: No valid session ID provided"
INVALID_SESSION_MESSAGE = "Bad Request: Invalid or missing session ID"


def is_initialize_request(message: Any) -> bool:
    """True for a JSON-RPC initialize request (or a batch carrying one)."""
    if isinstance(message, list):
        return any(is_initialize_request(item) for item in message)
    return (
        isinstance(message, dict)
        and message.get("method") == "initialize"
        and "id" in message
    )


def build_security_settings(
    allowed_hosts: Sequence[str], allowed_origins: Sequence[str] = ()
) -> Optional[TransportSecuritySettings]:
    if not allowed_hosts:
        return None
    return TransportSecuritySettings(
        enable_dns_rebinding_protection=True,
        allowed_hosts=list(allowed_hosts),
        allowed_origins=list(allowed_origins),
    )


def _is_discarded_result(exc: BaseException) -> bool:
    # Responses for calls still in flight when the session closed fail on
    # the closed write stream; those results are dropped.
    if isinstance(exc, (anyio.ClosedResourceError, anyio.BrokenResourceError)):
        return True
    inner = getattr(exc, "exceptions", None)
    return bool(inner) and all(_is_discarded_result(e) for e in inner)


def _replay_body(body: bytes, receive: Receive) -> Receive:
    replayed = False

    async def _receive() -> Message:
        nonlocal replayed
        if not replayed:
            replayed = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return _receive


def _relative_path(scope: Scope) -> str:
    path = scope.get("path", "") or ""
    root_path = scope.get("root_path", "") or ""
    if root_path and path.startswith(root_path):
        path = path[len(root_path) :]
    return path or "/"


class _ResponseRecorder:
    """ASGI send wrapper that remembers the response status."""

    def __init__(self, send: Send) -> None:
        self._send = send
        self.status: Optional[int] = None

    @property
    def started(self) -> bool:
        return self.status is not None

    async def __call__(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.status = message["status"]
        await self._send(message)


class ProtocolGateway:
    def __init__(
        self,
        server_factory: ServerFactory,
        *,
        registry: Optional[SessionRegistry] = None,
        json_response: bool = False,
        security_settings: Optional[TransportSecuritySettings] = None,
        docs_page: Optional[str] = None,
    ) -> None:
        self._server_factory = server_factory
        self._registry = registry or SessionRegistry()
        self._json_response = json_response
        self._security_settings = security_settings
        self._docs_page = docs_page
        self._task_group: Optional[TaskGroup] = None

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def active_sessions(self) -> int:
        return len(self._registry)

    @asynccontextmanager
    async def run(self) -> AsyncIterator["ProtocolGateway"]:
        """Own the task group that hosts every session's server."""
        if self._task_group is not None:
            raise RuntimeError("ProtocolGateway is already running")
        async with anyio.create_task_group() as tg:
            self._task_group = tg
            logger.info("Protocol gateway started")
            try:
                yield self
            finally:
                closed = self._registry.clear()
                logger.info("Protocol gateway stopping", sessions_closed=len(closed))
                tg.cancel_scope.cancel()
                self._task_group = None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or _relative_path(scope) != "/":
            await Response(status_code=404)(scope, receive, send)
            return

        request = Request(scope, receive)
        recorder = _ResponseRecorder(send)
        try:
            if request.method == "POST":
                await self._handle_post(request, scope, receive, recorder)
            elif request.method == "GET":
                await self._handle_get(request, scope, receive, recorder)
            elif request.method == "DELETE":
                await self._handle_delete(request, scope, receive, recorder)
            else:
                response = Response(
                    status_code=405, headers={"Allow": "GET, POST, DELETE"}
                )
                await response(scope, receive, recorder)
        except GatewayError as exc:
            mcp_session_events_total.labels(event="rejected").inc()
            logger.warning(
                "Rejected MCP request",
                method=request.method,
                session_id=request.headers.get(MCP_SESSION_ID_HEADER),
                reason=exc.message,
            )
            await exc.to_response()(scope, receive, recorder)
        except Exception:
            logger.error(
                "Error handling MCP request", method=request.method, exc_info=True
            )
            if not recorder.started:
                await InternalError().to_response()(scope, receive, recorder)

    def _require_session(
        self, session_id: Optional[str], message: str = INVALID_SESSION_MESSAGE
    ) -> SessionHandle:
        handle = self._registry.lookup(session_id)
        if handle is None:
            raise ProtocolError(message)
        return handle

    async def _handle_post(
        self, request: Request, scope: Scope, receive: Receive, send: _ResponseRecorder
    ) -> None:
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        if session_id:
            handle = self._require_session(session_id, NO_SESSION_MESSAGE)
            await handle.transport.handle_request(scope, receive, send)
            return

        body = await request.body()
        message = json.loads(body)
        if not is_initialize_request(message):
            raise ProtocolError(NO_SESSION_MESSAGE)
        await self._open_session(scope, _replay_body(body, receive), send)

    async def _handle_get(
        self, request: Request, scope: Scope, receive: Receive, send: _ResponseRecorder
    ) -> None:
        accept = request.headers.get("accept", "")
        if self._docs_page is not None and "text/html" in accept:
            await HTMLResponse(self._docs_page)(scope, receive, send)
            return
        handle = self._require_session(request.headers.get(MCP_SESSION_ID_HEADER))
        logger.debug("Opening session stream", session_id=handle.session_id)
        await handle.transport.handle_request(scope, receive, send)

    async def _handle_delete(
        self, request: Request, scope: Scope, receive: Receive, send: _ResponseRecorder
    ) -> None:
        handle = self._require_session(request.headers.get(MCP_SESSION_ID_HEADER))
        await handle.transport.handle_request(scope, receive, send)
        if handle.transport.is_terminated and self._registry.remove(handle.session_id):
            mcp_session_events_total.labels(event="terminated").inc()
            logger.info("Session terminated", session_id=handle.session_id)

    def _build_handle(self, session_id: str) -> SessionHandle:
        transport = StreamableHTTPServerTransport(
            mcp_session_id=session_id,
            is_json_response_enabled=self._json_response,
            event_store=None,
            security_settings=self._security_settings,
        )
        return SessionHandle(
            session_id=session_id,
            transport=transport,
            server=self._server_factory(session_id),
        )

    async def _open_session(
        self, scope: Scope, receive: Receive, send: _ResponseRecorder
    ) -> None:
        if self._task_group is None:
            raise RuntimeError("ProtocolGateway.run() must be entered before use")

        session_id = self._registry.create(self._build_handle)
        handle = self._registry.lookup(session_id)
        mcp_session_events_total.labels(event="created").inc()
        logger.info("Session initialized", session_id=session_id)

        await self._task_group.start(self._run_session, handle)
        await handle.transport.handle_request(scope, receive, send)

        if send.status is None or send.status >= 400:
            logger.warning(
                "Initialize rejected by transport; discarding session",
                session_id=session_id,
                status=send.status,
            )
            self._registry.remove(session_id)
            await handle.transport.terminate()

    async def _run_session(
        self,
        handle: SessionHandle,
        *,
        task_status: TaskStatus = anyio.TASK_STATUS_IGNORED,
    ) -> None:
        server = handle.server
        async with handle.transport.connect() as (read_stream, write_stream):
            task_status.started()
            try:
                await server.run(
                    read_stream,
                    write_stream,
                    server.create_initialization_options(),
                    stateless=False,
                )
            except Exception as exc:
                if _is_discarded_result(exc):
                    logger.debug(
                        "Session closed with calls in flight; results discarded",
                        session_id=handle.session_id,
                    )
                else:
                    logger.error(
                        "Session server failed",
                        session_id=handle.session_id,
                        exc_info=True,
                    )
            finally:
                if self._registry.remove(handle.session_id) is not None:
                    mcp_session_events_total.labels(event="closed").inc()
                    logger.info("Session transport closed", session_id=handle.session_id)
