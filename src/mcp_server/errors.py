"""
Transport-level errors raised by the gateway and their JSON-RPC bodies.
"""

from typing import Any, Dict

from starlette.responses import JSONResponse

# JSON-RPC codes used on the HTTP surface
SERVER_ERROR = -32000
INTERNAL_ERROR = -32603


class GatewayError(Exception):
    """Base for errors that reject a request before it reaches a session."""

    code = INTERNAL_ERROR
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_body(self) -> Dict[str, Any]:
        return jsonrpc_error_body(self.code, self.message)

    def to_response(self) -> JSONResponse:
        return JSONResponse(self.to_body(), status_code=self.status_code)


class ProtocolError(GatewayError):
    """Missing, unknown or terminated session identifier."""

    code = SERVER_ERROR
    status_code = 400


class InternalError(GatewayError):
    """Unexpected failure while handling a request; never carries details."""

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message)


def jsonrpc_error_body(code: int, message: str) -> Dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "error": {"code": code, "message": message},
        "id": None,
    }
