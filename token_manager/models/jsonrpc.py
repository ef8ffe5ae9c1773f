"""
JSON-RPC 2.0 envelope models for the MCP endpoint.

Pattern: Pydantic for validation at API boundaries
"""

import json
from enum import IntEnum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

from token_manager.core.exceptions import TokenManagerError, create_error_response


JSONRPC_VERSION = "2.0"


class JsonRpcErrorCode(IntEnum):
    """Error codes used in JSON-RPC error responses."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    SERVER_ERROR = -32000


class JsonRpcRequest(BaseModel):
    """
    Inbound JSON-RPC request envelope.

    Attributes:
        jsonrpc: Protocol version marker.
        id: Request id echoed in the response (None for notifications).
        method: Method name (initialize, tools/list, tools/call, ping, ...).
        params: Method parameters.
    """

    jsonrpc: str = Field(default=JSONRPC_VERSION)
    id: Optional[Union[int, str]] = None
    method: str = Field(..., min_length=1)
    params: Optional[dict[str, Any]] = None


# =============================================================================
# Response Builders
# =============================================================================


def success_response(request_id: Any, result: Any) -> dict[str, Any]:
    """Build a JSON-RPC result envelope."""
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def error_response(
    request_id: Any,
    code: int,
    message: str,
    correlation_id: Optional[str] = None,
) -> dict[str, Any]:
    """Build a JSON-RPC error envelope carrying the correlation id in `data`."""
    error: dict[str, Any] = {"code": int(code), "message": message}
    if correlation_id:
        error["data"] = {"correlationId": correlation_id}
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error}


def tool_text_result(result: Any) -> dict[str, Any]:
    """
    Wrap a tool's return value as MCP text content.

    Strings are passed through; everything else is pretty-printed JSON.
    """
    text = result if isinstance(result, str) else json.dumps(result, indent=2, default=str)
    return {"content": [{"type": "text", "text": text}]}


def tool_error_result(error: TokenManagerError) -> dict[str, Any]:
    """
    Tool failure as an error result (not a JSON-RPC error).

    The calling protocol layer still receives a well-formed envelope.
    """
    structured = create_error_response(error)
    if error.details:
        structured["details"] = error.details
    return {
        "content": [{"type": "text", "text": f"Error: {error.message}"}],
        "isError": True,
        "structuredContent": structured,
    }
