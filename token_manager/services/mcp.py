"""
MCP Dispatcher - JSON-RPC method routing.

Routes a parsed JSON-RPC request to its handler and always produces a
well-formed response envelope. Authentication and body parsing happen in
the HTTP layer before a request reaches the dispatcher.

Methods:
- initialize: protocol version, server info and capabilities
- tools/list: the tool catalog
- tools/call: validate -> rate-gate -> invoke (see ToolExecutor)
- ping, notifications/initialized: empty result
- anything else: -32601 Method not found

Tool failures are returned as results with `isError: true`, not as
JSON-RPC errors. Unexpected failures inside the dispatcher become -32603.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from token_manager import __version__
from token_manager.core.classify import classify_error
from token_manager.models.domain import RateLimitInfo
from token_manager.models.jsonrpc import (
    JsonRpcErrorCode,
    JsonRpcRequest,
    error_response,
    success_response,
    tool_error_result,
    tool_text_result,
)
from token_manager.tools.executor import ToolExecutor
from token_manager.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "cloudflare-token-manager"


@dataclass
class DispatchResult:
    """Response envelope plus rate-limit metadata when the gate was evaluated."""

    response: dict[str, Any]
    rate_limit: Optional[RateLimitInfo] = None


class MCPDispatcher:
    """
    JSON-RPC dispatcher for the MCP endpoint.

    Example:
        >>> dispatcher = MCPDispatcher(registry, executor)
        >>> result = await dispatcher.dispatch(request, client_id="ip:1.2.3.4", correlation_id="ctm-...")
        >>> result.response["result"]
    """

    def __init__(self, registry: ToolRegistry, executor: ToolExecutor) -> None:
        self.registry = registry
        self.executor = executor

    async def dispatch(
        self,
        request: JsonRpcRequest,
        client_id: str,
        correlation_id: str,
    ) -> DispatchResult:
        """
        Handle one JSON-RPC request.

        Never raises: unexpected failures are classified and reported as
        -32603 Internal error responses.
        """
        try:
            return await self._route(request, client_id, correlation_id)
        except Exception as e:
            error = classify_error(e, correlation_id)
            logger.error(
                f"Request handler failed: method={request.method} "
                f"code={error.code.value} message={error.message}"
            )
            return DispatchResult(
                error_response(
                    request.id, JsonRpcErrorCode.INTERNAL_ERROR, error.message, correlation_id
                )
            )

    async def _route(
        self, request: JsonRpcRequest, client_id: str, correlation_id: str
    ) -> DispatchResult:
        method = request.method

        if method == "initialize":
            return DispatchResult(success_response(request.id, self.server_info()))

        if method == "tools/list":
            tools = [definition.to_mcp() for definition in self.registry.list()]
            return DispatchResult(success_response(request.id, {"tools": tools}))

        if method == "tools/call":
            return await self._call_tool(request, client_id, correlation_id)

        if method in ("ping", "notifications/initialized"):
            return DispatchResult(success_response(request.id, {}))

        logger.warning(f"Method not found: {method}")
        return DispatchResult(
            error_response(
                request.id,
                JsonRpcErrorCode.METHOD_NOT_FOUND,
                f"Method not found: {method}",
                correlation_id,
            )
        )

    async def _call_tool(
        self, request: JsonRpcRequest, client_id: str, correlation_id: str
    ) -> DispatchResult:
        params = request.params or {}
        tool_name = params.get("name")

        if not tool_name or not isinstance(tool_name, str):
            return DispatchResult(
                error_response(
                    request.id,
                    JsonRpcErrorCode.INVALID_PARAMS,
                    "Missing tool name",
                    correlation_id,
                )
            )

        if not self.registry.has(tool_name):
            return DispatchResult(
                error_response(
                    request.id,
                    JsonRpcErrorCode.INVALID_PARAMS,
                    f"Unknown tool: {tool_name}",
                    correlation_id,
                )
            )

        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}

        logger.info(f"Calling tool {tool_name} for {client_id}")
        outcome = await self.executor.execute(
            tool_name, arguments, client_id=client_id, correlation_id=correlation_id
        )

        if outcome.error is not None:
            result = tool_error_result(outcome.error)
        else:
            result = tool_text_result(outcome.result)
        return DispatchResult(success_response(request.id, result), outcome.rate_limit)

    @staticmethod
    def server_info() -> dict[str, Any]:
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "serverInfo": {"name": SERVER_NAME, "version": __version__},
            "capabilities": {"tools": {}},
        }
