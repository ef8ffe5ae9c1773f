"""Models Package - domain value objects and JSON-RPC envelopes."""

from token_manager.models.domain import (
    ParameterSchema,
    RateLimitInfo,
    RegisteredTool,
    RequestContext,
    ToolDefinition,
)
from token_manager.models.jsonrpc import JsonRpcRequest, JsonRpcErrorCode

__all__ = [
    "JsonRpcErrorCode",
    "JsonRpcRequest",
    "ParameterSchema",
    "RateLimitInfo",
    "RegisteredTool",
    "RequestContext",
    "ToolDefinition",
]
