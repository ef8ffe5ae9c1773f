"""
MCP Router - JSON-RPC endpoint.

POST /mcp accepts one JSON-RPC 2.0 request per call. Checks run in order:

1. X-API-Key (constant-time), before the body is read -> 401
2. Bootstrap token configured -> 503
3. Body parses as JSON -> -32700 Parse error
4. Body is a request envelope -> -32600 Invalid Request
5. Dispatch (see MCPDispatcher)

A rate-limited tool call is answered with HTTP 429 plus X-RateLimit-*
and Retry-After headers; the body is still a JSON-RPC result carrying the
error. Every response carries X-Correlation-ID.
"""

import json
import logging
import math
import time
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from token_manager.api.deps import get_dispatcher, get_request_context, get_settings
from token_manager.api.middleware.rate_limit import rate_limit_headers
from token_manager.api.security import authenticate_request
from token_manager.core.config import Settings
from token_manager.models.domain import RateLimitInfo, RequestContext
from token_manager.models.jsonrpc import JsonRpcErrorCode, JsonRpcRequest, error_response
from token_manager.observability.tracing import CORRELATION_ID_HEADER, elapsed_ms
from token_manager.services.mcp import MCPDispatcher

# Configure logging
logger = logging.getLogger(__name__)

router = APIRouter(tags=["MCP"])


def _respond(
    body: dict[str, Any],
    context: RequestContext,
    status_code: int = status.HTTP_200_OK,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    response_headers = {CORRELATION_ID_HEADER: context.correlation_id}
    if headers:
        response_headers.update(headers)
    return JSONResponse(content=body, status_code=status_code, headers=response_headers)


def _rate_limit_response_headers(info: RateLimitInfo) -> dict[str, str]:
    headers = rate_limit_headers(info.remaining, info.reset_at)
    if info.limited:
        headers["Retry-After"] = str(max(1, math.ceil(info.reset_at - time.time())))
    return headers


def _request_id(payload: Any) -> Any:
    """Echoable id of a malformed envelope, or None."""
    if isinstance(payload, dict):
        request_id = payload.get("id")
        if isinstance(request_id, (int, str)) and not isinstance(request_id, bool):
            return request_id
    return None


@router.post("/mcp")
async def handle_mcp(
    request: Request,
    settings: Settings = Depends(get_settings),
    context: RequestContext = Depends(get_request_context),
    dispatcher: MCPDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    """
    Handle one JSON-RPC request.

    Returns:
        JSONResponse with the JSON-RPC envelope.
    """
    correlation_id = context.correlation_id

    if not authenticate_request(request, settings.api_key.get_secret_value()):
        logger.warning(f"Unauthorized request from {context.client_id}")
        return _respond(
            error_response(None, JsonRpcErrorCode.SERVER_ERROR, "Unauthorized", correlation_id),
            context,
            status.HTTP_401_UNAUTHORIZED,
        )

    if not settings.cloudflare_bootstrap_token.get_secret_value():
        logger.error("Bootstrap token not configured")
        return _respond(
            error_response(
                None,
                JsonRpcErrorCode.SERVER_ERROR,
                "Bootstrap token not configured",
                correlation_id,
            ),
            context,
            status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    try:
        payload = json.loads(await request.body())
    except ValueError:
        logger.warning("Invalid JSON in request body")
        return _respond(
            error_response(None, JsonRpcErrorCode.PARSE_ERROR, "Parse error", correlation_id),
            context,
        )

    try:
        rpc_request = JsonRpcRequest.model_validate(payload)
    except ValidationError:
        logger.warning("Invalid JSON-RPC envelope")
        return _respond(
            error_response(
                _request_id(payload),
                JsonRpcErrorCode.INVALID_REQUEST,
                "Invalid Request",
                correlation_id,
            ),
            context,
        )

    tool_name = (rpc_request.params or {}).get("name")
    logger.info(f"Processing MCP request: method={rpc_request.method} tool={tool_name}")

    result = await dispatcher.dispatch(
        rpc_request,
        client_id=context.client_id or "ip:unknown",
        correlation_id=correlation_id,
    )

    logger.info(f"Request completed duration={elapsed_ms(context)}ms")

    if result.rate_limit is None:
        return _respond(result.response, context)

    status_code = (
        status.HTTP_429_TOO_MANY_REQUESTS if result.rate_limit.limited else status.HTTP_200_OK
    )
    return _respond(
        result.response,
        context,
        status_code,
        _rate_limit_response_headers(result.rate_limit),
    )
