"""
Tool Executor.

Runs one `tools/call` through the fixed pipeline:

    validate arguments -> rate-gate (mutating tools) -> invoke -> classify

Validation and rate-limit failures never reach the handler. Every failure
is classified into a TokenManagerError and returned in the outcome rather
than raised, so the dispatcher can always build a well-formed result.

The whole invocation is bounded by a timeout. On expiry the handler (and
its in-flight provider request) is cancelled and TIMEOUT_ERROR reported;
provider-side effects that already happened are not rolled back.

Pattern: Command Executor
Pattern: Dependency Injection (registry and rate limiter are injected)
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from token_manager.api.middleware.rate_limit import RateLimiter
from token_manager.core.classify import classify_error
from token_manager.core.exceptions import TokenManagerError, rate_limit_error, timeout_error
from token_manager.models.domain import RateLimitInfo
from token_manager.observability.metrics import record_rate_limit_rejection, record_tool_call
from token_manager.observability.tracing import create_span
from token_manager.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

# Ceiling for one complete tool invocation in seconds
DEFAULT_TIMEOUT = 45.0


@dataclass
class ToolOutcome:
    """
    Result of executing one tool call.

    Attributes:
        tool_name: Name of the tool.
        result: Handler return value (on success).
        error: Classified failure (on error).
        rate_limit: Rate-limit metadata when the gate was evaluated.
        duration_ms: Wall-clock duration of the call.
    """

    tool_name: str
    result: Any = None
    error: Optional[TokenManagerError] = None
    rate_limit: Optional[RateLimitInfo] = None
    duration_ms: int = 0

    @property
    def is_error(self) -> bool:
        return self.error is not None


class ToolExecutor:
    """
    Executor for registered tools.

    Attributes:
        registry: Tool registry with compiled argument validators.
        rate_limiter: Limiter consulted for tools with a rate_limit_operation.
        timeout: Maximum execution time in seconds.

    Example:
        >>> executor = ToolExecutor(registry, InMemoryRateLimiter())
        >>> outcome = await executor.execute("list_templates", {}, client_id="ip:1.2.3.4")
    """

    def __init__(
        self,
        registry: ToolRegistry,
        rate_limiter: RateLimiter,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.registry = registry
        self.rate_limiter = rate_limiter
        self.timeout = timeout

    async def execute(
        self,
        tool_name: str,
        arguments: Any,
        client_id: str,
        correlation_id: Optional[str] = None,
    ) -> ToolOutcome:
        """
        Execute a tool call.

        Args:
            tool_name: Registered tool name.
            arguments: Untrusted `arguments` object from the request.
            client_id: Rate-limit identity of the caller.
            correlation_id: Attached to any classified error.

        Returns:
            ToolOutcome with either the result or the classified error.

        Raises:
            TokenManagerError: TOOL_NOT_FOUND when the tool is not registered.
        """
        tool = self.registry.get(tool_name)
        validator = self.registry.validator_for(tool_name)
        operation = tool.definition.rate_limit_operation
        rate_limit: Optional[RateLimitInfo] = None
        start = time.perf_counter()

        try:
            with create_span(
                f"tool.{tool_name}",
                {"tool.name": tool_name, "correlation_id": correlation_id},
            ):
                validated = validator.validate(tool_name, arguments)

                if operation:
                    decision = await self.rate_limiter.admit(operation, client_id)
                    rate_limit = RateLimitInfo(
                        remaining=decision.remaining,
                        reset_at=decision.reset_at,
                        limited=not decision.allowed,
                    )
                    if not decision.allowed:
                        raise self._rejected(operation, client_id, decision.retry_after)

                result = await self._invoke(tool.handler, validated, client_id)
        except Exception as e:
            error = classify_error(e, correlation_id)
            duration_ms = self._elapsed_ms(start)
            logger.error(
                f"Tool {tool_name} failed: code={error.code.value} "
                f"message={error.message} duration={duration_ms}ms"
            )
            record_tool_call(tool_name, error.code.value, duration_ms / 1000)
            return ToolOutcome(
                tool_name=tool_name,
                error=error,
                rate_limit=rate_limit,
                duration_ms=duration_ms,
            )

        duration_ms = self._elapsed_ms(start)
        logger.info(f"Tool {tool_name} completed duration={duration_ms}ms")
        record_tool_call(tool_name, "success", duration_ms / 1000)
        return ToolOutcome(
            tool_name=tool_name,
            result=result,
            rate_limit=rate_limit,
            duration_ms=duration_ms,
        )

    @staticmethod
    def _rejected(
        operation: str, client_id: str, retry_after: Optional[int]
    ) -> TokenManagerError:
        """RATE_LIMITED error for a call the limiter turned away."""
        retry_after = retry_after or 1
        logger.warning(
            f"Rate limit exceeded for {client_id} on {operation}: retry_after={retry_after}s"
        )
        record_rate_limit_rejection(operation)
        return rate_limit_error(
            f"Rate limit exceeded. Try again in {retry_after}s", retry_after=retry_after
        )

    async def _invoke(
        self, handler: Any, arguments: dict[str, Any], client_id: str
    ) -> Any:
        try:
            return await asyncio.wait_for(handler(arguments, client_id), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise timeout_error(f"Tool execution timed out after {self.timeout:g}s") from e

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.perf_counter() - start) * 1000)
