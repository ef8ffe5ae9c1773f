"""
Prometheus Metrics Module.

Counters and histograms for tool calls and rate-limit decisions, plus the
ASGI app mounted at /metrics.

Pattern: Metrics collection for observability
"""

from typing import Any, Callable

from prometheus_client import Counter, Histogram, make_asgi_app


# =============================================================================
# Tool Call Metrics
# =============================================================================

TOOL_CALLS_TOTAL = Counter(
    name="token_manager_tool_calls_total",
    documentation="Total number of tool invocations by outcome",
    labelnames=["tool", "outcome"],
)

TOOL_DURATION_SECONDS = Histogram(
    name="token_manager_tool_duration_seconds",
    documentation="Tool invocation duration in seconds",
    labelnames=["tool"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 45.0),
)

# =============================================================================
# Rate Limit Metrics
# =============================================================================

RATE_LIMIT_REJECTIONS_TOTAL = Counter(
    name="token_manager_rate_limit_rejections_total",
    documentation="Requests rejected by the rate limiter",
    labelnames=["operation"],
)


# =============================================================================
# Helper Functions
# =============================================================================


def record_tool_call(tool: str, outcome: str, duration_seconds: float) -> None:
    """
    Record one tool invocation.

    Args:
        tool: Tool name.
        outcome: "success" or the ErrorCode value of the failure.
        duration_seconds: Wall-clock duration of the invocation.
    """
    TOOL_CALLS_TOTAL.labels(tool=tool, outcome=outcome).inc()
    TOOL_DURATION_SECONDS.labels(tool=tool).observe(duration_seconds)


def record_rate_limit_rejection(operation: str) -> None:
    """Record a rejected request for an operation class."""
    RATE_LIMIT_REJECTIONS_TOTAL.labels(operation=operation).inc()


def get_metrics_app() -> Callable[..., Any]:
    """ASGI application that serves Prometheus metrics."""
    return make_asgi_app()

