"""
Observability Package.

This package provides observability infrastructure including:
- Structured JSON logging with correlation IDs
- Audit events for token operations
- Prometheus metrics
- Correlation ID tracing and OpenTelemetry spans
"""

from token_manager.observability.audit import AuditLogger
from token_manager.observability.logging import (
    clear_correlation_id,
    configure_logging,
    correlation_id_context,
    get_correlation_id,
    get_logger,
    set_correlation_id,
)
from token_manager.observability.metrics import (
    get_metrics_app,
    record_rate_limit_rejection,
    record_tool_call,
)
from token_manager.observability.tracing import (
    create_request_context,
    create_span,
    generate_correlation_id,
    get_or_create_correlation_id,
    get_tracer,
    setup_tracing,
)

__all__ = [
    # Audit
    "AuditLogger",
    # Logging
    "configure_logging",
    "get_logger",
    "set_correlation_id",
    "get_correlation_id",
    "clear_correlation_id",
    "correlation_id_context",
    # Metrics
    "get_metrics_app",
    "record_tool_call",
    "record_rate_limit_rejection",
    # Tracing
    "create_request_context",
    "create_span",
    "generate_correlation_id",
    "get_or_create_correlation_id",
    "get_tracer",
    "setup_tracing",
]
