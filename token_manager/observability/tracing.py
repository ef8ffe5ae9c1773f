"""
Request Tracing Module.

Correlation ID generation and propagation, per-request context, and
OpenTelemetry span helpers.

Correlation IDs have the form `ctm-<base36 epoch ms>-<8 random base36 chars>`.
An inbound X-Correlation-ID (or X-Request-ID) header is reused verbatim.

Pattern: Distributed tracing for observability
"""

import secrets
import string
import time
from contextlib import contextmanager
from typing import Any, Generator, Mapping, Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Span, Status, StatusCode, Tracer

from token_manager.models.domain import RequestContext


CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"

_BASE36 = string.digits + string.ascii_lowercase

_tracer_provider: Optional[TracerProvider] = None


# =============================================================================
# Correlation IDs
# =============================================================================


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_correlation_id() -> str:
    """
    Generate a new correlation ID.

    Returns:
        String of the form `ctm-<base36 timestamp>-<8 random chars>`.
    """
    timestamp = _to_base36(int(time.time() * 1000))
    random_part = "".join(secrets.choice(_BASE36) for _ in range(8))
    return f"ctm-{timestamp}-{random_part}"


def extract_correlation_id(headers: Mapping[str, str]) -> Optional[str]:
    """Return the inbound correlation id (X-Correlation-ID, then X-Request-ID)."""
    return headers.get(CORRELATION_ID_HEADER) or headers.get(REQUEST_ID_HEADER) or None


def get_or_create_correlation_id(headers: Mapping[str, str]) -> str:
    """Reuse the caller's correlation id or mint a new one."""
    return extract_correlation_id(headers) or generate_correlation_id()


def create_request_context(
    headers: Mapping[str, str],
    method: str,
    path: str,
    client_id: Optional[str] = None,
) -> RequestContext:
    """
    Create the per-request tracing context at request entry.

    Args:
        headers: Inbound request headers (case-insensitive mapping).
        method: HTTP method.
        path: HTTP path.
        client_id: Rate-limit identity of the caller, if known.

    Returns:
        RequestContext with a correlation id and monotonic start time.
    """
    return RequestContext(
        correlation_id=get_or_create_correlation_id(headers),
        start_time=time.perf_counter(),
        method=method,
        path=path,
        client_id=client_id,
    )


def elapsed_ms(context: RequestContext) -> int:
    """Milliseconds since the request context was created."""
    return int((time.perf_counter() - context.start_time) * 1000)


# =============================================================================
# TracerProvider Configuration
# =============================================================================


def setup_tracing(service_name: str = "cloudflare-token-manager") -> TracerProvider:
    """
    Configure the global OpenTelemetry TracerProvider.

    Spans are exported to the console; an OTLP collector can be attached by
    adding a span processor to the returned provider.

    Args:
        service_name: Name of the service for resource identification

    Returns:
        Configured TracerProvider
    """
    global _tracer_provider

    resource = Resource.create({SERVICE_NAME: service_name})
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    _tracer_provider = provider
    return provider


def shutdown_tracing() -> None:
    """Flush and shut down the provider created by setup_tracing()."""
    global _tracer_provider
    if _tracer_provider is not None:
        _tracer_provider.shutdown()
        _tracer_provider = None


def get_tracer(name: str = __name__) -> Tracer:
    """Get a named tracer instance."""
    return trace.get_tracer(name)


# =============================================================================
# Span Creation Helpers
# =============================================================================


@contextmanager
def create_span(
    name: str,
    attributes: Optional[dict[str, Any]] = None,
) -> Generator[Span, None, None]:
    """
    Context manager for creating a span.

    Exceptions raised inside the block mark the span as errored and
    propagate unchanged.

    Args:
        name: Span name
        attributes: Optional span attributes

    Yields:
        Active span
    """
    tracer = get_tracer()
    with tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        try:
            yield span
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise
