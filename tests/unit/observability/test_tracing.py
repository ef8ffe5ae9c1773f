"""
Tests for Request Tracing - correlation ids, request context and spans.
"""

import re
from unittest.mock import MagicMock, patch

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.trace import StatusCode

from token_manager.observability.tracing import (
    create_request_context,
    create_span,
    elapsed_ms,
    extract_correlation_id,
    generate_correlation_id,
    get_or_create_correlation_id,
    setup_tracing,
    shutdown_tracing,
)


CORRELATION_ID_RE = re.compile(r"^ctm-[0-9a-z]+-[0-9a-z]{8}$")


class TestCorrelationIds:
    def test_format(self):
        assert CORRELATION_ID_RE.match(generate_correlation_id())

    def test_unique(self):
        assert len({generate_correlation_id() for _ in range(200)}) == 200

    def test_extract_prefers_correlation_header(self):
        headers = {"X-Correlation-ID": "corr", "X-Request-ID": "req"}
        assert extract_correlation_id(headers) == "corr"

    def test_extract_request_id_fallback(self):
        assert extract_correlation_id({"X-Request-ID": "req"}) == "req"

    def test_extract_none(self):
        assert extract_correlation_id({}) is None

    def test_inbound_reused_verbatim(self):
        assert get_or_create_correlation_id({"X-Correlation-ID": "Upstream/ID 1"}) == "Upstream/ID 1"

    def test_minted_when_absent(self):
        assert CORRELATION_ID_RE.match(get_or_create_correlation_id({}))


class TestRequestContext:
    def test_fields(self):
        context = create_request_context({}, "POST", "/mcp", client_id="client:a")
        assert context.method == "POST"
        assert context.path == "/mcp"
        assert context.client_id == "client:a"
        assert CORRELATION_ID_RE.match(context.correlation_id)

    def test_elapsed_non_negative(self):
        context = create_request_context({}, "GET", "/health")
        assert elapsed_ms(context) >= 0

    def test_immutable(self):
        context = create_request_context({}, "GET", "/health")
        with pytest.raises(Exception):
            context.path = "/other"


class TestSpans:
    def test_create_span_sets_attributes(self):
        span = MagicMock()
        tracer = MagicMock()
        tracer.start_as_current_span.return_value.__enter__.return_value = span

        with patch("token_manager.observability.tracing.get_tracer", return_value=tracer):
            with create_span("tool.get_token", {"tool.name": "get_token", "correlation_id": None}):
                pass

        tracer.start_as_current_span.assert_called_once_with("tool.get_token")
        span.set_attribute.assert_called_once_with("tool.name", "get_token")

    def test_create_span_marks_error_and_reraises(self):
        span = MagicMock()
        tracer = MagicMock()
        tracer.start_as_current_span.return_value.__enter__.return_value = span

        with patch("token_manager.observability.tracing.get_tracer", return_value=tracer):
            with pytest.raises(ValueError, match="bad input"):
                with create_span("tool.create_token"):
                    raise ValueError("bad input")

        status = span.set_status.call_args[0][0]
        assert status.status_code is StatusCode.ERROR
        assert status.description == "bad input"

    def test_create_span_without_provider(self):
        with create_span("tool.list_accounts") as span:
            assert span is not None

    def test_setup_and_shutdown(self):
        provider = setup_tracing(service_name="cloudflare-token-manager-test")
        try:
            assert isinstance(provider, TracerProvider)
            assert provider.resource.attributes["service.name"] == "cloudflare-token-manager-test"
        finally:
            shutdown_tracing()
        shutdown_tracing()
