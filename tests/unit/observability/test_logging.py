"""
Tests for structured logging and correlation id binding.
"""

import io
import json

from token_manager.observability.logging import (
    add_correlation_id,
    clear_correlation_id,
    configure_logging,
    correlation_id_context,
    get_correlation_id,
    get_logger,
    rename_level,
    set_correlation_id,
)


class TestCorrelationContext:
    def test_default_none(self):
        clear_correlation_id()
        assert get_correlation_id() is None

    def test_context_manager_restores(self):
        clear_correlation_id()
        with correlation_id_context("ctm-outer"):
            assert get_correlation_id() == "ctm-outer"
            with correlation_id_context("ctm-inner"):
                assert get_correlation_id() == "ctm-inner"
            assert get_correlation_id() == "ctm-outer"
        assert get_correlation_id() is None

    def test_set_and_clear(self):
        set_correlation_id("ctm-set")
        assert get_correlation_id() == "ctm-set"
        clear_correlation_id()
        assert get_correlation_id() is None


class TestProcessors:
    def test_add_correlation_id(self):
        with correlation_id_context("ctm-proc"):
            event = add_correlation_id(None, "info", {"event": "x"})
        assert event["correlation_id"] == "ctm-proc"

    def test_add_correlation_id_outside_request(self):
        clear_correlation_id()
        assert "correlation_id" not in add_correlation_id(None, "info", {"event": "x"})

    def test_rename_level(self):
        assert rename_level(None, "info", {"log_level": "info"}) == {"level": "info"}


def test_json_output_carries_correlation_id():
    stream = io.StringIO()
    configure_logging(level="INFO", stream=stream, force=True)
    try:
        with correlation_id_context("ctm-json"):
            get_logger("tests").info("token revoked", token_id="tok1")

        line = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert line["event"] == "token revoked"
        assert line["correlation_id"] == "ctm-json"
        assert line["token_id"] == "tok1"
        assert line["level"] == "info"
        assert line["logger"] == "tests"
        assert "timestamp" in line
    finally:
        configure_logging(force=True)
