"""
Unit tests for token_manager/core/exceptions.py - error taxonomy and constructors.
"""

import pytest

from token_manager.core.exceptions import (
    ErrorCode,
    TokenManagerError,
    cloudflare_api_error,
    create_error_response,
    network_error,
    not_found_error,
    rate_limit_error,
    timeout_error,
    tool_not_found_error,
    unauthorized_error,
    validation_error,
)


class TestErrorCode:
    """ErrorCode enum values are stable wire strings."""

    def test_error_code_is_string_enum(self):
        assert ErrorCode.RATE_LIMITED == "RATE_LIMITED"
        assert ErrorCode("CLOUDFLARE_API_ERROR") is ErrorCode.CLOUDFLARE_API_ERROR

    def test_all_codes_present(self):
        expected = {
            "NETWORK_ERROR",
            "TIMEOUT_ERROR",
            "SERVICE_UNAVAILABLE",
            "VALIDATION_ERROR",
            "NOT_FOUND",
            "UNAUTHORIZED",
            "RATE_LIMITED",
            "API_ERROR",
            "CLOUDFLARE_API_ERROR",
            "TOOL_NOT_FOUND",
            "TOOL_EXECUTION_ERROR",
            "UNKNOWN_ERROR",
        }
        assert {code.value for code in ErrorCode} == expected


class TestTokenManagerError:
    """Tests for the single classified exception type."""

    def test_is_exception(self):
        assert issubclass(TokenManagerError, Exception)

    def test_str_is_message(self):
        error = TokenManagerError(ErrorCode.NOT_FOUND, "Template not found: x")
        assert str(error) == "Template not found: x"

    @pytest.mark.parametrize(
        "code,retryable",
        [
            (ErrorCode.NETWORK_ERROR, True),
            (ErrorCode.TIMEOUT_ERROR, True),
            (ErrorCode.SERVICE_UNAVAILABLE, True),
            (ErrorCode.RATE_LIMITED, True),
            (ErrorCode.VALIDATION_ERROR, False),
            (ErrorCode.UNKNOWN_ERROR, False),
        ],
    )
    def test_retryable_defaults_from_code(self, code, retryable):
        assert TokenManagerError(code, "x").retryable is retryable

    def test_explicit_retryable_overrides_default(self):
        error = TokenManagerError(ErrorCode.NETWORK_ERROR, "x", retryable=False)
        assert error.retryable is False

    def test_with_correlation_id_returns_copy(self):
        original = validation_error("bad", details={"issues": ["a"]})
        copy = original.with_correlation_id("ctm-1")

        assert copy is not original
        assert copy.correlation_id == "ctm-1"
        assert original.correlation_id is None
        assert copy.code is original.code
        assert copy.details == {"issues": ["a"]}

    def test_with_correlation_id_keeps_cause(self):
        cause = ValueError("root")
        try:
            raise network_error("down") from cause
        except TokenManagerError as e:
            copy = e.with_correlation_id("ctm-2")
        assert copy.__cause__ is cause

    def test_to_dict(self):
        error = rate_limit_error("Slow down", retry_after=12, correlation_id="ctm-3")
        assert error.to_dict() == {
            "code": "RATE_LIMITED",
            "message": "Slow down",
            "details": {"retryAfter": 12},
            "correlationId": "ctm-3",
            "retryable": True,
        }

    def test_to_dict_without_details(self):
        assert not_found_error("gone").to_dict()["details"] is None


class TestConstructors:
    """Tests for the error constructor helpers."""

    def test_timeout_error(self):
        error = timeout_error("too slow")
        assert error.code is ErrorCode.TIMEOUT_ERROR
        assert error.retryable is True

    def test_rate_limit_error_retry_after(self):
        error = rate_limit_error("Rate limit exceeded. Try again in 30s", retry_after=30)
        assert error.retry_after == 30
        assert error.details == {"retryAfter": 30}

    def test_rate_limit_error_without_retry_after(self):
        assert rate_limit_error("rate limit").retry_after is None

    def test_cloudflare_api_error_client_side_not_retryable(self):
        error = cloudflare_api_error(
            "Cloudflare API error: Invalid token",
            status_code=400,
            cf_errors=[{"code": 1000, "message": "Invalid token"}],
        )
        assert error.code is ErrorCode.CLOUDFLARE_API_ERROR
        assert error.retryable is False
        assert error.status_code == 400
        assert error.details["statusCode"] == 400
        assert error.details["cfErrors"][0]["code"] == 1000

    def test_cloudflare_api_error_server_side_retryable(self):
        assert cloudflare_api_error("Cloudflare API error", status_code=502).retryable is True

    def test_unauthorized_default_message(self):
        error = unauthorized_error()
        assert error.code is ErrorCode.UNAUTHORIZED
        assert error.message == "Unauthorized"

    def test_tool_not_found_error(self):
        error = tool_not_found_error("nope")
        assert error.code is ErrorCode.TOOL_NOT_FOUND
        assert error.message == "Unknown tool: nope"
        assert error.details == {"tool": "nope"}

    def test_create_error_response(self):
        error = validation_error("bad input", correlation_id="ctm-9")
        assert create_error_response(error) == {
            "error": "bad input",
            "code": "VALIDATION_ERROR",
            "retryable": False,
            "correlationId": "ctm-9",
        }
