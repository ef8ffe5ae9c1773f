"""
Unit tests for token_manager/validation/fields.py.
"""

import pytest

from token_manager.core.exceptions import ErrorCode, TokenManagerError
from token_manager.validation.fields import (
    is_ip_or_cidr,
    validate_cf_id,
    validate_ip_cidr_array,
    validate_optional_cf_id,
    validate_token_type,
)


class TestIpOrCidr:
    @pytest.mark.parametrize(
        "value",
        ["10.0.0.1", "10.0.0.1/24", "0.0.0.0/0", "192.168.1.0/32", "::1", "2001:db8::/32", "2001:db8::1/128"],
    )
    def test_valid(self, value):
        assert is_ip_or_cidr(value) is True

    @pytest.mark.parametrize(
        "value",
        ["256.1.1.1", "10.0.0.0/33", "1.2.3", "2001:db8::/129", "example.com", "10.0.0.1\n", "", None, 10],
    )
    def test_invalid(self, value):
        assert is_ip_or_cidr(value) is False


class TestValidateIpCidrArray:
    def test_valid_list_returned(self):
        assert validate_ip_cidr_array(["10.0.0.0/8", "::1"]) == ["10.0.0.0/8", "::1"]

    @pytest.mark.parametrize("value", [None, []])
    def test_absent_or_empty(self, value):
        assert validate_ip_cidr_array(value) is None

    def test_not_a_list(self):
        with pytest.raises(TokenManagerError) as exc_info:
            validate_ip_cidr_array("10.0.0.1", "ipAllowlist")
        assert exc_info.value.message == "ipAllowlist must be an array"

    def test_first_invalid_entry_reported_with_index(self):
        with pytest.raises(TokenManagerError) as exc_info:
            validate_ip_cidr_array(["10.0.0.1", "bogus", "also-bad"], "ipAllowlist")
        error = exc_info.value
        assert error.code is ErrorCode.VALIDATION_ERROR
        assert error.message.startswith('Invalid ipAllowlist[1]: "bogus"')


class TestTokenType:
    @pytest.mark.parametrize("value", ["user", "account"])
    def test_valid(self, value):
        assert validate_token_type(value) == value

    @pytest.mark.parametrize("value", ["User", "global", None])
    def test_invalid(self, value):
        with pytest.raises(TokenManagerError):
            validate_token_type(value)


class TestCloudflareId:
    def test_valid(self):
        assert validate_cf_id("0123456789abcdefABCDEF0123456789") == "0123456789abcdefABCDEF0123456789"

    @pytest.mark.parametrize("value", ["abc", "g" * 32, "a" * 33, "a" * 32 + "\n", "../" + "a" * 29, 123])
    def test_invalid(self, value):
        with pytest.raises(TokenManagerError) as exc_info:
            validate_cf_id(value, "accountId")
        assert exc_info.value.message == "Invalid accountId: must be a 32-character hex string"

    @pytest.mark.parametrize("value", [None, ""])
    def test_optional_unset(self, value):
        assert validate_optional_cf_id(value) is None

    def test_optional_validated_when_present(self):
        with pytest.raises(TokenManagerError):
            validate_optional_cf_id("short")
