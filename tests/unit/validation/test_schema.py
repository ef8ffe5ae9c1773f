"""
Unit tests for token_manager/validation/schema.py - SchemaValidator.

Tests cover:
- Required fields and error aggregation
- Strict typing (no coercion, bool is not a number)
- String constraints (enum, length, pattern)
- Array and nested object validation
- Undeclared keys are preserved in the returned copy
"""

import pytest

from token_manager.core.exceptions import ErrorCode, TokenManagerError
from token_manager.validation.schema import SchemaValidator, compile_schema, validate_args


CREATE_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "minLength": 1, "maxLength": 20},
        "type": {"type": "string", "enum": ["user", "account"]},
        "accountId": {"type": "string", "pattern": "^[a-f0-9]{32}$"},
        "perPage": {"type": "integer", "minimum": 1, "maximum": 100},
        "ratio": {"type": "number"},
        "dryRun": {"type": "boolean"},
        "ipAllowlist": {"type": "array", "items": {"type": "string"}, "minItems": 1, "maxItems": 3},
        "policy": {
            "type": "object",
            "properties": {
                "effect": {"type": "string", "enum": ["allow", "deny"]},
                "groups": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["effect"],
        },
    },
    "required": ["name", "type"],
}


@pytest.fixture
def validator() -> SchemaValidator:
    return compile_schema(CREATE_SCHEMA, "CreateTokenArguments")


def _issues(validator: SchemaValidator, arguments) -> list[str]:
    with pytest.raises(TokenManagerError) as exc_info:
        validator.validate("create_token", arguments)
    assert exc_info.value.code is ErrorCode.VALIDATION_ERROR
    return exc_info.value.details["issues"]


class TestRequiredFields:
    def test_valid_minimal_arguments(self, validator):
        assert validator.validate("create_token", {"name": "ci", "type": "user"}) == {
            "name": "ci",
            "type": "user",
        }

    def test_missing_required_names_the_field(self, validator):
        with pytest.raises(TokenManagerError) as exc_info:
            validator.validate("create_token", {"type": "user"})

        error = exc_info.value
        assert error.message.startswith("Invalid arguments for create_token:")
        assert "name" in error.message
        assert error.retryable is False

    def test_all_issues_collected(self, validator):
        issues = _issues(validator, {"perPage": 0})
        paths = {issue.split(":")[0] for issue in issues}
        assert {"name", "type", "perPage"} <= paths

    def test_arguments_must_be_an_object(self, validator):
        with pytest.raises(TokenManagerError):
            validator.validate("create_token", ["name", "type"])


class TestStrictTypes:
    def test_string_not_coerced_from_number(self, validator):
        issues = _issues(validator, {"name": 123, "type": "user"})
        assert any(issue.startswith("name:") for issue in issues)

    def test_explicit_null_for_optional_rejected(self, validator):
        issues = _issues(validator, {"name": "ci", "type": "user", "accountId": None})
        assert any(issue.startswith("accountId:") for issue in issues)

    def test_integer_accepts_whole_float(self, validator):
        result = validator.validate("create_token", {"name": "ci", "type": "user", "perPage": 3.0})
        assert result["perPage"] == 3.0

    def test_integer_rejects_fraction(self, validator):
        issues = _issues(validator, {"name": "ci", "type": "user", "perPage": 2.5})
        assert any("fractional" in issue for issue in issues)

    @pytest.mark.parametrize("field", ["perPage", "ratio"])
    def test_bool_is_not_a_number(self, validator, field):
        issues = _issues(validator, {"name": "ci", "type": "user", field: True})
        assert any(issue.startswith(f"{field}:") for issue in issues)

    def test_number_from_string_rejected(self, validator):
        issues = _issues(validator, {"name": "ci", "type": "user", "ratio": "1.5"})
        assert issues == ["ratio: Input should be a valid number"]

    def test_boolean_is_strict(self, validator):
        issues = _issues(validator, {"name": "ci", "type": "user", "dryRun": "true"})
        assert any(issue.startswith("dryRun:") for issue in issues)

    @pytest.mark.parametrize("value,ok", [(1, True), (100, True), (0, False), (101, False)])
    def test_numeric_bounds_inclusive(self, validator, value, ok):
        arguments = {"name": "ci", "type": "user", "perPage": value}
        if ok:
            assert validator.validate("list_tokens", arguments)["perPage"] == value
        else:
            with pytest.raises(TokenManagerError):
                validator.validate("list_tokens", arguments)


class TestStringConstraints:
    def test_enum_membership(self, validator):
        issues = _issues(validator, {"name": "ci", "type": "global"})
        assert len(issues) == 1
        assert issues[0].startswith("type:")

    def test_min_length(self, validator):
        assert _issues(validator, {"name": "", "type": "user"})[0].startswith("name:")

    def test_max_length(self, validator):
        assert _issues(validator, {"name": "x" * 21, "type": "user"})[0].startswith("name:")

    def test_pattern_match(self, validator):
        result = validator.validate(
            "create_token", {"name": "ci", "type": "account", "accountId": "a" * 32}
        )
        assert result["accountId"] == "a" * 32

    def test_pattern_mismatch(self, validator):
        issues = _issues(validator, {"name": "ci", "type": "account", "accountId": "not-hex"})
        assert issues[0].startswith("accountId: String should match pattern")

    def test_pattern_uses_search_semantics(self):
        validator = compile_schema(
            {"type": "object", "properties": {"v": {"type": "string", "pattern": "abc"}}}
        )
        assert validator.validate("t", {"v": "xxabcxx"}) == {"v": "xxabcxx"}


class TestArraysAndObjects:
    def test_array_items_validated(self, validator):
        issues = _issues(validator, {"name": "ci", "type": "user", "ipAllowlist": ["10.0.0.1", 5]})
        assert issues[0].startswith("ipAllowlist.1:")

    @pytest.mark.parametrize("items", [[], ["a", "b", "c", "d"]])
    def test_array_length_bounds(self, validator, items):
        issues = _issues(validator, {"name": "ci", "type": "user", "ipAllowlist": items})
        assert issues[0].startswith("ipAllowlist:")

    def test_nested_object_path(self, validator):
        issues = _issues(validator, {"name": "ci", "type": "user", "policy": {"groups": []}})
        assert issues[0].startswith("policy.effect:")

    def test_undeclared_keys_preserved(self, validator):
        arguments = {"name": "ci", "type": "user", "extra": {"nested": [1, 2]}}
        result = validator.validate("create_token", arguments)
        assert result["extra"] == {"nested": [1, 2]}

    def test_result_is_a_copy(self, validator):
        arguments = {"name": "ci", "type": "user", "ipAllowlist": ["10.0.0.1"]}
        result = validator.validate("create_token", arguments)
        result["ipAllowlist"].append("10.0.0.2")
        assert arguments["ipAllowlist"] == ["10.0.0.1"]


class TestHelpers:
    def test_property_names_shadowing_model_attributes(self):
        validator = compile_schema(
            {
                "type": "object",
                "properties": {"model_config": {"type": "string"}, "schema": {"type": "string"}},
                "required": ["schema"],
            }
        )
        assert validator.validate("t", {"schema": "s"}) == {"schema": "s"}

    def test_empty_schema_accepts_any_object(self):
        assert validate_args("ping", {"anything": 1}, {"type": "object"}) == {"anything": 1}

    def test_invalid_pattern_fails_at_compile_time(self):
        with pytest.raises(ValueError):
            compile_schema(
                {"type": "object", "properties": {"v": {"type": "string", "pattern": "("}}}
            )
