"""Validation Package - argument schemas, expiration tokens and field checks."""

from token_manager.validation.expiration import (
    VALID_EXPIRATION_SHORTCUTS,
    format_expiration,
    is_valid_expiration_format,
    parse_expires_in,
)
from token_manager.validation.fields import (
    validate_cf_id,
    validate_ip_cidr_array,
    validate_optional_cf_id,
    validate_token_type,
)
from token_manager.validation.schema import SchemaValidator, compile_schema, validate_args

__all__ = [
    "SchemaValidator",
    "VALID_EXPIRATION_SHORTCUTS",
    "compile_schema",
    "format_expiration",
    "is_valid_expiration_format",
    "parse_expires_in",
    "validate_args",
    "validate_cf_id",
    "validate_ip_cidr_array",
    "validate_optional_cf_id",
    "validate_token_type",
]
