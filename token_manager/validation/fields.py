"""
Field validators for individual tool arguments.

IP/CIDR lists for token conditions, token types and Cloudflare identifiers.
Each validator returns the validated value or raises a VALIDATION_ERROR.
"""

import ipaddress
import re
from typing import Any, Optional

from token_manager.core.exceptions import validation_error


TOKEN_TYPES = ("user", "account")

_CF_ID_RE = re.compile(r"[a-fA-F0-9]{32}")
_IPV4_RE = re.compile(r"([0-9]{1,3}\.){3}[0-9]{1,3}(/[0-9]{1,2})?")
_IPV6_RE = re.compile(r"[0-9a-fA-F:.]+(/[0-9]{1,3})?")


def is_ip_or_cidr(value: Any) -> bool:
    """
    True when value is an IPv4/IPv6 address, optionally with a prefix length.

    IPv4 prefixes range /0-/32, IPv6 prefixes /0-/128. Host bits may be set
    (e.g. "10.0.0.1/24").
    """
    if not isinstance(value, str):
        return False
    if not (_IPV4_RE.fullmatch(value) or _IPV6_RE.fullmatch(value)):
        return False
    try:
        ipaddress.ip_network(value, strict=False)
    except ValueError:
        return False
    return True


def validate_ip_cidr_array(
    value: Any, field_name: str = "IP addresses"
) -> Optional[list[str]]:
    """
    Validate a list of IP addresses or CIDR ranges.

    Args:
        value: Untrusted value expected to be a list of strings.
        field_name: Name used in error messages.

    Returns:
        The list, or None when the value is absent or empty.

    Raises:
        TokenManagerError: VALIDATION_ERROR for a non-list value or the first
            invalid entry (with its zero-based index).
    """
    if value is None:
        return None
    if not isinstance(value, list):
        raise validation_error(f"{field_name} must be an array")
    if not value:
        return None

    for index, entry in enumerate(value):
        if not is_ip_or_cidr(entry):
            raise validation_error(
                f'Invalid {field_name}[{index}]: "{entry}" is not a valid IP address or CIDR range'
            )
    return list(value)


def validate_token_type(value: Any) -> str:
    """Validate the `type` argument: "user" or "account"."""
    if value not in TOKEN_TYPES:
        raise validation_error('Invalid token type: must be "user" or "account"')
    return value


def validate_cf_id(value: Any, field_name: str = "ID") -> str:
    """Validate a Cloudflare identifier (32 hex characters)."""
    if not isinstance(value, str) or not _CF_ID_RE.fullmatch(value):
        raise validation_error(f"Invalid {field_name}: must be a 32-character hex string")
    return value


def validate_optional_cf_id(value: Any, field_name: str = "ID") -> Optional[str]:
    """Like validate_cf_id, but None and "" mean the field is unset."""
    if value is None or value == "":
        return None
    return validate_cf_id(value, field_name)
