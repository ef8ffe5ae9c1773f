"""
Constant-Time Authenticator.

Shared-secret check for the X-API-Key header. The comparison time does not
depend on the position of the first differing byte, and a length mismatch
still costs a full-length comparison.
"""

import hmac
from typing import Optional

from starlette.requests import Request


API_KEY_HEADER = "X-API-Key"


def authenticate(presented: Optional[str], expected: Optional[str]) -> bool:
    """
    Compare a presented key against the expected key in constant time.

    Args:
        presented: Key supplied by the caller (may be None).
        expected: Configured key. An empty or unset key rejects everything.

    Returns:
        True only when both keys are non-empty and equal.
    """
    if not presented or not expected:
        return False

    presented_bytes = presented.encode("utf-8")
    expected_bytes = expected.encode("utf-8")

    if len(presented_bytes) != len(expected_bytes):
        # same cost as a real comparison of the presented key
        hmac.compare_digest(presented_bytes, presented_bytes)
        return False

    return hmac.compare_digest(presented_bytes, expected_bytes)


def authenticate_request(request: Request, expected: Optional[str]) -> bool:
    """Authenticate a request by its X-API-Key header."""
    return authenticate(request.headers.get(API_KEY_HEADER), expected)
