"""
Error taxonomy for the Cloudflare Token Manager.

Every failure that crosses a component boundary is represented by a single
exception type, TokenManagerError, discriminated by an ErrorCode. Callers
branch on `error.code` rather than on exception subclasses.

The `retryable` flag is a hint for the caller's own backoff policy; nothing in
this service retries automatically.

Reference:
- GUIDELINES: Specific exceptions, always capture with 'as e'
"""

from enum import Enum
from typing import Any, Optional


# =============================================================================
# Error Codes Enum
# =============================================================================


class ErrorCode(str, Enum):
    """
    Error codes for Token Manager failures.

    These codes provide a consistent way to identify error types
    across the JSON-RPC responses and in logging.
    """

    # Network errors (5xx equivalent)
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"

    # Client errors (4xx equivalent)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    RATE_LIMITED = "RATE_LIMITED"

    # Upstream API errors
    API_ERROR = "API_ERROR"
    CLOUDFLARE_API_ERROR = "CLOUDFLARE_API_ERROR"

    # Tool errors
    TOOL_NOT_FOUND = "TOOL_NOT_FOUND"
    TOOL_EXECUTION_ERROR = "TOOL_EXECUTION_ERROR"

    UNKNOWN_ERROR = "UNKNOWN_ERROR"


_RETRYABLE_CODES = frozenset(
    {
        ErrorCode.NETWORK_ERROR,
        ErrorCode.TIMEOUT_ERROR,
        ErrorCode.SERVICE_UNAVAILABLE,
        ErrorCode.RATE_LIMITED,
    }
)


# =============================================================================
# TokenManagerError
# =============================================================================


class TokenManagerError(Exception):
    """
    Classified failure with a stable error code.

    Instances are treated as immutable once raised. Use with_correlation_id()
    to obtain a copy carrying a correlation id.

    Attributes:
        code: Machine-readable error code from ErrorCode enum.
        message: Human-readable error message.
        details: Structured context (retryAfter, statusCode, cfErrors, issues).
        correlation_id: Per-request identifier for log correlation.
        retryable: Hint for the caller's retry policy.
        status_code: Upstream HTTP status, when the failure came from the provider.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
        retryable: Optional[bool] = None,
        status_code: Optional[int] = None,
    ) -> None:
        """
        Initialize the error.

        Args:
            code: Error code.
            message: Human-readable error message.
            details: Optional structured details.
            correlation_id: Optional correlation id.
            retryable: Retry hint; defaults from the error code when omitted.
            status_code: Upstream HTTP status code (optional).
        """
        super().__init__(message)
        self.code = ErrorCode(code)
        self.message = message
        self.details: dict[str, Any] = dict(details) if details else {}
        self.correlation_id = correlation_id
        self.retryable = (
            self.code in _RETRYABLE_CODES if retryable is None else retryable
        )
        self.status_code = status_code

    @property
    def retry_after(self) -> Optional[int]:
        """Seconds until a rate-limited caller may retry, if known."""
        return self.details.get("retryAfter")

    def with_correlation_id(self, correlation_id: str) -> "TokenManagerError":
        """Return a copy of this error with the correlation id attached."""
        copy = TokenManagerError(
            self.code,
            self.message,
            details=self.details,
            correlation_id=correlation_id,
            retryable=self.retryable,
            status_code=self.status_code,
        )
        copy.__cause__ = self.__cause__
        return copy

    def to_dict(self) -> dict[str, Any]:
        """Structured representation used in logs and error payloads."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details or None,
            "correlationId": self.correlation_id,
            "retryable": self.retryable,
        }

    def __repr__(self) -> str:
        return (
            f"TokenManagerError(code={self.code.value!r}, message={self.message!r}, "
            f"retryable={self.retryable!r}, correlation_id={self.correlation_id!r})"
        )


# =============================================================================
# Constructors
# =============================================================================


def network_error(message: str, correlation_id: Optional[str] = None) -> TokenManagerError:
    """Transport-level failure talking to an upstream service."""
    return TokenManagerError(
        ErrorCode.NETWORK_ERROR, message, correlation_id=correlation_id, retryable=True
    )


def timeout_error(message: str, correlation_id: Optional[str] = None) -> TokenManagerError:
    """A call exceeded its timeout ceiling. The outcome is ambiguous."""
    return TokenManagerError(
        ErrorCode.TIMEOUT_ERROR, message, correlation_id=correlation_id, retryable=True
    )


def validation_error(
    message: str,
    details: Optional[dict[str, Any]] = None,
    correlation_id: Optional[str] = None,
) -> TokenManagerError:
    """Invalid caller input."""
    return TokenManagerError(
        ErrorCode.VALIDATION_ERROR,
        message,
        details=details,
        correlation_id=correlation_id,
        retryable=False,
    )


def rate_limit_error(
    message: str,
    retry_after: Optional[int] = None,
    correlation_id: Optional[str] = None,
) -> TokenManagerError:
    """Caller exceeded the rate limit for an operation class."""
    details = {"retryAfter": retry_after} if retry_after else None
    return TokenManagerError(
        ErrorCode.RATE_LIMITED,
        message,
        details=details,
        correlation_id=correlation_id,
        retryable=True,
    )


def cloudflare_api_error(
    message: str,
    status_code: Optional[int] = None,
    cf_errors: Optional[list[dict[str, Any]]] = None,
    correlation_id: Optional[str] = None,
) -> TokenManagerError:
    """
    Cloudflare returned an unsuccessful envelope.

    Only server-side failures (status >= 500) are flagged retryable.
    """
    details: dict[str, Any] = {}
    if status_code is not None:
        details["statusCode"] = status_code
    if cf_errors:
        details["cfErrors"] = cf_errors
    return TokenManagerError(
        ErrorCode.CLOUDFLARE_API_ERROR,
        message,
        details=details,
        correlation_id=correlation_id,
        retryable=bool(status_code and status_code >= 500),
        status_code=status_code,
    )


def not_found_error(message: str, correlation_id: Optional[str] = None) -> TokenManagerError:
    """A requested resource (template, token, account) does not exist."""
    return TokenManagerError(
        ErrorCode.NOT_FOUND, message, correlation_id=correlation_id, retryable=False
    )


def unauthorized_error(
    message: str = "Unauthorized", correlation_id: Optional[str] = None
) -> TokenManagerError:
    """Missing or wrong credentials, or access outside the account allow-list."""
    return TokenManagerError(
        ErrorCode.UNAUTHORIZED, message, correlation_id=correlation_id, retryable=False
    )


def tool_not_found_error(
    tool_name: str, correlation_id: Optional[str] = None
) -> TokenManagerError:
    """The requested tool is not in the catalog."""
    return TokenManagerError(
        ErrorCode.TOOL_NOT_FOUND,
        f"Unknown tool: {tool_name}",
        details={"tool": tool_name},
        correlation_id=correlation_id,
        retryable=False,
    )


def tool_execution_error(
    message: str, tool_name: str, correlation_id: Optional[str] = None
) -> TokenManagerError:
    """A tool handler failed for a reason specific to the tool itself."""
    return TokenManagerError(
        ErrorCode.TOOL_EXECUTION_ERROR,
        message,
        details={"tool": tool_name},
        correlation_id=correlation_id,
        retryable=False,
    )


def create_error_response(error: TokenManagerError) -> dict[str, Any]:
    """Compact error payload embedded in tool error results."""
    return {
        "error": error.message,
        "code": error.code.value,
        "retryable": error.retryable,
        "correlationId": error.correlation_id,
    }
