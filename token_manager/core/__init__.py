"""Core Package - configuration, error taxonomy and error classification."""

from token_manager.core.classify import classify_error
from token_manager.core.config import Settings, get_settings
from token_manager.core.exceptions import ErrorCode, TokenManagerError

__all__ = [
    "ErrorCode",
    "Settings",
    "TokenManagerError",
    "classify_error",
    "get_settings",
]
