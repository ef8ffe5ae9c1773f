"""
Audit Logging.

Structured `type=audit` events for token operations, emitted only when
TOKEN_MANAGER_ENABLE_AUDIT_LOG is set. Successful operations log at info,
failed ones at error.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Optional

from token_manager.observability.logging import get_logger


class AuditLogger:
    """
    Emits audit events through the structured logger.

    Example:
        >>> audit = AuditLogger(enabled=True)
        >>> async with audit.track("revoke_token", client_id="ip:1.2.3.4", token_id="abc"):
        ...     await client.revoke_user_token("abc")
    """

    def __init__(self, enabled: bool = False) -> None:
        self.enabled = enabled
        self._logger = get_logger("token_manager.audit")

    def record(
        self,
        operation: str,
        success: bool,
        *,
        error: Optional[str] = None,
        client_id: Optional[str] = None,
        token_type: Optional[str] = None,
        account_id: Optional[str] = None,
        token_id: Optional[str] = None,
        token_name: Optional[str] = None,
    ) -> None:
        """Emit one audit event (no-op when auditing is disabled)."""
        if not self.enabled:
            return

        fields: dict[str, Any] = {
            "type": "audit",
            "audit_timestamp": datetime.now(timezone.utc).isoformat(),
            "operation": operation,
            "success": success,
            "error": error,
            "client_id": client_id,
            "token_type": token_type,
            "account_id": account_id,
            "token_id": token_id,
            "token_name": token_name,
        }
        fields = {k: v for k, v in fields.items() if v is not None}

        if success:
            self._logger.info("audit", **fields)
        else:
            self._logger.error("audit", **fields)

    @asynccontextmanager
    async def track(self, operation: str, **meta: Any) -> AsyncGenerator[None, None]:
        """
        Audit the enclosed block: success when it completes, failure
        (with the error message) when it raises. The exception propagates.
        """
        try:
            yield
        except Exception as e:
            self.record(operation, False, error=str(e) or type(e).__name__, **meta)
            raise
        self.record(operation, True, **meta)
