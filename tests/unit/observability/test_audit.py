"""
Tests for audit events.
"""

import pytest
from structlog.testing import capture_logs

from token_manager.observability.audit import AuditLogger


def _audit(logs):
    return [entry for entry in logs if entry.get("type") == "audit"]


class TestRecord:
    def test_disabled_emits_nothing(self):
        audit = AuditLogger(enabled=False)
        with capture_logs() as logs:
            audit.record("create_token", True, client_id="client:a")
        assert _audit(logs) == []

    def test_success_at_info(self):
        audit = AuditLogger(enabled=True)
        with capture_logs() as logs:
            audit.record("revoke_token", True, client_id="client:a", token_id="tok1", token_type="user")

        [event] = _audit(logs)
        assert event["event"] == "audit"
        assert event["log_level"] == "info"
        assert event["operation"] == "revoke_token"
        assert event["success"] is True
        assert event["token_id"] == "tok1"
        assert "audit_timestamp" in event

    def test_failure_at_error(self):
        audit = AuditLogger(enabled=True)
        with capture_logs() as logs:
            audit.record("create_token", False, error="Cloudflare API error: denied")

        [event] = _audit(logs)
        assert event["log_level"] == "error"
        assert event["error"] == "Cloudflare API error: denied"

    def test_unset_fields_omitted(self):
        audit = AuditLogger(enabled=True)
        with capture_logs() as logs:
            audit.record("rotate_token", True)

        [event] = _audit(logs)
        for field in ("error", "client_id", "account_id", "token_id", "token_name", "token_type"):
            assert field not in event


class TestTrack:
    @pytest.mark.asyncio
    async def test_success(self):
        audit = AuditLogger(enabled=True)
        with capture_logs() as logs:
            async with audit.track("create_token", client_id="client:a", token_name="ci"):
                pass

        [event] = _audit(logs)
        assert event["success"] is True
        assert event["token_name"] == "ci"

    @pytest.mark.asyncio
    async def test_failure_recorded_and_reraised(self):
        audit = AuditLogger(enabled=True)
        with capture_logs() as logs:
            with pytest.raises(RuntimeError):
                async with audit.track("revoke_token", token_id="tok1"):
                    raise RuntimeError("provider down")

        [event] = _audit(logs)
        assert event["success"] is False
        assert event["error"] == "provider down"

    @pytest.mark.asyncio
    async def test_empty_message_uses_type_name(self):
        audit = AuditLogger(enabled=True)
        with capture_logs() as logs:
            with pytest.raises(KeyError):
                async with audit.track("rotate_token"):
                    raise KeyError()

        assert _audit(logs)[0]["error"] == "KeyError"
