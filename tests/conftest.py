"""
Pytest configuration and shared fixtures.

This configuration sets up:
- Test markers for categorization
- FakeRedis for the rate-limit store
- A controllable clock for window arithmetic
- FakeCloudflareAPI: an in-memory Cloudflare v4 API served through
  httpx.MockTransport, so the real CloudflareClient runs against it
- Application fixtures built with create_app()
"""

import json
import re
from typing import Any, Optional

import fakeredis.aioredis
import httpx
import pytest
from fastapi.testclient import TestClient

from token_manager.api.middleware.rate_limit import InMemoryRateLimiter
from token_manager.clients.cloudflare import CF_API_BASE, CloudflareClient
from token_manager.clients.http import create_http_client
from token_manager.core.config import Settings
from token_manager.observability.audit import AuditLogger


API_KEY = "test-api-key-0123456789"
BOOTSTRAP_TOKEN = "bootstrap-token-abcdef"
ACCOUNT_ID = "0123456789abcdef0123456789abcdef"
OTHER_ACCOUNT_ID = "fedcba9876543210fedcba9876543210"


# =============================================================================
# Test Markers
# =============================================================================


def pytest_configure(config):
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Tests through the HTTP surface")


# =============================================================================
# Clock
# =============================================================================


class FakeClock:
    """Epoch-seconds clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# FakeRedis Fixture
# =============================================================================


@pytest.fixture
def fake_redis():
    """
    Create a fake Redis client for testing.

    Returns:
        FakeRedis: A fake Redis client with decode_responses=True
    """
    return fakeredis.aioredis.FakeRedis(decode_responses=True)


# =============================================================================
# Settings Fixture
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Settings with known secrets and no external services."""
    return Settings(
        service_name="cloudflare-token-manager-test",
        environment="development",
        api_key=API_KEY,
        cloudflare_bootstrap_token=BOOTSTRAP_TOKEN,
        allowed_account_ids="",
        enable_audit_log=True,
        redis_url=None,
        rate_limit_per_minute=10,
    )


# =============================================================================
# Fake Cloudflare API
# =============================================================================


PERMISSION_GROUPS = [
    {"id": "pg-dns-edit", "name": "DNS Write", "description": "Edit DNS records", "scopes": ["com.cloudflare.api.account.zone"]},
    {"id": "pg-dns-read", "name": "DNS Read", "description": "Read DNS records", "scopes": ["com.cloudflare.api.account.zone"]},
    {"id": "pg-cache", "name": "Cache Purge", "description": "Purge cached content", "scopes": ["com.cloudflare.api.account.zone"]},
    {"id": "pg-workers", "name": "Workers Scripts Write", "description": "Deploy Worker scripts", "scopes": ["com.cloudflare.api.account"]},
    {"id": "pg-pages", "name": "Pages Write", "description": "Cloudflare Pages:Edit", "scopes": ["com.cloudflare.api.account"]},
    {"id": "pg-tokens", "name": "API Tokens Write", "description": "Manage API tokens", "scopes": ["com.cloudflare.api.user"]},
]


def envelope(result: Any = None, success: bool = True, errors: Optional[list] = None, **extra: Any) -> dict:
    body = {"success": success, "errors": errors or [], "messages": [], "result": result}
    body.update(extra)
    return body


class FakeCloudflareAPI:
    """
    In-memory stand-in for the Cloudflare v4 token and account endpoints.

    Attributes:
        requests: Every request received, in order.
        failures: Path -> (status, errors) forced failure responses.
    """

    _TOKEN_PATH = re.compile(r"^/user/tokens/([^/]+)$")
    _ACCOUNT_PATH = re.compile(r"^/accounts/([^/]+)$")
    _ACCOUNT_TOKENS = re.compile(r"^/accounts/([^/]+)/tokens$")
    _ACCOUNT_TOKEN = re.compile(r"^/accounts/([^/]+)/tokens/([^/]+)$")

    def __init__(self, bootstrap_token: str = BOOTSTRAP_TOKEN) -> None:
        self.bootstrap_token = bootstrap_token
        self.permission_groups = [dict(g) for g in PERMISSION_GROUPS]
        self.accounts = [
            {"id": ACCOUNT_ID, "name": "Primary", "type": "standard", "settings": {"enforce_twofactor": False}},
            {"id": OTHER_ACCOUNT_ID, "name": "Other", "type": "enterprise", "settings": {}},
        ]
        self.user_tokens: dict[str, dict] = {}
        self.account_tokens: dict[tuple[str, str], dict] = {}
        self.valid_tokens: dict[str, str] = {bootstrap_token: "active"}
        self.requests: list[httpx.Request] = []
        self.failures: dict[str, tuple[int, list]] = {}
        self._counter = 0

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(self, timeout_seconds: float = 30.0) -> CloudflareClient:
        http_client = create_http_client(
            base_url=CF_API_BASE, timeout_seconds=timeout_seconds, transport=self.transport
        )
        return CloudflareClient(
            token=self.bootstrap_token, http_client=http_client, timeout_seconds=timeout_seconds
        )

    def add_user_token(self, name: str, **fields: Any) -> dict:
        token = self._new_token(name, fields.pop("policies", []), **fields)
        token.pop("value")
        self.user_tokens[token["id"]] = token
        return token

    def add_account_token(self, account_id: str, name: str, **fields: Any) -> dict:
        token = self._new_token(name, fields.pop("policies", []), **fields)
        token.pop("value")
        self.account_tokens[(account_id, token["id"])] = token
        return token

    def requests_to(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and self._path(r) == path]

    # -------------------------------------------------------------------------

    def _new_token(self, name: str, policies: list, **fields: Any) -> dict:
        self._counter += 1
        names = {g["id"]: g["name"] for g in self.permission_groups}
        token = {
            "id": f"{self._counter:032x}",
            "name": name,
            "status": "active",
            "issued_on": "2024-01-01T00:00:00Z",
            "modified_on": "2024-01-01T00:00:00Z",
            "policies": [
                {
                    "id": f"pol{self._counter:04d}",
                    "effect": p.get("effect", "allow"),
                    "permission_groups": [
                        {"id": g["id"], "name": names.get(g["id"])} for g in p.get("permission_groups", [])
                    ],
                    "resources": p.get("resources", {}),
                }
                for p in policies
            ],
            "value": f"secret-{self._counter:04d}",
        }
        token.update(fields)
        return token

    @staticmethod
    def _path(request: httpx.Request) -> str:
        path = request.url.path
        prefix = httpx.URL(CF_API_BASE).path
        return path[len(prefix):] if path.startswith(prefix) else path

    def _json(self, status_code: int, body: dict) -> httpx.Response:
        return httpx.Response(status_code, json=body)

    def _not_found(self, message: str = "Not found") -> httpx.Response:
        return self._json(404, envelope(None, False, [{"code": 1003, "message": message}]))

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = self._path(request)
        method = request.method
        bearer = request.headers.get("Authorization", "").removeprefix("Bearer ")

        if path in self.failures:
            status_code, errors = self.failures[path]
            return self._json(status_code, envelope(None, False, errors))

        if path == "/user/tokens/verify":
            status = self.valid_tokens.get(bearer)
            if status is None:
                return self._json(401, envelope(None, False, [{"code": 1000, "message": "Invalid API Token"}]))
            return self._json(200, envelope({"id": "verified", "status": status, "expires_on": None}))

        if bearer != self.bootstrap_token:
            return self._json(403, envelope(None, False, [{"code": 9109, "message": "Unauthorized to access requested resource"}]))

        body = json.loads(request.content) if request.content else None

        if path == "/user/tokens/permission_groups" and method == "GET":
            return self._json(200, envelope(self.permission_groups))

        if path == "/user/tokens":
            if method == "GET":
                tokens = list(self.user_tokens.values())
                return self._json(200, envelope(tokens, result_info={"page": 1, "total_count": len(tokens)}))
            if method == "POST":
                token = self._new_token(body["name"], body.get("policies", []))
                for key in ("expires_on", "not_before", "condition"):
                    if key in body:
                        token[key] = body[key]
                stored = dict(token)
                stored.pop("value")
                self.user_tokens[token["id"]] = stored
                return self._json(200, envelope(token))

        match = self._TOKEN_PATH.match(path)
        if match:
            token_id = match.group(1)
            if token_id not in self.user_tokens:
                return self._not_found("Token not found")
            if method == "GET":
                return self._json(200, envelope(self.user_tokens[token_id]))
            if method == "DELETE":
                del self.user_tokens[token_id]
                return self._json(200, envelope({"id": token_id}))

        if path == "/accounts" and method == "GET":
            return self._json(200, envelope(self.accounts, result_info={"total_count": len(self.accounts)}))

        match = self._ACCOUNT_PATH.match(path)
        if match and method == "GET":
            for account in self.accounts:
                if account["id"] == match.group(1):
                    return self._json(200, envelope(account))
            return self._not_found("Account not found")

        match = self._ACCOUNT_TOKENS.match(path)
        if match:
            account_id = match.group(1)
            if method == "GET":
                tokens = [t for (a, _), t in self.account_tokens.items() if a == account_id]
                return self._json(200, envelope(tokens, result_info={"total_count": len(tokens)}))
            if method == "POST":
                token = self._new_token(body["name"], body.get("policies", []))
                for key in ("expires_on", "not_before", "condition"):
                    if key in body:
                        token[key] = body[key]
                stored = dict(token)
                stored.pop("value")
                self.account_tokens[(account_id, token["id"])] = stored
                return self._json(200, envelope(token))

        match = self._ACCOUNT_TOKEN.match(path)
        if match:
            key = (match.group(1), match.group(2))
            if key not in self.account_tokens:
                return self._not_found("Token not found")
            if method == "GET":
                return self._json(200, envelope(self.account_tokens[key]))
            if method == "DELETE":
                del self.account_tokens[key]
                return self._json(200, envelope({"id": key[1]}))

        return self._not_found("Could not route to " + path)


@pytest.fixture
def cloudflare_api() -> FakeCloudflareAPI:
    return FakeCloudflareAPI()


@pytest.fixture
def cloudflare_client(cloudflare_api: FakeCloudflareAPI) -> CloudflareClient:
    return cloudflare_api.client()


@pytest.fixture
def audit_logger() -> AuditLogger:
    return AuditLogger(enabled=True)


# =============================================================================
# Application Fixtures
# =============================================================================


@pytest.fixture
def app(test_settings, cloudflare_api):
    """Application wired to the fake Cloudflare API and an in-memory limiter."""
    from token_manager.main import create_app

    return create_app(
        settings=test_settings,
        cloudflare_client=cloudflare_api.client(),
        rate_limiter=InMemoryRateLimiter(),
    )


@pytest.fixture
def test_client(app):
    """TestClient with the application lifespan running."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"X-API-Key": API_KEY, "X-Client-ID": "test-client"}

