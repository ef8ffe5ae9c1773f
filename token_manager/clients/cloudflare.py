"""
Cloudflare API Client.

Async client for the parts of the Cloudflare v4 API the token manager uses:
permission groups, user and account tokens, token verification and
accounts. Every call is authenticated with the bootstrap token.

Failure mapping:
- `success: false` envelope -> CLOUDFLARE_API_ERROR with the HTTP status and
  the provider's error list (retryable for status >= 500)
- httpx timeout -> TIMEOUT_ERROR
- other transport failure -> NETWORK_ERROR

No request is retried. A timed-out create may still have succeeded on the
provider side; callers verify state before retrying.

Pattern: Client adapter with injectable httpx.AsyncClient
"""

from typing import Any, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from token_manager.clients.http import create_http_client
from token_manager.core.exceptions import (
    TokenManagerError,
    cloudflare_api_error,
    network_error,
    not_found_error,
    timeout_error,
    validation_error,
)
from token_manager.models.cloudflare import (
    Account,
    AccountPage,
    CloudflareEnvelope,
    PermissionGroup,
    PermissionGroupRef,
    Policy,
    Token,
    TokenCondition,
    TokenPage,
)
from token_manager.observability.logging import get_logger
from token_manager.services.cache import PermissionCatalogCache
from token_manager.tools.templates import TemplatePermission, get_template
from token_manager.validation.expiration import parse_expires_in, to_iso8601


CF_API_BASE = "https://api.cloudflare.com/client/v4"
REQUEST_TIMEOUT_SECONDS = 30.0
PERMISSION_CACHE_TTL_SECONDS = 300.0

ALL_ACCOUNTS_RESOURCE = "com.cloudflare.api.account.*"
ALL_ZONES_RESOURCE = "com.cloudflare.api.account.zone.*"

logger = get_logger(__name__)


def account_resource(account_id: str) -> str:
    return f"com.cloudflare.api.account.{account_id}"


def template_resources(
    resource_scope: str, token_type: str, account_id: Optional[str]
) -> dict[str, str]:
    """
    Resources granted by a template's scope.

    Account-wide scopes name the specific account for account tokens and
    every account otherwise; zone scopes grant every zone.
    """
    resources: dict[str, str] = {}
    if resource_scope in ("all_accounts", "specific_account"):
        if token_type == "account" and account_id:
            resources[account_resource(account_id)] = "*"
        else:
            resources[ALL_ACCOUNTS_RESOURCE] = "*"
    if resource_scope in ("all_zones", "specific_account"):
        resources[ALL_ZONES_RESOURCE] = "*"
    return resources


def _error_messages(envelope: CloudflareEnvelope) -> str:
    return ", ".join(e.message for e in envelope.errors) or "Unknown error"


def _segment(value: str) -> str:
    """Percent-encode one URL path segment. Empty and dot segments are refused."""
    if value in ("", ".", ".."):
        raise validation_error(f"Invalid path segment: {value!r}")
    return quote(value, safe="")


# =============================================================================
# CloudflareClient
# =============================================================================


class CloudflareClient:
    """
    Client for the Cloudflare token and account APIs.

    Example:
        >>> async with CloudflareClient(token="...") as client:
        ...     groups = await client.list_permission_groups()
    """

    def __init__(
        self,
        token: str,
        base_url: str = CF_API_BASE,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = REQUEST_TIMEOUT_SECONDS,
        permission_cache: Optional[PermissionCatalogCache] = None,
    ) -> None:
        """
        Initialize CloudflareClient.

        Args:
            token: Bootstrap API token used for every call
            base_url: API base URL
            http_client: Optional pre-configured HTTP client (for testing)
            timeout_seconds: Per-request timeout
            permission_cache: Cache for the permission group catalog
        """
        self._token = token
        self.timeout_seconds = timeout_seconds
        if http_client is not None:
            self._client = http_client
            self._owns_client = False
        else:
            self._client = create_http_client(
                base_url=base_url, timeout_seconds=timeout_seconds
            )
            self._owns_client = True
        self.permission_cache = permission_cache or PermissionCatalogCache(
            PERMISSION_CACHE_TTL_SECONDS
        )

    async def close(self) -> None:
        """Close the HTTP client if owned by this instance."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "CloudflareClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # =========================================================================
    # Transport
    # =========================================================================

    async def _send(
        self,
        method: str,
        path: str,
        token: str,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> tuple[httpx.Response, CloudflareEnvelope]:
        try:
            response = await self._client.request(
                method,
                path,
                json=json,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout_seconds,
            )
        except httpx.TimeoutException as e:
            raise timeout_error(
                f"Cloudflare API request timed out after {self.timeout_seconds:g}s"
            ) from e
        except httpx.TransportError as e:
            raise network_error(f"Cloudflare API connection failed: {e}") from e

        try:
            envelope = CloudflareEnvelope.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise cloudflare_api_error(
                f"Cloudflare API error: unexpected response (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from e
        return response, envelope

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> CloudflareEnvelope:
        """
        Perform an authenticated API call and unwrap the envelope.

        Raises:
            TokenManagerError: CLOUDFLARE_API_ERROR, TIMEOUT_ERROR or NETWORK_ERROR
        """
        response, envelope = await self._send(method, path, self._token, json, params)
        if not envelope.success:
            logger.warning(
                "cloudflare api call failed",
                method=method,
                path=path,
                status_code=response.status_code,
            )
            raise cloudflare_api_error(
                f"Cloudflare API error: {_error_messages(envelope)}",
                status_code=response.status_code,
                cf_errors=[e.model_dump() for e in envelope.errors],
            )
        return envelope

    # =========================================================================
    # Permission Groups
    # =========================================================================

    async def list_permission_groups(self) -> list[PermissionGroup]:
        """Permission group catalog, served from the TTL cache when fresh."""

        async def load() -> tuple:
            envelope = await self._request("GET", "/user/tokens/permission_groups")
            return tuple(PermissionGroup.model_validate(g) for g in envelope.result or [])

        return list(await self.permission_cache.get_or_load(load))

    async def resolve_permission_groups(
        self, permissions: list[TemplatePermission]
    ) -> list[PermissionGroupRef]:
        """
        Resolve template permissions to permission group references.

        Each permission is matched by exact name, then by its fallback
        patterns (substring), then by requiring every word of the name.

        Raises:
            TokenManagerError: NOT_FOUND when a permission cannot be resolved
        """
        groups = await self.list_permission_groups()
        resolved: list[PermissionGroupRef] = []

        for permission in permissions:
            match = _match_permission(groups, permission)
            if match is None:
                raise not_found_error(f"Required permission not found: {permission.name}")
            resolved.append(PermissionGroupRef(id=match.id, name=match.name))

        return resolved

    # =========================================================================
    # User Tokens
    # =========================================================================

    async def list_user_tokens(self, page: int = 1, per_page: int = 50) -> TokenPage:
        envelope = await self._request(
            "GET", "/user/tokens", params={"page": page, "per_page": per_page}
        )
        return _token_page(envelope)

    async def get_user_token(self, token_id: str) -> Token:
        envelope = await self._request("GET", f"/user/tokens/{_segment(token_id)}")
        return Token.model_validate(envelope.result)

    async def create_user_token(
        self,
        name: str,
        policies: list[Policy],
        expires_on: Optional[str] = None,
        not_before: Optional[str] = None,
        condition: Optional[TokenCondition] = None,
    ) -> Token:
        body = _token_body(name, policies, expires_on, not_before, condition)
        envelope = await self._request("POST", "/user/tokens", json=body)
        return Token.model_validate(envelope.result)

    async def revoke_user_token(self, token_id: str) -> None:
        await self._request("DELETE", f"/user/tokens/{_segment(token_id)}")

    # =========================================================================
    # Account Tokens
    # =========================================================================

    async def list_account_tokens(
        self, account_id: str, page: int = 1, per_page: int = 50
    ) -> TokenPage:
        envelope = await self._request(
            "GET",
            f"/accounts/{_segment(account_id)}/tokens",
            params={"page": page, "per_page": per_page},
        )
        return _token_page(envelope)

    async def get_account_token(self, account_id: str, token_id: str) -> Token:
        path = f"/accounts/{_segment(account_id)}/tokens/{_segment(token_id)}"
        envelope = await self._request("GET", path)
        return Token.model_validate(envelope.result)

    async def create_account_token(
        self,
        account_id: str,
        name: str,
        policies: list[Policy],
        expires_on: Optional[str] = None,
        not_before: Optional[str] = None,
        condition: Optional[TokenCondition] = None,
    ) -> Token:
        body = _token_body(name, policies, expires_on, not_before, condition)
        path = f"/accounts/{_segment(account_id)}/tokens"
        envelope = await self._request("POST", path, json=body)
        return Token.model_validate(envelope.result)

    async def revoke_account_token(self, account_id: str, token_id: str) -> None:
        path = f"/accounts/{_segment(account_id)}/tokens/{_segment(token_id)}"
        await self._request("DELETE", path)

    # =========================================================================
    # Token Verification
    # =========================================================================

    async def verify_token(self, token: str) -> dict[str, Any]:
        """
        Verify a token by calling the verify endpoint with it.

        Never raises: failures are reported as `{"valid": False, "error": ...}`.
        """
        try:
            _, envelope = await self._send("GET", "/user/tokens/verify", token)
        except TokenManagerError as e:
            logger.error("token verification error", error=e.message)
            return {"valid": False, "error": e.message}

        if envelope.success:
            result = envelope.result or {}
            return {
                "valid": True,
                "status": result.get("status"),
                "expiresOn": result.get("expires_on"),
            }

        message = _error_messages(envelope)
        logger.warning("token verification failed", error=message)
        return {"valid": False, "error": message}

    # =========================================================================
    # Template-based Creation
    # =========================================================================

    async def create_token_from_template(
        self,
        token_type: str,
        name: str,
        template_id: str,
        account_id: Optional[str] = None,
        expires_in: Optional[str] = None,
        not_before: Optional[str] = None,
        ip_allow: Optional[list[str]] = None,
        ip_deny: Optional[list[str]] = None,
    ) -> Token:
        """
        Create a token from a preset template.

        Args:
            token_type: "user" or "account"
            name: Token name
            template_id: Template id (see tools.templates)
            account_id: Account for account tokens
            expires_in: Duration token ("30d", "1y", "never")
            not_before: Optional activation instant
            ip_allow: IP/CIDR allow list
            ip_deny: IP/CIDR deny list

        Raises:
            TokenManagerError: NOT_FOUND for an unknown template or permission,
                VALIDATION_ERROR for a bad expiration token
        """
        template = get_template(template_id)
        if template is None:
            raise not_found_error(f"Template not found: {template_id}")

        # Parse before any provider call so bad input never reaches the API
        expires = parse_expires_in(expires_in)

        groups = await self.resolve_permission_groups(template.permissions)
        if not groups:
            raise validation_error("No permission groups could be resolved from template")

        policy = Policy(
            effect="allow",
            permission_groups=[PermissionGroupRef(id=g.id) for g in groups],
            resources=template_resources(template.resource_scope, token_type, account_id),
        )
        kwargs = {
            "name": name,
            "policies": [policy],
            "expires_on": to_iso8601(expires) if expires else None,
            "not_before": not_before,
            "condition": TokenCondition.from_ip_lists(ip_allow, ip_deny),
        }

        if token_type == "account" and account_id:
            return await self.create_account_token(account_id, **kwargs)
        return await self.create_user_token(**kwargs)

    # =========================================================================
    # Accounts
    # =========================================================================

    async def list_accounts(self, page: int = 1, per_page: int = 50) -> AccountPage:
        envelope = await self._request(
            "GET", "/accounts", params={"page": page, "per_page": per_page}
        )
        accounts = [Account.model_validate(a) for a in envelope.result or []]
        return AccountPage(accounts=accounts, total=_total(envelope, len(accounts)))

    async def get_account(self, account_id: str) -> Account:
        envelope = await self._request("GET", f"/accounts/{_segment(account_id)}")
        return Account.model_validate(envelope.result)


# =============================================================================
# Helpers
# =============================================================================


def _match_permission(
    groups: list[PermissionGroup], permission: TemplatePermission
) -> Optional[PermissionGroup]:
    name = permission.name.lower()

    for group in groups:
        if group.name.lower() == name:
            return group

    for pattern in permission.patterns:
        needle = pattern.lower()
        for group in groups:
            if needle in group.name.lower():
                return group

    words = name.split()
    for group in groups:
        group_name = group.name.lower()
        if all(word in group_name for word in words):
            return group

    return None


def _total(envelope: CloudflareEnvelope, fallback: int) -> int:
    if envelope.result_info and envelope.result_info.total_count is not None:
        return envelope.result_info.total_count
    return fallback


def _token_page(envelope: CloudflareEnvelope) -> TokenPage:
    tokens = [Token.model_validate(t) for t in envelope.result or []]
    return TokenPage(tokens=tokens, total=_total(envelope, len(tokens)))


def _token_body(
    name: str,
    policies: list[Policy],
    expires_on: Optional[str],
    not_before: Optional[str],
    condition: Optional[TokenCondition],
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "name": name,
        "policies": [p.to_request() for p in policies],
    }
    if expires_on:
        body["expires_on"] = expires_on
    if not_before:
        body["not_before"] = not_before
    if condition:
        body["condition"] = condition.to_request()
    return body
