"""
Token Management Tool Catalog.

The eleven tools exposed over `tools/call`, their argument schemas and
handlers. Handlers receive arguments that already passed schema validation
and, for the mutating tools, the rate-limit gate.

Mutating tools (create_token, revoke_token, rotate_token) are gated under
the `token-ops` operation class and emit audit events. Any tool taking an
`accountId` is refused when the account is outside the configured
allow-list.
"""

from typing import Any, Optional

from token_manager.api.middleware.rate_limit import TOKEN_OPS
from token_manager.clients.cloudflare import (
    ALL_ACCOUNTS_RESOURCE,
    ALL_ZONES_RESOURCE,
    CloudflareClient,
    account_resource,
)
from token_manager.core.config import Settings
from token_manager.core.exceptions import (
    not_found_error,
    unauthorized_error,
    validation_error,
)
from token_manager.models.cloudflare import PermissionGroupRef, Policy, Token, TokenCondition
from token_manager.models.domain import ParameterSchema, RegisteredTool, ToolDefinition
from token_manager.observability.audit import AuditLogger
from token_manager.observability.logging import get_logger
from token_manager.tools.registry import ToolRegistry
from token_manager.tools.templates import get_template, list_templates
from token_manager.validation.expiration import parse_expires_in, to_iso8601
from token_manager.validation.fields import (
    validate_cf_id,
    validate_ip_cidr_array,
    validate_optional_cf_id,
    validate_token_type,
)

logger = get_logger(__name__)

SECRET_WARNING = "IMPORTANT: Save this secret now - it will not be shown again!"
ACCESS_DENIED = "Access denied: account not in allowed list"


# =============================================================================
# Argument Schemas
# =============================================================================

_TOKEN_TYPE = {"type": "string", "enum": ["user", "account"], "description": "Token type"}
_ACCOUNT_ID = {"type": "string", "description": "Account ID (required for account tokens)"}


def _schema(properties: dict[str, Any], required: Optional[list[str]] = None) -> ParameterSchema:
    return ParameterSchema.model_validate(
        {"type": "object", "properties": properties, "required": required}
    )


TOOL_DEFINITIONS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name="list_permission_groups",
        description="List all available Cloudflare API permission groups with their IDs and scopes",
        input_schema=_schema(
            {
                "filter": {
                    "type": "string",
                    "description": "Optional filter string to search permission names/descriptions",
                }
            }
        ),
    ),
    ToolDefinition(
        name="list_templates",
        description="List available token templates (full_access, workers_deploy, dns_only, etc.)",
        input_schema=_schema({}),
    ),
    ToolDefinition(
        name="get_template",
        description="Get details of a specific token template",
        input_schema=_schema(
            {
                "templateId": {
                    "type": "string",
                    "description": 'Template ID (e.g., "full_access", "workers_deploy")',
                }
            },
            required=["templateId"],
        ),
    ),
    ToolDefinition(
        name="list_tokens",
        description="List all API tokens (user or account)",
        input_schema=_schema(
            {
                "type": _TOKEN_TYPE,
                "accountId": _ACCOUNT_ID,
                "page": {"type": "integer", "minimum": 1, "description": "Page number (default: 1)"},
                "perPage": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": 100,
                    "description": "Results per page (default: 50)",
                },
            },
            required=["type"],
        ),
    ),
    ToolDefinition(
        name="get_token",
        description="Get details of a specific token",
        input_schema=_schema(
            {
                "type": _TOKEN_TYPE,
                "accountId": _ACCOUNT_ID,
                "tokenId": {"type": "string", "minLength": 1, "description": "Token ID to retrieve"},
            },
            required=["type", "tokenId"],
        ),
    ),
    ToolDefinition(
        name="create_token",
        description=(
            "Create a new API token with custom policies or from a template. "
            "Returns the token secret (shown only once!)."
        ),
        input_schema=_schema(
            {
                "type": _TOKEN_TYPE,
                "accountId": _ACCOUNT_ID,
                "name": {
                    "type": "string",
                    "minLength": 1,
                    "maxLength": 120,
                    "description": "Token name/identifier",
                },
                "template": {
                    "type": "string",
                    "description": (
                        'Template ID (e.g., "full_access", "workers_deploy"). '
                        "Use list_templates to see options."
                    ),
                },
                "permissionGroupIds": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": (
                        "Custom permission group IDs (alternative to template). "
                        "Use list_permission_groups to find IDs."
                    ),
                },
                "resourceScope": {
                    "type": "string",
                    "enum": ["all_accounts", "specific_account", "all_zones"],
                    "description": "Resource scope (default: all_accounts)",
                },
                "expiresIn": {
                    "type": "string",
                    "description": 'Expiration period: "30d", "90d", "1y", "never" (default: never)',
                },
                "ipAllow": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "IP CIDR ranges to allow",
                },
                "ipDeny": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "IP CIDR ranges to deny",
                },
            },
            required=["type", "name"],
        ),
        rate_limit_operation=TOKEN_OPS,
    ),
    ToolDefinition(
        name="revoke_token",
        description="Revoke/delete an API token",
        input_schema=_schema(
            {
                "type": _TOKEN_TYPE,
                "accountId": _ACCOUNT_ID,
                "tokenId": {"type": "string", "minLength": 1, "description": "Token ID to revoke"},
            },
            required=["type", "tokenId"],
        ),
        rate_limit_operation=TOKEN_OPS,
    ),
    ToolDefinition(
        name="verify_token",
        description="Verify if a token is valid and check its status",
        input_schema=_schema(
            {"token": {"type": "string", "minLength": 1, "description": "The token value to verify"}},
            required=["token"],
        ),
    ),
    ToolDefinition(
        name="rotate_token",
        description=(
            "Create a new token with the same permissions as an existing token, "
            "optionally revoking the old one"
        ),
        input_schema=_schema(
            {
                "type": _TOKEN_TYPE,
                "accountId": _ACCOUNT_ID,
                "tokenId": {"type": "string", "minLength": 1, "description": "Token ID to rotate"},
                "revokeOld": {
                    "type": "boolean",
                    "description": "Whether to revoke the old token (default: false)",
                },
                "newName": {
                    "type": "string",
                    "description": 'Name for the new token (default: adds " (rotated)" suffix)',
                },
            },
            required=["type", "tokenId"],
        ),
        rate_limit_operation=TOKEN_OPS,
    ),
    ToolDefinition(
        name="list_accounts",
        description="List all Cloudflare accounts accessible with the current token",
        input_schema=_schema({}),
    ),
    ToolDefinition(
        name="get_account",
        description="Get details of a specific Cloudflare account",
        input_schema=_schema(
            {"accountId": {"type": "string", "description": "Account ID to retrieve"}},
            required=["accountId"],
        ),
    ),
)


# =============================================================================
# Response Formatting
# =============================================================================


def format_token_response(token: Token) -> dict[str, Any]:
    """Created token as returned to the caller, secret included once."""
    return {
        "id": token.id,
        "name": token.name,
        "status": token.status,
        "issuedOn": token.issued_on,
        "expiresOn": token.expires_on,
        "secret": token.value,
        "warning": SECRET_WARNING,
        "policies": [
            {
                "effect": policy.effect,
                "permissions": [g.name or g.id for g in policy.permission_groups],
                "resources": list(policy.resources.keys()),
            }
            for policy in token.policies
        ],
    }


def custom_policy_resources(resource_scope: str, account_id: Optional[str]) -> dict[str, str]:
    """Resources for a policy built from explicit permission group ids."""
    resources: dict[str, str] = {}
    if resource_scope == "all_accounts":
        resources[ALL_ACCOUNTS_RESOURCE] = "*"
    elif resource_scope == "specific_account" and account_id:
        resources[account_resource(account_id)] = "*"
    if resource_scope == "all_zones":
        resources[ALL_ZONES_RESOURCE] = "*"
    return resources


def _require_account_id(token_type: str, account_id: Optional[str]) -> None:
    if token_type == "account" and not account_id:
        raise validation_error("accountId is required for account tokens")


def _token_target(args: dict[str, Any]) -> tuple[str, str, Optional[str]]:
    """(type, tokenId, accountId) of a single-token call, each checked before use in a URL."""
    return (
        validate_token_type(args["type"]),
        validate_cf_id(args["tokenId"], "tokenId"),
        validate_optional_cf_id(args.get("accountId"), "accountId"),
    )


# =============================================================================
# Tool Handlers
# =============================================================================


class TokenTools:
    """
    Handlers for the token management tools.

    Args:
        client: Cloudflare API client (bootstrap token).
        audit: Audit event sink for mutating operations.
        allowed_accounts: Account allow-list; empty means unrestricted.
    """

    def __init__(
        self,
        client: CloudflareClient,
        audit: AuditLogger,
        allowed_accounts: Optional[list[str]] = None,
    ) -> None:
        self.client = client
        self.audit = audit
        self.allowed_accounts = list(allowed_accounts or [])

    def handlers(self) -> dict[str, Any]:
        return {
            "list_permission_groups": self.list_permission_groups,
            "list_templates": self.list_templates,
            "get_template": self.get_template,
            "list_tokens": self.list_tokens,
            "get_token": self.get_token,
            "create_token": self.create_token,
            "revoke_token": self.revoke_token,
            "verify_token": self.verify_token,
            "rotate_token": self.rotate_token,
            "list_accounts": self.list_accounts,
            "get_account": self.get_account,
        }

    def check_account_access(
        self, operation: str, account_id: Optional[str], client_id: Optional[str]
    ) -> None:
        """
        Refuse accounts outside the allow-list.

        Raises:
            TokenManagerError: UNAUTHORIZED (audited as a failed operation).
        """
        if not self.allowed_accounts or not account_id:
            return
        if account_id in self.allowed_accounts:
            return
        logger.warning("account access denied", operation=operation, account_id=account_id)
        self.audit.record(
            operation,
            False,
            error=ACCESS_DENIED,
            client_id=client_id,
            account_id=account_id,
        )
        raise unauthorized_error(ACCESS_DENIED)

    # -------------------------------------------------------------------------
    # Catalog and templates
    # -------------------------------------------------------------------------

    async def list_permission_groups(
        self, args: dict[str, Any], client_id: Optional[str] = None
    ) -> dict[str, Any]:
        groups = await self.client.list_permission_groups()
        needle = (args.get("filter") or "").lower()
        if needle:
            groups = [
                g
                for g in groups
                if needle in g.name.lower()
                or (g.description is not None and needle in g.description.lower())
            ]
        return {
            "count": len(groups),
            "groups": [
                {"id": g.id, "name": g.name, "description": g.description, "scopes": g.scopes}
                for g in groups
            ],
        }

    async def list_templates(
        self, args: dict[str, Any], client_id: Optional[str] = None
    ) -> dict[str, Any]:
        templates = list_templates()
        return {"count": len(templates), "templates": [t.summary() for t in templates]}

    async def get_template(
        self, args: dict[str, Any], client_id: Optional[str] = None
    ) -> dict[str, Any]:
        template_id = args["templateId"]
        template = get_template(template_id)
        if template is None:
            raise not_found_error(f"Template not found: {template_id}")

        resolved = await self.client.resolve_permission_groups(template.permissions)
        return {
            **template.to_dict(),
            "resolvedPermissions": [ref.model_dump(exclude_none=True) for ref in resolved],
        }

    # -------------------------------------------------------------------------
    # Tokens
    # -------------------------------------------------------------------------

    async def list_tokens(
        self, args: dict[str, Any], client_id: Optional[str] = None
    ) -> dict[str, Any]:
        token_type = validate_token_type(args["type"])
        account_id = validate_optional_cf_id(args.get("accountId"), "accountId")
        page = int(args.get("page") or 1)
        per_page = int(args.get("perPage") or 50)

        self.check_account_access("list_tokens", account_id, client_id)
        _require_account_id(token_type, account_id)

        if token_type == "account":
            result = await self.client.list_account_tokens(account_id, page, per_page)
        else:
            result = await self.client.list_user_tokens(page, per_page)
        return result.model_dump(exclude_none=True)

    async def get_token(
        self, args: dict[str, Any], client_id: Optional[str] = None
    ) -> dict[str, Any]:
        token_type, token_id, account_id = _token_target(args)

        self.check_account_access("get_token", account_id, client_id)
        _require_account_id(token_type, account_id)

        if token_type == "account":
            token = await self.client.get_account_token(account_id, token_id)
        else:
            token = await self.client.get_user_token(token_id)
        return token.model_dump(exclude_none=True)

    async def create_token(
        self, args: dict[str, Any], client_id: Optional[str] = None
    ) -> dict[str, Any]:
        token_type = validate_token_type(args["type"])
        name = args["name"]
        account_id = validate_optional_cf_id(args.get("accountId"), "accountId")
        template_id = args.get("template")

        self.check_account_access("create_token", account_id, client_id)
        ip_allow = validate_ip_cidr_array(args.get("ipAllow"), "ipAllow")
        ip_deny = validate_ip_cidr_array(args.get("ipDeny"), "ipDeny")

        async with self.audit.track(
            "create_token",
            client_id=client_id,
            token_type=token_type,
            account_id=account_id,
            token_name=name,
        ):
            _require_account_id(token_type, account_id)

            if template_id:
                token = await self.client.create_token_from_template(
                    token_type=token_type,
                    name=name,
                    template_id=template_id,
                    account_id=account_id,
                    expires_in=args.get("expiresIn"),
                    ip_allow=ip_allow,
                    ip_deny=ip_deny,
                )
                return format_token_response(token)

            permission_group_ids = args.get("permissionGroupIds") or []
            if not permission_group_ids:
                raise validation_error("Either template or permissionGroupIds is required")

            expires = parse_expires_in(args.get("expiresIn"))
            policy = Policy(
                effect="allow",
                permission_groups=[PermissionGroupRef(id=gid) for gid in permission_group_ids],
                resources=custom_policy_resources(
                    args.get("resourceScope") or "all_accounts", account_id
                ),
            )
            kwargs = {
                "name": name,
                "policies": [policy],
                "expires_on": to_iso8601(expires) if expires else None,
                "condition": TokenCondition.from_ip_lists(ip_allow, ip_deny),
            }

            if token_type == "account":
                token = await self.client.create_account_token(account_id, **kwargs)
            else:
                token = await self.client.create_user_token(**kwargs)
            return format_token_response(token)

    async def revoke_token(
        self, args: dict[str, Any], client_id: Optional[str] = None
    ) -> dict[str, Any]:
        token_type, token_id, account_id = _token_target(args)

        self.check_account_access("revoke_token", account_id, client_id)

        async with self.audit.track(
            "revoke_token",
            client_id=client_id,
            token_type=token_type,
            account_id=account_id,
            token_id=token_id,
        ):
            _require_account_id(token_type, account_id)
            if token_type == "account":
                await self.client.revoke_account_token(account_id, token_id)
            else:
                await self.client.revoke_user_token(token_id)

        return {"success": True, "message": f"Token {token_id} revoked"}

    async def verify_token(
        self, args: dict[str, Any], client_id: Optional[str] = None
    ) -> dict[str, Any]:
        return await self.client.verify_token(args["token"])

    async def rotate_token(
        self, args: dict[str, Any], client_id: Optional[str] = None
    ) -> dict[str, Any]:
        """
        Create a copy of an existing token (same policies, expiry and
        conditions), then optionally revoke the original.

        Not atomic: when revocation fails the new token already exists.
        """
        token_type, token_id, account_id = _token_target(args)
        revoke_old = bool(args.get("revokeOld"))

        self.check_account_access("rotate_token", account_id, client_id)

        async with self.audit.track(
            "rotate_token",
            client_id=client_id,
            token_type=token_type,
            account_id=account_id,
            token_id=token_id,
        ):
            _require_account_id(token_type, account_id)

            if token_type == "account":
                existing = await self.client.get_account_token(account_id, token_id)
            else:
                existing = await self.client.get_user_token(token_id)

            kwargs = {
                "name": args.get("newName") or f"{existing.name} (rotated)",
                "policies": existing.policies,
                "expires_on": existing.expires_on,
                "condition": existing.condition,
            }
            if token_type == "account":
                new_token = await self.client.create_account_token(account_id, **kwargs)
            else:
                new_token = await self.client.create_user_token(**kwargs)

            if revoke_old:
                if token_type == "account":
                    await self.client.revoke_account_token(account_id, token_id)
                else:
                    await self.client.revoke_user_token(token_id)

        return {
            "oldToken": {"id": existing.id, "name": existing.name, "revoked": revoke_old},
            "newToken": format_token_response(new_token),
        }

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    async def list_accounts(
        self, args: dict[str, Any], client_id: Optional[str] = None
    ) -> dict[str, Any]:
        page = await self.client.list_accounts()
        accounts = page.accounts
        if self.allowed_accounts:
            accounts = [a for a in accounts if a.id in self.allowed_accounts]
        return {
            "count": len(accounts),
            "accounts": [{"id": a.id, "name": a.name, "type": a.type} for a in accounts],
        }

    async def get_account(
        self, args: dict[str, Any], client_id: Optional[str] = None
    ) -> dict[str, Any]:
        account_id = validate_cf_id(args["accountId"], "accountId")
        self.check_account_access("get_account", account_id, client_id)

        account = await self.client.get_account(account_id)
        return {
            "id": account.id,
            "name": account.name,
            "type": account.type,
            "settings": account.settings,
        }


# =============================================================================
# Registry Factory
# =============================================================================


def build_tool_registry(
    client: CloudflareClient,
    settings: Settings,
    audit: Optional[AuditLogger] = None,
) -> ToolRegistry:
    """
    Registry holding every token management tool bound to `client`.

    Args:
        client: Cloudflare client used by the handlers.
        settings: Supplies the account allow-list and audit switch.
        audit: Audit logger (built from settings when omitted).
    """
    tools = TokenTools(
        client,
        audit or AuditLogger(enabled=settings.enable_audit_log),
        allowed_accounts=settings.allowed_accounts,
    )
    handlers = tools.handlers()

    registry = ToolRegistry()
    for definition in TOOL_DEFINITIONS:
        registry.register(RegisteredTool(definition=definition, handler=handlers[definition.name]))
    return registry
