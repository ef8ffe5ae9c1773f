"""
Token Templates.

Preset permission bundles referenced by `create_token(template=...)`.
Permissions are named in human-readable form and resolved to permission
group IDs against the live catalog at creation time (exact name, then the
fallback patterns, then all-words match).
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field


ResourceScope = Literal["all_accounts", "specific_account", "all_zones", "specific_zone"]


class TemplatePermission(BaseModel):
    """Permission named by display name, with substring fallbacks."""

    name: str
    patterns: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}


class TokenTemplate(BaseModel):
    id: str
    name: str
    description: str
    resource_scope: ResourceScope
    permissions: list[TemplatePermission]

    model_config = {"frozen": True}

    def summary(self) -> dict:
        """Short form used by list_templates and GET /templates."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "resourceScope": self.resource_scope,
            "permissionCount": len(self.permissions),
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "resourceScope": self.resource_scope,
            "permissions": [p.model_dump() for p in self.permissions],
        }


def _perm(name: str, *patterns: str) -> TemplatePermission:
    return TemplatePermission(name=name, patterns=list(patterns))


TEMPLATES: tuple[TokenTemplate, ...] = (
    TokenTemplate(
        id="full_access",
        name="Full Access",
        description="Complete read/write access to all account and zone resources",
        resource_scope="all_accounts",
        permissions=[
            # account level
            _perm("Account Settings Write", "Account Settings:Edit"),
            _perm("Workers Scripts Write", "Workers Scripts:Edit", "Worker Scripts:Edit"),
            _perm("Workers KV Storage Write", "Workers KV Storage:Edit"),
            _perm("Workers R2 Storage Write", "Workers R2 Storage:Edit", "R2:Edit"),
            _perm("D1 Write", "D1:Edit"),
            _perm("Durable Objects Write", "Durable Objects:Edit"),
            _perm("Queues Write", "Queues:Edit"),
            _perm("Pages Write", "Cloudflare Pages:Edit"),
            _perm("Images Write", "Cloudflare Images:Edit"),
            _perm("Stream Write", "Cloudflare Stream:Edit"),
            # zone level
            _perm("Zone Settings Write", "Zone Settings:Edit"),
            _perm("DNS Write", "DNS:Edit"),
            _perm("SSL and Certificates Write", "SSL and Certificates:Edit"),
            _perm("Firewall Services Write", "Firewall Services:Edit"),
            _perm("Cache Purge", "Cache Purge:Purge"),
            _perm("Zone Write", "Zone:Edit"),
        ],
    ),
    TokenTemplate(
        id="workers_deploy",
        name="Workers Deploy",
        description="Deploy Workers, KV, R2, D1, Queues, Durable Objects",
        resource_scope="all_accounts",
        permissions=[
            _perm("Workers Scripts Write", "Workers Scripts:Edit"),
            _perm("Workers Routes Write", "Workers Routes:Edit"),
            _perm("Workers KV Storage Write", "Workers KV Storage:Edit"),
            _perm("Workers R2 Storage Write", "Workers R2 Storage:Edit", "R2:Edit"),
            _perm("D1 Write", "D1:Edit"),
            _perm("Durable Objects Write", "Durable Objects:Edit"),
            _perm("Queues Write", "Queues:Edit"),
            _perm("Vectorize Write", "Vectorize:Edit"),
            _perm("Workers AI Write", "Workers AI:Edit", "AI:Edit"),
        ],
    ),
    TokenTemplate(
        id="pages_deploy",
        name="Pages Deploy",
        description="Deploy Cloudflare Pages projects",
        resource_scope="all_accounts",
        permissions=[_perm("Cloudflare Pages Write", "Cloudflare Pages:Edit", "Pages:Edit")],
    ),
    TokenTemplate(
        id="dns_only",
        name="DNS Only",
        description="DNS record management only",
        resource_scope="all_zones",
        permissions=[_perm("DNS Write", "DNS:Edit")],
    ),
    TokenTemplate(
        id="dns_read",
        name="DNS Read",
        description="DNS record read-only access",
        resource_scope="all_zones",
        permissions=[_perm("DNS Read", "DNS:Read")],
    ),
    TokenTemplate(
        id="cache_purge",
        name="Cache Purge",
        description="Cache purge only (for CDN invalidation)",
        resource_scope="all_zones",
        permissions=[_perm("Cache Purge", "Cache Purge:Purge")],
    ),
    TokenTemplate(
        id="analytics_read",
        name="Analytics Read",
        description="Read-only analytics access",
        resource_scope="all_accounts",
        permissions=[
            _perm("Analytics Read", "Analytics:Read", "Account Analytics:Read"),
            _perm("Zone Analytics Read", "Zone Analytics:Read"),
        ],
    ),
    TokenTemplate(
        id="api_tokens_manage",
        name="API Tokens Manage",
        description="Create and manage API tokens (bootstrap token)",
        resource_scope="all_accounts",
        permissions=[_perm("API Tokens Write", "API Tokens:Edit")],
    ),
    TokenTemplate(
        id="zero_trust_admin",
        name="Zero Trust Admin",
        description="Full access to Zero Trust / Access settings",
        resource_scope="all_accounts",
        permissions=[
            _perm("Access: Organizations, Identity Providers, and Groups Write", "Access:Edit"),
            _perm("Access: Apps and Policies Write", "Access: Apps and Policies:Edit"),
            _perm("Zero Trust Write", "Zero Trust:Edit"),
        ],
    ),
    TokenTemplate(
        id="waf_admin",
        name="WAF Admin",
        description="Manage WAF rules and security settings",
        resource_scope="all_zones",
        permissions=[
            _perm("Firewall Services Write", "Firewall Services:Edit"),
            _perm("WAF Write", "WAF:Edit"),
            _perm("Zone WAF Write", "Zone WAF:Edit"),
        ],
    ),
)

_BY_ID = {template.id: template for template in TEMPLATES}


def get_template(template_id: str) -> Optional[TokenTemplate]:
    """Template by id, or None."""
    return _BY_ID.get(template_id)


def list_templates() -> list[TokenTemplate]:
    return list(TEMPLATES)
