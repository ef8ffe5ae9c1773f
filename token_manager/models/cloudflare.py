"""
Cloudflare API Models.

Typed views of the Cloudflare v4 API envelope and the token, policy,
permission group and account resources the tools work with. Unknown fields
returned by the API are kept (extra="allow") and passed through to callers.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class CloudflareMessage(BaseModel):
    """Entry of the envelope's `errors` / `messages` lists."""

    code: Optional[int] = None
    message: str = ""

    model_config = ConfigDict(extra="allow")


class ResultInfo(BaseModel):
    page: Optional[int] = None
    per_page: Optional[int] = None
    total_count: Optional[int] = None
    total_pages: Optional[int] = None

    model_config = ConfigDict(extra="allow")


class CloudflareEnvelope(BaseModel):
    """
    Standard Cloudflare response envelope.

    Attributes:
        success: False means the call failed; `errors` says why.
        errors: Provider error list.
        messages: Informational messages.
        result: Payload (object, list, or None).
        result_info: Pagination info for list endpoints.
    """

    success: bool
    errors: list[CloudflareMessage] = Field(default_factory=list)
    messages: list[CloudflareMessage] = Field(default_factory=list)
    result: Any = None
    result_info: Optional[ResultInfo] = None

    model_config = ConfigDict(extra="allow")


class PermissionGroup(BaseModel):
    """Permission group from /user/tokens/permission_groups."""

    id: str
    name: str
    description: Optional[str] = None
    scopes: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow")


class PermissionGroupRef(BaseModel):
    """Reference to a permission group inside a policy."""

    id: str
    name: Optional[str] = None
    meta: Optional[dict[str, Any]] = None

    model_config = ConfigDict(extra="allow")


class Policy(BaseModel):
    """Token policy: effect, permission groups and resources."""

    id: Optional[str] = None
    effect: Literal["allow", "deny"] = "allow"
    permission_groups: list[PermissionGroupRef] = Field(default_factory=list)
    resources: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="allow")

    def to_request(self) -> dict[str, Any]:
        """Body form used when creating a token (policy id omitted)."""
        return self.model_dump(exclude={"id"}, exclude_none=True)


class RequestIpCondition(BaseModel):
    allow: Optional[list[str]] = Field(default=None, alias="in")
    deny: Optional[list[str]] = Field(default=None, alias="not_in")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class TokenCondition(BaseModel):
    """IP restrictions on a token: `{"request_ip": {"in": [...], "not_in": [...]}}`."""

    request_ip: Optional[RequestIpCondition] = None

    model_config = ConfigDict(extra="allow")

    @classmethod
    def from_ip_lists(
        cls, allow: Optional[list[str]], deny: Optional[list[str]]
    ) -> Optional["TokenCondition"]:
        """Condition for the given allow/deny lists, or None when both are empty."""
        if not allow and not deny:
            return None
        return cls(request_ip=RequestIpCondition(allow=allow, deny=deny))

    def to_request(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Token(BaseModel):
    """
    API token. `value` (the secret) is only present on creation.
    """

    id: str
    name: str = ""
    status: Optional[str] = None
    issued_on: Optional[str] = None
    modified_on: Optional[str] = None
    expires_on: Optional[str] = None
    not_before: Optional[str] = None
    policies: list[Policy] = Field(default_factory=list)
    condition: Optional[TokenCondition] = None
    value: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class Account(BaseModel):
    id: str
    name: str = ""
    type: Optional[str] = None
    settings: Optional[dict[str, Any]] = None

    model_config = ConfigDict(extra="allow")


class TokenPage(BaseModel):
    """One page of tokens plus the total count across pages."""

    tokens: list[Token]
    total: int


class AccountPage(BaseModel):
    accounts: list[Account]
    total: int
