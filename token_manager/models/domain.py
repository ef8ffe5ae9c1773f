"""
Domain Models - tool definitions, parameter schemas and request context.

This module contains the internal value objects shared by the schema
validator, the tool registry and executor, and the JSON-RPC dispatcher.

Pattern: Domain models as value objects (frozen pydantic models)
Pattern: JSON-Schema-shaped parameter declarations (MCP `inputSchema`)

Note: ParameterSchema is parsed from the same JSON Schema dicts the tool
catalog publishes via `tools/list`, so camelCase keys (minLength, maxItems)
are accepted as aliases.
"""

from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ParameterSchema
# =============================================================================


class ParameterSchema(BaseModel):
    """
    Declarative description of a tool argument (or the argument object).

    Recursive through `items` (arrays) and `properties` (objects).
    Immutable once constructed.

    Attributes:
        type: One of string, number, integer, boolean, array, object.
        description: Human-readable description.
        enum: Allowed values (strings only are enforced).
        min_length / max_length: Inclusive string length bounds.
        pattern: Regular expression the string must contain a match for.
        minimum / maximum: Inclusive numeric bounds.
        items: Element schema for arrays.
        min_items / max_items: Inclusive array length bounds.
        properties: Declared object members.
        required: Names of mandatory object members.

    Example:
        >>> schema = ParameterSchema.model_validate({
        ...     "type": "object",
        ...     "properties": {"name": {"type": "string", "minLength": 1}},
        ...     "required": ["name"],
        ... })
    """

    type: Optional[str] = None
    description: Optional[str] = None
    enum: Optional[list[Any]] = None
    min_length: Optional[int] = Field(default=None, alias="minLength")
    max_length: Optional[int] = Field(default=None, alias="maxLength")
    pattern: Optional[str] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    items: Optional["ParameterSchema"] = None
    min_items: Optional[int] = Field(default=None, alias="minItems")
    max_items: Optional[int] = Field(default=None, alias="maxItems")
    properties: Optional[dict[str, "ParameterSchema"]] = None
    required: Optional[list[str]] = None
    default: Optional[Any] = None

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    def to_json_schema(self) -> dict[str, Any]:
        """Render back to the JSON Schema dict published in `tools/list`."""
        return self.model_dump(by_alias=True, exclude_none=True)


ParameterSchema.model_rebuild()


# =============================================================================
# Tool Definitions
# =============================================================================


class ToolDefinition(BaseModel):
    """
    Metadata describing a tool: name, description and argument schema.

    Attributes:
        name: Unique tool identifier.
        description: Human-readable description of what the tool does.
        input_schema: Schema of the `arguments` object.
        rate_limit_operation: Operation class the call is gated under,
            or None for read-only tools that are not rate limited.
    """

    name: str = Field(..., description="Unique tool identifier")
    description: str = Field(default="", description="Human-readable description")
    input_schema: ParameterSchema = Field(
        default_factory=lambda: ParameterSchema(type="object", properties={}),
        description="Schema for the tool's arguments object",
    )
    rate_limit_operation: Optional[str] = Field(
        default=None, description="Rate-limit operation class for mutating tools"
    )

    model_config = {"frozen": True}

    def to_mcp(self) -> dict[str, Any]:
        """Entry in the `tools/list` result."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema.to_json_schema(),
        }


ToolHandler = Callable[[dict[str, Any], Optional[str]], Awaitable[Any]]


class RegisteredTool(BaseModel):
    """
    A tool definition paired with its async handler.

    The handler receives the validated arguments and the caller's client id
    and returns a JSON-serializable result.
    """

    definition: ToolDefinition
    handler: Callable[..., Awaitable[Any]]

    model_config = {"arbitrary_types_allowed": True}

    @property
    def name(self) -> str:
        return self.definition.name


# =============================================================================
# Request Context & Rate Limit Info
# =============================================================================


class RequestContext(BaseModel):
    """
    Per-request tracing context, created at request entry.

    Attributes:
        correlation_id: Identifier echoed in headers, logs and error bodies.
        start_time: Monotonic start time used for duration logging.
        method: HTTP method.
        path: HTTP path.
        client_id: Rate-limit identity (`client:<id>` or `ip:<addr>`).
    """

    correlation_id: str
    start_time: float
    method: str
    path: str
    client_id: Optional[str] = None

    model_config = {"frozen": True}


class RateLimitInfo(BaseModel):
    """Rate-limit metadata attached to a response once the gate was evaluated."""

    remaining: int
    reset_at: float = Field(..., description="Epoch seconds when the window resets")
    limited: bool = False

    model_config = {"frozen": True}
