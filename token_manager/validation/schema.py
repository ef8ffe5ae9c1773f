"""
Schema Validator - argument validation for tool calls.

Compiles a ParameterSchema into a dynamic pydantic model once, then
validates untrusted `tools/call` arguments against it. Every violation is
collected and reported together; nothing is coerced.

Pattern: Pydantic for validation at API boundaries
Pattern: Compile once per tool (the registry keeps one SchemaValidator per tool)

Rules:
- string: enum membership (takes precedence), minLength, maxLength,
  pattern (re.search semantics)
- number / integer: booleans are rejected; integers need no fractional part
  (3.0 is accepted and left as-is); minimum / maximum are inclusive
- boolean: strict
- array: items validated, minItems / maxItems inclusive
- object: undeclared keys preserved; optional members may be absent
  but not explicitly null
"""

import copy
import math
import re
from typing import Annotated, Any, Callable, Literal, Mapping, Optional, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    Strict,
    StringConstraints,
    ValidationError,
    create_model,
)
from pydantic_core import PydanticCustomError

from token_manager.core.exceptions import validation_error
from token_manager.models.domain import ParameterSchema


# =============================================================================
# Leaf Checks
# =============================================================================


def _number_check(schema: ParameterSchema) -> Callable[[Any], Any]:
    """Build the check for a number or integer property."""
    integer = schema.type == "integer"
    kind = "integer" if integer else "number"
    minimum = schema.minimum
    maximum = schema.maximum

    def check(value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise PydanticCustomError(
                f"{kind}_type",
                "Input should be a valid {kind}",
                {"kind": kind},
            )
        if isinstance(value, float) and not math.isfinite(value):
            raise PydanticCustomError(
                "finite_number", "Input should be a finite number"
            )
        if integer and isinstance(value, float) and not value.is_integer():
            raise PydanticCustomError(
                "int_from_float",
                "Input should be a valid integer, got a number with a fractional part",
            )
        if minimum is not None and value < minimum:
            raise PydanticCustomError(
                "greater_than_equal",
                "Input should be greater than or equal to {ge}",
                {"ge": _render_bound(minimum)},
            )
        if maximum is not None and value > maximum:
            raise PydanticCustomError(
                "less_than_equal",
                "Input should be less than or equal to {le}",
                {"le": _render_bound(maximum)},
            )
        return value

    return check


def _pattern_check(pattern: str) -> Callable[[str], str]:
    """Build a search-semantics pattern check for a string property."""
    try:
        compiled = re.compile(pattern)
    except re.error as e:
        raise ValueError(f"Invalid pattern {pattern!r}: {e}") from e

    def check(value: str) -> str:
        if compiled.search(value) is None:
            raise PydanticCustomError(
                "string_pattern_mismatch",
                "String should match pattern '{pattern}'",
                {"pattern": pattern},
            )
        return value

    return check


def _render_bound(bound: float) -> Union[int, float]:
    return int(bound) if float(bound).is_integer() else bound


# =============================================================================
# Schema Compilation
# =============================================================================


def _annotation_for(schema: ParameterSchema, name: str) -> Any:
    """
    Translate one ParameterSchema node into a pydantic type annotation.

    Args:
        schema: Schema node.
        name: Dotted name of the node, used to name nested models.

    Returns:
        Type annotation usable with create_model.
    """
    kind = schema.type

    if kind == "string":
        if schema.enum:
            return Literal[tuple(schema.enum)]
        metadata: list[Any] = [
            StringConstraints(
                strict=True,
                min_length=schema.min_length,
                max_length=schema.max_length,
            )
        ]
        if schema.pattern:
            metadata.append(AfterValidator(_pattern_check(schema.pattern)))
        return Annotated[(str, *metadata)]

    if kind in ("number", "integer"):
        return Annotated[Any, AfterValidator(_number_check(schema))]

    if kind == "boolean":
        return StrictBool

    if kind == "array":
        item = _annotation_for(schema.items, f"{name}_item") if schema.items else Any
        return Annotated[
            list[item],
            Strict(),
            Field(min_length=schema.min_items, max_length=schema.max_items),
        ]

    if kind == "object":
        if schema.properties is None:
            return Annotated[dict[str, Any], Strict()]
        return _build_model(name, schema)

    return Any


def _build_model(name: str, schema: ParameterSchema) -> type[BaseModel]:
    """
    Build a pydantic model for an object schema.

    Property names are carried as aliases on positional field names so that
    any key (including ones clashing with BaseModel attributes) is usable.
    """
    required = set(schema.required or [])
    fields: dict[str, Any] = {}

    for index, (prop_name, prop_schema) in enumerate((schema.properties or {}).items()):
        annotation = _annotation_for(prop_schema, f"{name}_{index}")
        if prop_name in required:
            fields[f"f_{index}"] = (annotation, Field(..., alias=prop_name))
        else:
            fields[f"f_{index}"] = (annotation, Field(default=None, alias=prop_name))

    model_name = re.sub(r"\W", "_", name) or "Arguments"
    return create_model(
        model_name,
        __config__=ConfigDict(extra="allow", populate_by_name=False),
        **fields,
    )


def format_issue(error: Mapping[str, Any]) -> str:
    """Format one pydantic error as `"<dotted.path>: <reason>"`."""
    path = ".".join(str(part) for part in error.get("loc", ()))
    message = error.get("msg", "Invalid value")
    return f"{path}: {message}" if path else message


# =============================================================================
# SchemaValidator
# =============================================================================


class SchemaValidator:
    """
    Compiled validator for one tool's argument schema.

    Example:
        >>> validator = compile_schema(ParameterSchema.model_validate({
        ...     "type": "object",
        ...     "properties": {"name": {"type": "string"}},
        ...     "required": ["name"],
        ... }))
        >>> validator.validate("create_token", {"name": "ci"})
        {'name': 'ci'}
    """

    def __init__(self, schema: ParameterSchema, model_name: str = "Arguments") -> None:
        self.schema = schema
        object_schema = schema
        if schema.type != "object" or schema.properties is None:
            object_schema = schema.model_copy(
                update={"type": "object", "properties": schema.properties or {}}
            )
        self._model = _build_model(model_name, object_schema)

    def validate(self, tool_name: str, arguments: Any) -> dict[str, Any]:
        """
        Validate arguments against the compiled schema.

        Args:
            tool_name: Tool name used in the error message.
            arguments: Untrusted arguments mapping.

        Returns:
            A deep copy of the arguments (no coercion, undeclared keys kept).

        Raises:
            TokenManagerError: VALIDATION_ERROR listing every violation.
        """
        try:
            self._model.model_validate(arguments)
        except ValidationError as e:
            issues = [format_issue(err) for err in e.errors()]
            raise validation_error(
                f"Invalid arguments for {tool_name}: {', '.join(issues)}",
                details={"issues": issues},
            ) from e
        return copy.deepcopy(dict(arguments))


def compile_schema(
    schema: Union[ParameterSchema, Mapping[str, Any]],
    model_name: str = "Arguments",
) -> SchemaValidator:
    """Compile a schema (model or JSON-Schema dict) into a SchemaValidator."""
    if not isinstance(schema, ParameterSchema):
        schema = ParameterSchema.model_validate(dict(schema))
    return SchemaValidator(schema, model_name=model_name)


def validate_args(
    tool_name: str,
    arguments: Any,
    schema: Union[ParameterSchema, Mapping[str, Any]],
    model_name: Optional[str] = None,
) -> dict[str, Any]:
    """
    One-shot validation without keeping the compiled validator.

    Raises:
        TokenManagerError: VALIDATION_ERROR listing every violation.
    """
    return compile_schema(schema, model_name or "Arguments").validate(tool_name, arguments)
