"""
Tool Registry.

Holds the tool catalog exposed through `tools/list` and `tools/call`.
Each tool's argument schema is compiled into a SchemaValidator once, at
registration time.

Pattern: Service Registry for tool inventory management
"""

import logging
from typing import Optional

from token_manager.core.exceptions import tool_not_found_error
from token_manager.models.domain import RegisteredTool, ToolDefinition
from token_manager.validation.schema import SchemaValidator, compile_schema

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Registry for managing available tools.

    Attributes:
        _tools: Tool name -> RegisteredTool, in registration order.
        _validators: Tool name -> compiled argument validator.

    Example:
        >>> registry = ToolRegistry()
        >>> registry.register(tool)
        >>> registry.get("list_templates").definition.description
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._tools: dict[str, RegisteredTool] = {}
        self._validators: dict[str, SchemaValidator] = {}

    def register(self, tool: RegisteredTool) -> None:
        """
        Register a tool under its definition's name.

        If a tool with the same name exists, it is overwritten.

        Raises:
            ValueError: If the tool's schema cannot be compiled.
        """
        name = tool.definition.name
        self._validators[name] = compile_schema(
            tool.definition.input_schema, model_name=f"{name}_arguments"
        )
        self._tools[name] = tool
        logger.debug(f"Registered tool: {name}")

    def get(self, name: str) -> RegisteredTool:
        """
        Get a registered tool by name.

        Raises:
            TokenManagerError: TOOL_NOT_FOUND if the tool is not registered.
        """
        if name not in self._tools:
            raise tool_not_found_error(name)
        return self._tools[name]

    def validator_for(self, name: str) -> SchemaValidator:
        """Compiled argument validator of a registered tool."""
        if name not in self._validators:
            raise tool_not_found_error(name)
        return self._validators[name]

    def list(self) -> list[ToolDefinition]:
        """All registered tool definitions, in registration order."""
        return [tool.definition for tool in self._tools.values()]

    def has(self, name: Optional[str]) -> bool:
        return name in self._tools

    def unregister(self, name: str) -> None:
        """Remove a tool; unknown names are ignored."""
        self._tools.pop(name, None)
        self._validators.pop(name, None)
        logger.debug(f"Unregistered tool: {name}")

    def __len__(self) -> int:
        return len(self._tools)
