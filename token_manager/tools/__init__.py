"""
Tools Package - Tool Registry and Execution

This package provides the tool registry for managing available tools,
the executor for running tool calls, and the token templates.

Note: Import the tool catalog from token_manager.tools.catalog directly;
it depends on the Cloudflare client, which itself uses the templates.
"""

from token_manager.tools.executor import ToolExecutor, ToolOutcome
from token_manager.tools.registry import ToolRegistry
from token_manager.tools.templates import TEMPLATES, TokenTemplate, get_template, list_templates

__all__ = [
    "TEMPLATES",
    "TokenTemplate",
    "ToolExecutor",
    "ToolOutcome",
    "ToolRegistry",
    "get_template",
    "list_templates",
]
