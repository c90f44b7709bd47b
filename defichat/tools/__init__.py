"""Tools the chat engine runs before consulting the language model."""

from defichat.tools.registry import ToolsRegistry

__all__ = ["ToolsRegistry"]
