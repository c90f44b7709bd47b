"""Tools registry for looking up and executing engine tools."""

import asyncio
import time
from typing import Any

import pydantic

from defichat.errors import DefiChatError, ToolExecutionError, ToolTimeoutError, UnknownToolError, ValidationError
from defichat.models.messages import ToolCall, ToolResult
from defichat.tools.address import create_validate_address_tool
from defichat.tools.balance import create_get_balance_tool
from defichat.tools.base import ToolDefinition, ToolDependencies
from defichat.tools.defi import create_protocol_info_tool, create_yield_opportunities_tool
from defichat.tools.network import create_network_status_tool
from defichat.tools.transfer import create_estimate_gas_tool, create_transfer_tool
from defichat.utils.logging import get_logger

logger = get_logger(__name__)


def format_validation_error(error: pydantic.ValidationError) -> list[str]:
    """Flatten a pydantic error into one message per failing field."""
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        messages.append(f"{location}: {item['msg']}" if location else item["msg"])
    return messages


class ToolsRegistry:
    """Registry of the tools available to the engine.

    Configured once at startup; lookups are exact-name and fail closed.
    """

    def __init__(self, deps: ToolDependencies, timeout_seconds: float = 10.0):
        """Initialize tools registry with its collaborators.

        Args:
            deps: Chain reader, catalogue and payload builder shared by the tools
            timeout_seconds: Upper bound on each tool call
        """
        self.deps = deps
        self.timeout_seconds = timeout_seconds
        self._tools: dict[str, ToolDefinition] = {}
        self._register_default_tools()

    def _register_default_tools(self) -> None:
        """Register the built-in chain and DeFi tools."""
        tools = [
            create_get_balance_tool(self.deps),
            create_transfer_tool(self.deps),
            create_network_status_tool(self.deps),
            create_yield_opportunities_tool(self.deps),
            create_protocol_info_tool(self.deps),
            create_estimate_gas_tool(self.deps),
            create_validate_address_tool(self.deps),
        ]

        for tool in tools:
            self.register_tool(tool)

    def register_tool(self, tool: ToolDefinition) -> None:
        """Register a new tool in the registry."""
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def get_tool(self, name: str) -> ToolDefinition:
        """Look up a tool by exact name.

        Raises:
            UnknownToolError: If no tool has that name
        """
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name)
        return tool

    def get_tool_names(self) -> list[str]:
        """Get list of all registered tool names."""
        return list(self._tools.keys())

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools

    def describe(self) -> str:
        """Render the tool catalogue for prompts."""
        return "\n".join(f"- {tool.name}: {tool.description}" for tool in self._tools.values())

    def validate_arguments(self, name: str, arguments: dict[str, Any]) -> list[str]:
        """Validate arguments against a tool's input schema.

        Returns:
            One message per problem, empty when the arguments are acceptable
        """
        try:
            self.get_tool(name).parse_input(arguments)
        except pydantic.ValidationError as e:
            return format_validation_error(e)
        return []

    async def execute(self, call: ToolCall, caller_address: str | None = None) -> ToolResult:
        """Run one tool call, converting every failure into an error result."""
        started = time.perf_counter()

        try:
            tool = self.get_tool(call.name)
        except UnknownToolError as e:
            logger.warning(f"Rejected call to unknown tool {call.name}")
            return ToolResult.failure(call, e.message, e.error_type)

        try:
            params = tool.parse_input(call.arguments)
        except pydantic.ValidationError as e:
            errors = format_validation_error(e)
            return ToolResult.failure(call, "; ".join(errors), ValidationError.error_type, errors=errors)

        try:
            result = await asyncio.wait_for(tool.handler(params, caller_address), timeout=self.timeout_seconds)
        except TimeoutError:
            error = ToolTimeoutError(f"Tool {call.name} timed out after {self.timeout_seconds}s")
            logger.warning(error.message)
            return ToolResult.failure(call, error.message, error.error_type)
        except ValidationError as e:
            return ToolResult.failure(call, "; ".join(e.errors), e.error_type, errors=e.errors)
        except DefiChatError as e:
            logger.info(f"Tool {call.name} failed: {e.message}")
            return ToolResult.failure(call, e.message, e.error_type)
        except Exception as e:
            logger.error(f"Tool {call.name} raised unexpectedly: {e}", exc_info=True)
            return ToolResult.failure(call, str(e) or type(e).__name__, ToolExecutionError.error_type)

        if result is None:
            logger.error(f"Tool {call.name} returned no result")
            return ToolResult.failure(call, f"Tool {call.name} returned no result", ToolExecutionError.error_type)

        duration_ms = int((time.perf_counter() - started) * 1000)
        logger.debug(f"Tool {call.name} completed in {duration_ms}ms")
        return ToolResult.success(call, result, duration_ms=duration_ms)

    async def execute_all(self, calls: list[ToolCall], caller_address: str | None = None) -> list[ToolResult]:
        """Run calls concurrently and return results in call order.

        The batch is shielded: if the awaiting request is cancelled, calls
        already started still run to completion.
        """
        if not calls:
            return []

        batch = asyncio.gather(*(self.execute(call, caller_address) for call in calls))
        return list(await asyncio.shield(batch))
