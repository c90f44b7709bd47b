"""Command routing and tool-call extraction."""

import re
from typing import Any

from pydantic import BaseModel, Field

from defichat.models.messages import ToolCall
from defichat.models.transaction import NetworkConfig
from defichat.services.address import shorten
from defichat.services.classifier import ClassifiedMessage
from defichat.tools.registry import ToolsRegistry
from defichat.utils.logging import get_logger

logger = get_logger(__name__)

RISK_LEVELS = ("low", "medium", "high", "all")

COMMAND_USAGE = {
    "/balance": "/balance [address]",
    "/transfer": "/transfer <amount> <address>",
    "/gas": "/gas [transfer|approve|swap|stake|unstake]",
    "/yields": "/yields [min_apy] [low|medium|high|all]",
    "/protocols": "/protocols [name]",
    "/status": "/status",
    "/validate": "/validate <address>",
}

_ADDRESS_IN_TEXT_RE = re.compile(r"0x[a-fA-F0-9]{40}\b")

HELP_TEXT = """🔧 **Available Commands:**

**💰 Financial:**
• /balance [address] - Check USDC & ETH balance
• /transfer <amount> <address> - Create USDC transfer
• /gas [type] - Estimate gas costs

**📊 DeFi & Analysis:**
• /yields [min_apy] [risk] - Show yield opportunities
• /protocols [name] - List DeFi protocols info
• /status - Network & system status

**🔍 Utility:**
• /validate <address> - Validate wallet address
• /help - This command list

💡 You can also ask me anything about DeFi, the Base network, or blockchain concepts!"""


class RouteDecision(BaseModel):
    """Either a direct answer or the tool calls to run before the model."""

    direct_response: str | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)

    @property
    def is_direct(self) -> bool:
        return self.direct_response is not None


class CommandRouter:
    """Maps classified messages to direct answers or tool calls."""

    def __init__(self, registry: ToolsRegistry, network: NetworkConfig):
        self.registry = registry
        self.network = network

    def route(self, classified: ClassifiedMessage, caller_address: str | None = None) -> RouteDecision:
        """Route a classified message.

        Args:
            classified: Output of the classifier
            caller_address: Connected wallet, if any

        Returns:
            A direct response (no tools, no model) or zero or more tool calls
        """
        if classified.is_command:
            return self._route_command(classified.command or "", classified.parameters, caller_address)

        calls = self._extract_from_text(classified.text)
        if calls:
            logger.debug(f"Attached {[c.name for c in calls]} from natural language")
        return RouteDecision(tool_calls=calls)

    def _route_command(self, command: str, parameters: str, caller_address: str | None) -> RouteDecision:
        tokens = parameters.split()

        if command == "/help":
            return RouteDecision(direct_response=HELP_TEXT)
        if command == "/status" and not tokens:
            return RouteDecision(direct_response=self.status_text(caller_address))

        match command:
            case "/balance":
                return self._tool_call(command, "get_balance", {"address": tokens[0]} if tokens else {})
            case "/transfer":
                if len(tokens) < 2:
                    return self._usage(command, ["an amount and a recipient address are required"])
                return self._tool_call(command, "create_transfer", {"amount": tokens[0], "to_address": tokens[1]})
            case "/gas":
                transaction_type = tokens[0] if tokens else "transfer"
                return self._tool_call(command, "estimate_gas", {"transaction_type": transaction_type})
            case "/yields":
                return self._tool_call(command, "get_yield_opportunities", self._yield_arguments(tokens))
            case "/protocols":
                return self._tool_call(command, "get_protocol_info", {"protocol_name": parameters} if tokens else {})
            case "/status":
                return self._tool_call(command, "get_network_status", {})
            case "/validate":
                if not tokens:
                    return self._usage(command, ["an address is required"])
                return self._tool_call(command, "validate_address", {"address": tokens[0]})

        logger.debug(f"Unrecognised command {command}, deferring to the model")
        return RouteDecision()

    def _tool_call(self, command: str, tool_name: str, arguments: dict[str, Any]) -> RouteDecision:
        errors = self.registry.validate_arguments(tool_name, arguments)
        if errors:
            return self._usage(command, errors)
        return RouteDecision(tool_calls=[ToolCall(name=tool_name, arguments=arguments)])

    def _usage(self, command: str, errors: list[str]) -> RouteDecision:
        logger.info(f"Malformed {command} parameters: {errors}")
        problems = "\n".join(f"• {e}" for e in errors)
        return RouteDecision(
            direct_response=(
                f"⚠️ I couldn't run {command}:\n{problems}\n\n"
                f"Usage: `{COMMAND_USAGE[command]}`\n\nType /help to see all commands."
            )
        )

    @staticmethod
    def _yield_arguments(tokens: list[str]) -> dict[str, Any]:
        arguments: dict[str, Any] = {}
        for token in tokens[:2]:
            lowered = token.lower()
            if lowered in RISK_LEVELS:
                arguments["risk_level"] = lowered
            else:
                arguments["min_apy"] = lowered.rstrip("%")
        return arguments

    @staticmethod
    def _extract_from_text(text: str) -> list[ToolCall]:
        lowered = text.lower()
        calls: list[ToolCall] = []
        seen = set()

        def add(call: ToolCall) -> None:
            if call.signature() not in seen:
                seen.add(call.signature())
                calls.append(call)

        if "balance" in lowered or "how much" in lowered:
            match = _ADDRESS_IN_TEXT_RE.search(text)
            add(ToolCall(name="get_balance", arguments={"address": match.group(0)} if match else {}))
        if "gas price" in lowered or "transaction cost" in lowered:
            add(ToolCall(name="get_network_status"))
        if "yield" in lowered or "farming" in lowered or "apy" in lowered:
            add(ToolCall(name="get_yield_opportunities"))

        return calls

    def status_text(self, caller_address: str | None) -> str:
        """Static system status template."""
        wallet = (
            f"👤 **Your Address:** {shorten(caller_address)}" if caller_address else "🔌 **Wallet:** Not connected"
        )
        return (
            "✅ **System Status**\n\n"
            f"🌐 **{self.network.network_name} Network:** Operational\n"
            f"💰 **{self.network.token_symbol} Support:** Active\n"
            "🤖 **AI Assistant:** Online with Blockchain Tools\n"
            f"⚡ **Tools Available:** {len(self.registry.get_tool_names())} tools ready\n\n"
            f"{wallet}\n\n"
            "All systems operational! Use /help to see available commands. 🚀"
        )
