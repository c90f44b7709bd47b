"""Transfer construction and gas estimation tools."""

import asyncio
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator
from web3 import Web3

from defichat.errors import ChainReadError, MissingAddressError
from defichat.tools.base import ToolDefinition, ToolDependencies
from defichat.utils.logging import get_logger

logger = get_logger(__name__)

GAS_LIMITS: dict[str, int] = {
    "transfer": 65_000,
    "approve": 45_000,
    "swap": 150_000,
    "stake": 120_000,
    "unstake": 100_000,
}
DEFAULT_GAS_LIMIT = 21_000
FALLBACK_GAS_PRICE_WEI = Web3.to_wei(20, "gwei")


def format_gwei(wei: int) -> str:
    return f"{Web3.from_wei(wei, 'gwei')} Gwei"


class CreateTransferInput(BaseModel):
    """Input schema for the transfer tool.

    Addresses and amount stay plain strings so the builder can report every
    violated rule together.
    """

    to_address: str = Field(..., description="Recipient wallet address")
    amount: str = Field(..., description='Amount of USDC to send, e.g. "10.5"')
    from_address: str | None = Field(default=None, description="Sender address (defaults to the connected wallet)")

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: object) -> object:
        if isinstance(v, int | float | Decimal) and not isinstance(v, bool):
            return str(v)
        return v


class EstimateGasInput(BaseModel):
    """Input schema for the gas estimation tool."""

    transaction_type: str = Field(
        default="transfer",
        description="One of transfer, approve, swap, stake, unstake",
    )
    amount: str | None = Field(default=None, description="Amount involved, if relevant")


def create_transfer_tool(deps: ToolDependencies) -> ToolDefinition:
    async def create_transfer(params: CreateTransferInput, caller_address: str | None) -> dict:
        """Build an unsent USDC transfer payload and attach a gas quote when available."""
        from_address = params.from_address or caller_address
        if not from_address:
            raise MissingAddressError("No sender address provided and no wallet connected")

        builder = deps.builder
        payload = builder.build_transfer(from_address, params.to_address, params.amount)
        units = builder.parse_amount(params.amount)

        result: dict = {
            "success": True,
            "transaction": payload.to_wire(),
            "details": {
                "from": from_address,
                "to": params.to_address,
                "amount": builder.format_amount(units),
                "token": deps.network.token_symbol,
                "network": deps.network.network_name,
                "summary": builder.summarize(payload),
            },
        }

        call = payload.calls[0]
        try:
            gas_limit, gas_price = await asyncio.gather(
                deps.chain.estimate_gas({"from": from_address, "to": call.to, "data": call.data, "value": call.value}),
                deps.chain.read_gas_price(),
            )
        except ChainReadError as e:
            logger.warning(f"Gas quote unavailable for transfer from {from_address}: {e}")
            return result

        result["gas_estimate"] = {"gas_limit": gas_limit, "gas_price": format_gwei(gas_price)}
        result["total_cost"] = f"{Web3.from_wei(gas_limit * gas_price, 'ether')} ETH"
        return result

    return ToolDefinition(
        name="create_transfer",
        description="Create a USDC transfer transaction payload (not broadcast)",
        input_schema_class=CreateTransferInput,
        handler=create_transfer,
    )


def create_estimate_gas_tool(deps: ToolDependencies) -> ToolDefinition:
    async def estimate_gas(params: EstimateGasInput, caller_address: str | None) -> dict:
        """Estimate the cost of a common transaction type at the current gas price."""
        transaction_type = params.transaction_type.lower()
        gas_limit = GAS_LIMITS.get(transaction_type, DEFAULT_GAS_LIMIT)

        try:
            gas_price = await deps.chain.read_gas_price()
            price_source = "network"
        except ChainReadError as e:
            logger.warning(f"Falling back to static gas price: {e}")
            gas_price = FALLBACK_GAS_PRICE_WEI
            price_source = "fallback"

        cost_eth = Web3.from_wei(gas_limit * gas_price, "ether")
        cost_usd = Decimal(cost_eth) * Decimal(str(deps.eth_price_usd))

        return {
            "transaction_type": transaction_type,
            "recognized_type": transaction_type in GAS_LIMITS,
            "gas_estimate": gas_limit,
            "gas_price": format_gwei(gas_price),
            "gas_price_source": price_source,
            "cost_in_eth": f"{cost_eth:.8f}",
            "cost_in_usd": f"{cost_usd:.4f}",
        }

    return ToolDefinition(
        name="estimate_gas",
        description="Estimate gas costs for transfer, approve, swap, stake or unstake transactions",
        input_schema_class=EstimateGasInput,
        handler=estimate_gas,
    )
