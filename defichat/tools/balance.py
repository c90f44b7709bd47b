"""Wallet balance tool."""

import asyncio

from pydantic import BaseModel, Field, field_validator
from web3 import Web3

from defichat.errors import MissingAddressError, ValidationError
from defichat.services.address import is_address
from defichat.tools.base import ToolDefinition, ToolDependencies, timestamp
from defichat.utils.logging import get_logger

logger = get_logger(__name__)


class GetBalanceInput(BaseModel):
    """Input schema for the balance tool."""

    address: str | None = Field(
        default=None,
        description="Wallet address to check (uses the connected wallet if omitted)",
        examples=["0x742d35Cc6634C0532925a3b844Bc454e4438f44e"],
    )

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: str | None) -> str | None:
        if v is not None and not is_address(v):
            raise ValueError("Address must be 0x followed by 40 hex characters")
        return v


def create_get_balance_tool(deps: ToolDependencies) -> ToolDefinition:
    async def get_balance(params: GetBalanceInput, caller_address: str | None) -> dict:
        """Read USDC and ETH balances for an explicit address or the caller's wallet."""
        address = params.address or caller_address
        if not address:
            raise MissingAddressError()
        if not is_address(address):
            raise ValidationError(["Invalid address"])

        network = deps.network
        logger.debug(f"Reading balances for {address} on {network.network_id}")
        usdc_units, wei = await asyncio.gather(
            deps.chain.read_token_balance(network.token_address, address),
            deps.chain.read_native_balance(address),
        )

        return {
            "usdc": deps.builder.format_amount(usdc_units),
            "eth": str(Web3.from_wei(wei, "ether")),
            "address": address,
            "network": network.network_name,
            "timestamp": timestamp(),
        }

    return ToolDefinition(
        name="get_balance",
        description="Get USDC and ETH balance for a wallet address",
        input_schema_class=GetBalanceInput,
        handler=get_balance,
    )
