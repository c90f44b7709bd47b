"""Network status tool."""

import asyncio

from pydantic import BaseModel

from defichat.errors import ChainReadError
from defichat.tools.base import ToolDefinition, ToolDependencies, timestamp
from defichat.tools.transfer import format_gwei
from defichat.utils.logging import get_logger

logger = get_logger(__name__)


class NetworkStatusInput(BaseModel):
    """The network status tool takes no parameters."""


def create_network_status_tool(deps: ToolDependencies) -> ToolDefinition:
    async def get_network_status(params: NetworkStatusInput, caller_address: str | None) -> dict:
        """Report block height and gas price; degrade to an unhealthy snapshot on failure."""
        network = deps.network
        try:
            block_number, gas_price, chain_id = await asyncio.gather(
                deps.chain.read_block_number(),
                deps.chain.read_gas_price(),
                deps.chain.read_chain_id(),
            )
        except ChainReadError as e:
            logger.warning(f"Network status unavailable for {network.network_id}: {e}")
            return {
                "name": network.network_name,
                "chain_id": network.chain_id,
                "block_number": "0",
                "gas_price": "Unknown",
                "is_healthy": False,
                "last_updated": timestamp(),
            }

        if chain_id != network.chain_id:
            logger.warning(f"Node reports chain {chain_id}, expected {network.chain_id}")

        return {
            "name": network.network_name,
            "chain_id": chain_id,
            "block_number": str(block_number),
            "gas_price": format_gwei(gas_price),
            "is_healthy": chain_id == network.chain_id,
            "last_updated": timestamp(),
        }

    return ToolDefinition(
        name="get_network_status",
        description="Get current network status, gas price and block information",
        input_schema_class=NetworkStatusInput,
        handler=get_network_status,
    )
