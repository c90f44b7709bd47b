"""Address validation tool."""

from pydantic import BaseModel, Field

from defichat.errors import ChainReadError
from defichat.services.address import is_address, to_checksum
from defichat.tools.base import ToolDefinition, ToolDependencies
from defichat.utils.logging import get_logger

logger = get_logger(__name__)


class ValidateAddressInput(BaseModel):
    """Input schema for the address validation tool."""

    address: str = Field(..., min_length=1, description="The address to validate")


def create_validate_address_tool(deps: ToolDependencies) -> ToolDefinition:
    async def validate_address(params: ValidateAddressInput, caller_address: str | None) -> dict:
        """Check address format, then checksum it and look up deployed code.

        Malformed input never reaches the chain.
        """
        if not is_address(params.address):
            return {"is_valid": False}

        checksum_address = to_checksum(params.address)
        try:
            code = await deps.chain.read_code(checksum_address)
            address_type = "contract" if code not in ("", "0x", "0x0") else "eoa"
        except ChainReadError as e:
            logger.warning(f"Code lookup failed for {checksum_address}: {e}")
            address_type = "address"

        return {"is_valid": True, "checksum_address": checksum_address, "type": address_type}

    return ToolDefinition(
        name="validate_address",
        description="Validate an Ethereum address and report its checksum form and type",
        input_schema_class=ValidateAddressInput,
        handler=validate_address,
    )
