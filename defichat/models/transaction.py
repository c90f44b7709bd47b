"""Network configuration and transaction payload models."""

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, field_validator

from defichat.services.address import is_address


@dataclass(frozen=True)
class NetworkConfig:
    """Static per-network token configuration."""

    network_id: str
    token_address: str
    chain_id: int
    decimals: int
    network_name: str
    explorer_url: str
    rpc_url: str
    token_symbol: str = "USDC"

    @property
    def chain_id_hex(self) -> str:
        return hex(self.chain_id)


NETWORKS: dict[str, NetworkConfig] = {
    "base-sepolia": NetworkConfig(
        network_id="base-sepolia",
        token_address="0x036CbD53842c5426634e7929541eC2318f3dCF7e",
        chain_id=84532,
        decimals=6,
        network_name="Base Sepolia",
        explorer_url="https://sepolia.basescan.org",
        rpc_url="https://sepolia.base.org",
    ),
    "base-mainnet": NetworkConfig(
        network_id="base-mainnet",
        token_address="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        chain_id=8453,
        decimals=6,
        network_name="Base Mainnet",
        explorer_url="https://basescan.org",
        rpc_url="https://mainnet.base.org",
    ),
}


def get_network_config(network_id: str = "base-sepolia") -> NetworkConfig:
    """Look up a built-in network.

    Raises:
        ValueError: If the network id is not supported
    """
    config = NETWORKS.get(network_id)
    if config is None:
        available = ", ".join(NETWORKS)
        raise ValueError(f"Unsupported network: {network_id}. Available networks: {available}")
    return config


class TransactionCall(BaseModel):
    """A single contract call inside a payload."""

    model_config = ConfigDict(frozen=True)

    to: str
    data: str
    value: str = "0x0"

    @field_validator("to")
    @classmethod
    def validate_to(cls, v: str) -> str:
        if not is_address(v):
            raise ValueError(f"Invalid contract address: {v}")
        return v


class TransactionPayload(BaseModel):
    """A chain-ready, unsent description of one or more contract calls."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    version: str = "1.0"
    from_address: str = Field(alias="from")
    chain_id: str = Field(alias="chainId")
    calls: list[TransactionCall] = Field(min_length=1)

    @field_validator("from_address")
    @classmethod
    def validate_from(cls, v: str) -> str:
        if not is_address(v):
            raise ValueError(f"Invalid sender address: {v}")
        return v

    def to_wire(self) -> dict:
        """Serialise with the wire key names (``from``, ``chainId``)."""
        return self.model_dump(by_alias=True)


class BatchTransfer(BaseModel):
    """Payload for several transfers plus the total for display."""

    payload: TransactionPayload
    total_amount: str
    recipients: int
