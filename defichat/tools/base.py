"""Base types and definitions for tools."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel

from defichat.models.transaction import NetworkConfig
from defichat.services.chain import ChainReader
from defichat.services.defi_catalog import DefiCatalogService
from defichat.services.transactions import TransactionBuilder

ToolHandler = Callable[[BaseModel, str | None], Awaitable[Any]]


@dataclass
class ToolDefinition:
    """Definition of a tool the engine can run for a message."""

    name: str
    description: str
    input_schema_class: type[BaseModel]
    handler: ToolHandler

    def get_json_schema(self) -> dict[str, Any]:
        """Get JSON schema for this tool's input."""
        return self.input_schema_class.model_json_schema()

    def parse_input(self, raw_input: dict[str, Any]) -> BaseModel:
        """Parse and validate tool input."""
        return self.input_schema_class.model_validate(raw_input)


@dataclass
class ToolDependencies:
    """Collaborators shared by the built-in tools."""

    chain: ChainReader
    catalog: DefiCatalogService
    builder: TransactionBuilder
    eth_price_usd: float = 2500.0

    @property
    def network(self) -> NetworkConfig:
        return self.builder.network


def timestamp() -> str:
    return datetime.now(UTC).isoformat()
