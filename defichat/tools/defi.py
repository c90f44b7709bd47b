"""Yield opportunity and protocol information tools."""

from typing import Literal

from pydantic import BaseModel, Field

from defichat.tools.base import ToolDefinition, ToolDependencies


class YieldOpportunitiesInput(BaseModel):
    """Input schema for the yield opportunities tool."""

    min_apy: float | None = Field(default=None, ge=0, description="Minimum APY percentage, e.g. 5 for 5%")
    risk_level: Literal["low", "medium", "high", "all"] | None = Field(
        default=None, description="Risk level preference"
    )


class ProtocolInfoInput(BaseModel):
    """Input schema for the protocol information tool."""

    protocol_name: str | None = Field(
        default=None,
        description='Protocol to look up, e.g. "aave", "compound", "uniswap"',
    )


def create_yield_opportunities_tool(deps: ToolDependencies) -> ToolDefinition:
    async def get_yield_opportunities(params: YieldOpportunitiesInput, caller_address: str | None) -> list[dict]:
        opportunities = await deps.catalog.get_yield_opportunities(params.min_apy, params.risk_level)
        return [o.as_dict() for o in opportunities]

    return ToolDefinition(
        name="get_yield_opportunities",
        description="Get current DeFi yield farming and staking opportunities",
        input_schema_class=YieldOpportunitiesInput,
        handler=get_yield_opportunities,
    )


def create_protocol_info_tool(deps: ToolDependencies) -> ToolDefinition:
    async def get_protocol_info(params: ProtocolInfoInput, caller_address: str | None) -> list[dict]:
        protocols = await deps.catalog.get_protocol_info(params.protocol_name)
        return [p.as_dict() for p in protocols]

    return ToolDefinition(
        name="get_protocol_info",
        description="Get detailed information about DeFi protocols available on the network",
        input_schema_class=ProtocolInfoInput,
        handler=get_protocol_info,
    )
