"""DeFi protocol and yield catalogue interface and implementations."""

from dataclasses import asdict, dataclass, field
from typing import Any, Literal, Protocol

RiskLevel = Literal["low", "medium", "high"]


@dataclass
class YieldOpportunity:
    """A pool offering yield on the network's stablecoin."""

    protocol: str
    pool: str
    apy: float
    tvl: str
    risk: RiskLevel
    minimum_deposit: str
    description: str

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ProtocolInfo:
    """Reference information about a DeFi protocol."""

    name: str
    tvl: str
    apy: float
    risk: RiskLevel
    description: str
    website: str
    features: list[str] = field(default_factory=list)
    security: str = ""
    fees: str = ""

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


class DefiCatalogService(Protocol):
    """Interface for yield and protocol data sources."""

    async def get_yield_opportunities(
        self, min_apy: float | None = None, risk_level: str | None = None
    ) -> list[YieldOpportunity]:
        """Get yield opportunities.

        Args:
            min_apy: Minimum APY percentage, inclusive
            risk_level: low, medium, high, or all (no filter)

        Returns:
            Matching opportunities, possibly empty
        """
        ...

    async def get_protocol_info(self, protocol_name: str | None = None) -> list[ProtocolInfo]:
        """Get protocol information, filtered by case-insensitive name substring."""
        ...


class StaticDefiCatalog:
    """Catalogue backed by a fixed snapshot of Base protocols."""

    def __init__(
        self,
        opportunities: list[YieldOpportunity] | None = None,
        protocols: list[ProtocolInfo] | None = None,
    ):
        self.opportunities = opportunities if opportunities is not None else _default_opportunities()
        self.protocols = protocols if protocols is not None else _default_protocols()

    async def get_yield_opportunities(
        self, min_apy: float | None = None, risk_level: str | None = None
    ) -> list[YieldOpportunity]:
        results = list(self.opportunities)
        if min_apy is not None:
            results = [o for o in results if o.apy >= min_apy]
        if risk_level and risk_level != "all":
            results = [o for o in results if o.risk == risk_level]
        return results

    async def get_protocol_info(self, protocol_name: str | None = None) -> list[ProtocolInfo]:
        if not protocol_name:
            return list(self.protocols)
        needle = protocol_name.lower()
        return [p for p in self.protocols if needle in p.name.lower()]


def _default_opportunities() -> list[YieldOpportunity]:
    return [
        YieldOpportunity(
            protocol="Aave V3",
            pool="USDC Supply",
            apy=4.2,
            tvl="$125M",
            risk="low",
            minimum_deposit="1 USDC",
            description="Lend USDC to earn interest with battle-tested protocol",
        ),
        YieldOpportunity(
            protocol="Compound V3",
            pool="cUSDCv3",
            apy=3.8,
            tvl="$89M",
            risk="low",
            minimum_deposit="1 USDC",
            description="Algorithmic money market with autonomous interest rates",
        ),
        YieldOpportunity(
            protocol="Uniswap V3",
            pool="USDC/ETH 0.05%",
            apy=12.5,
            tvl="$245M",
            risk="medium",
            minimum_deposit="10 USDC",
            description="Provide liquidity to earn fees (subject to impermanent loss)",
        ),
        YieldOpportunity(
            protocol="Curve Finance",
            pool="USDC-USDT",
            apy=6.8,
            tvl="$156M",
            risk="low",
            minimum_deposit="1 USDC",
            description="Stable coin liquidity with low impermanent loss risk",
        ),
        YieldOpportunity(
            protocol="Yearn Finance",
            pool="USDC Vault",
            apy=8.3,
            tvl="$78M",
            risk="medium",
            minimum_deposit="1 USDC",
            description="Automated yield farming strategy vault",
        ),
        YieldOpportunity(
            protocol="Stargate",
            pool="S*USDC",
            apy=15.2,
            tvl="$345M",
            risk="high",
            minimum_deposit="5 USDC",
            description="Cross-chain liquidity with STG rewards",
        ),
    ]


def _default_protocols() -> list[ProtocolInfo]:
    return [
        ProtocolInfo(
            name="Aave V3",
            tvl="$125M",
            apy=4.2,
            risk="low",
            description="Decentralized lending protocol with over-collateralized loans and flash loans",
            website="https://aave.com",
            features=["Lending", "Borrowing", "Flash Loans", "Governance"],
            security="Audited by multiple firms, battle-tested",
            fees="0.1% flash loan fee, variable borrow rates",
        ),
        ProtocolInfo(
            name="Compound V3",
            tvl="$89M",
            apy=3.8,
            risk="low",
            description="Algorithmic money market protocol for lending and borrowing crypto assets",
            website="https://compound.finance",
            features=["Lending", "Borrowing", "Governance", "COMP Rewards"],
            security="Audited and time-tested protocol",
            fees="Dynamic interest rates based on utilization",
        ),
        ProtocolInfo(
            name="Uniswap V3",
            tvl="$245M",
            apy=12.5,
            risk="medium",
            description="Concentrated liquidity AMM with customizable fee tiers and price ranges",
            website="https://uniswap.org",
            features=["DEX", "Liquidity Provision", "Fee Tiers", "NFT Positions"],
            security="Audited, high liquidity and volume",
            fees="0.05%, 0.3%, 1% fee tiers available",
        ),
        ProtocolInfo(
            name="Curve Finance",
            tvl="$156M",
            apy=6.8,
            risk="low",
            description="DEX optimized for stablecoin and similar asset swaps with low slippage",
            website="https://curve.fi",
            features=["Stable Swaps", "Liquidity Mining", "CRV Rewards", "Gauges"],
            security="Audited, specialized for stable assets",
            fees="Variable fees, typically 0.04-0.4%",
        ),
        ProtocolInfo(
            name="Yearn Finance",
            tvl="$78M",
            apy=8.3,
            risk="medium",
            description="Automated yield farming aggregator that optimizes strategies across DeFi",
            website="https://yearn.finance",
            features=["Yield Farming", "Auto-compounding", "Strategy Vaults", "YFI Governance"],
            security="Audited strategies, managed by expert strategists",
            fees="2% performance fee on profits",
        ),
        ProtocolInfo(
            name="Stargate",
            tvl="$345M",
            apy=15.2,
            risk="high",
            description="Cross-chain liquidity protocol enabling seamless asset transfers",
            website="https://stargate.finance",
            features=["Cross-chain", "Liquidity Provision", "STG Rewards", "Instant Finality"],
            security="LayerZero-based, newer protocol with bridge risks",
            fees="Variable based on cross-chain activity",
        ),
    ]
