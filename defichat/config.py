"""Runtime configuration for the chat engine."""

import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


@dataclass
class Settings:
    """Configuration for the engine, its model client and its collaborators."""

    network_id: str = "base-sepolia"
    rpc_url: str | None = None  # Overrides the network's public RPC endpoint
    chain_backend: str = "memory"  # "memory" or "rpc"

    model: str = "claude-3-5-sonnet-20241022"
    temperature: float = 0.7
    max_tokens: int = 1000
    anthropic_api_key: str | None = None

    # Trimming budget for model history, counted in messages
    max_history_messages: int = 40
    max_message_tokens: int = 1000

    requests_per_minute: int = 50
    tokens_per_minute: int = 40_000

    tool_timeout_seconds: float = 10.0
    eth_price_usd: float = 2500.0

    session_timeout_minutes: int = 60
    log_level: str = "INFO"
    library_log_level: str = "WARNING"  # Applied to model, HTTP and web3 client loggers

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from DEFICHAT_* environment variables."""
        defaults = cls()
        return cls(
            network_id=os.getenv("DEFICHAT_NETWORK", defaults.network_id),
            rpc_url=os.getenv("DEFICHAT_RPC_URL") or None,
            chain_backend=os.getenv("DEFICHAT_CHAIN_BACKEND", defaults.chain_backend),
            model=os.getenv("DEFICHAT_MODEL", defaults.model),
            temperature=_env_float("DEFICHAT_TEMPERATURE", defaults.temperature),
            max_tokens=_env_int("DEFICHAT_MAX_TOKENS", defaults.max_tokens),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            max_history_messages=_env_int("DEFICHAT_MAX_HISTORY_MESSAGES", defaults.max_history_messages),
            max_message_tokens=_env_int("DEFICHAT_MAX_MESSAGE_TOKENS", defaults.max_message_tokens),
            requests_per_minute=_env_int("DEFICHAT_REQUESTS_PER_MINUTE", defaults.requests_per_minute),
            tokens_per_minute=_env_int("DEFICHAT_TOKENS_PER_MINUTE", defaults.tokens_per_minute),
            tool_timeout_seconds=_env_float("DEFICHAT_TOOL_TIMEOUT", defaults.tool_timeout_seconds),
            eth_price_usd=_env_float("DEFICHAT_ETH_PRICE_USD", defaults.eth_price_usd),
            session_timeout_minutes=_env_int("DEFICHAT_SESSION_TIMEOUT_MINUTES", defaults.session_timeout_minutes),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level),
            library_log_level=os.getenv("DEFICHAT_LIBRARY_LOG_LEVEL", defaults.library_log_level),
        )
