"""Conversational command engine for DeFi wallets."""

__version__ = "0.1.0"
