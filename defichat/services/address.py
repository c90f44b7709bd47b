"""EVM address helpers."""

import re

from web3 import Web3

_EVM_ADDRESS_RE = re.compile(r"0x[a-fA-F0-9]{40}")


def is_address(value: str | None) -> bool:
    """Format-only check: ``0x`` followed by exactly 40 hex characters."""
    return bool(value) and bool(_EVM_ADDRESS_RE.fullmatch(value))


def to_checksum(value: str) -> str:
    """EIP-55 checksum form of a well-formed address."""
    return Web3.to_checksum_address(value)


def shorten(value: str) -> str:
    """Abbreviate an address for display, e.g. ``0x12345678...abcdef``."""
    return f"{value[:8]}...{value[-6:]}"
