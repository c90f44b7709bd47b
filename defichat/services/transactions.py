"""USDC transfer and approval payload construction.

Call data is encoded by hand: a 4-byte selector followed by 32-byte words,
with no contract-binding library involved.
"""

from decimal import ROUND_FLOOR, Decimal, InvalidOperation

from defichat.errors import ValidationError
from defichat.models.transaction import (
    BatchTransfer,
    NetworkConfig,
    TransactionCall,
    TransactionPayload,
    get_network_config,
)
from defichat.services.address import is_address
from defichat.utils.logging import get_logger

logger = get_logger(__name__)

ERC20_TRANSFER_SELECTOR = "0xa9059cbb"
ERC20_APPROVE_SELECTOR = "0x095ea7b3"

MAX_TRANSFER_AMOUNT = Decimal("1000000")

_SELECTOR_NAMES = {
    ERC20_TRANSFER_SELECTOR: "transfer",
    ERC20_APPROVE_SELECTOR: "approve",
}


def encode_uint256(value: int) -> str:
    """Encode a non-negative integer as a 32-byte big-endian hex word (no 0x)."""
    if value < 0:
        raise ValueError("uint256 cannot be negative")
    if value >= 2**256:
        raise ValueError("uint256 overflow")
    return format(value, "064x")


def encode_address(address: str) -> str:
    """Encode an address as a left-zero-padded 32-byte hex word (no 0x)."""
    return address.lower().replace("0x", "").zfill(64)


def encode_call(selector: str, address: str, units: int) -> str:
    """Selector plus (address, uint256) parameters, lower-case hex."""
    return (selector + encode_address(address) + encode_uint256(units)).lower()


def decode_call_data(data: str) -> tuple[str, str, int]:
    """Split call data built by :func:`encode_call` back into its parts.

    Returns:
        (selector, address, amount in smallest units)
    """
    body = data.lower()
    if not body.startswith("0x") or len(body) != 2 + 8 + 64 + 64:
        raise ValueError(f"Unexpected call data length: {len(body)}")
    selector = body[:10]
    address = "0x" + body[10:74][-40:]
    units = int(body[74:], 16)
    return selector, address, units


class TransactionBuilder:
    """Builds unsent token payloads for one network."""

    def __init__(self, network: NetworkConfig | str = "base-sepolia"):
        """Initialize the builder.

        Args:
            network: A NetworkConfig or a built-in network id
        """
        self.network = get_network_config(network) if isinstance(network, str) else network
        self.scale = Decimal(10) ** self.network.decimals

    def parse_amount(self, amount: str | int | float | Decimal) -> int:
        """Convert a display amount to integer token units, flooring sub-unit precision."""
        value = Decimal(str(amount))
        return int((value * self.scale).to_integral_value(rounding=ROUND_FLOOR))

    def format_amount(self, units: int) -> str:
        """Convert integer token units back to a fixed-precision display string."""
        return f"{Decimal(units) / self.scale:.{self.network.decimals}f}"

    def validate_transfer(self, from_address: str | None, to_address: str | None, amount) -> list[str]:
        """Check every transfer rule and return the violated ones (empty when valid)."""
        errors: list[str] = []

        if not is_address(from_address):
            errors.append("Invalid sender address")
        if not is_address(to_address):
            errors.append("Invalid recipient address")
        if is_address(from_address) and is_address(to_address) and from_address.lower() == to_address.lower():
            errors.append("Cannot send to the same address")

        try:
            value = Decimal(str(amount))
            if not value.is_finite():
                raise InvalidOperation
        except (InvalidOperation, ValueError):
            errors.append("Amount must be a valid number")
            return errors

        if value <= 0:
            errors.append("Amount must be greater than 0")
        elif value > MAX_TRANSFER_AMOUNT:
            errors.append("Amount exceeds safety limit")
        elif self.parse_amount(value) == 0:
            errors.append("Amount is below the smallest token unit")

        return errors

    def build_transfer(self, from_address: str, to_address: str, amount) -> TransactionPayload:
        """Build a single-call transfer payload.

        Raises:
            ValidationError: Listing every violated rule
        """
        errors = self.validate_transfer(from_address, to_address, amount)
        if errors:
            logger.info(f"Rejected transfer of {amount} to {to_address}: {errors}")
            raise ValidationError(errors)

        units = self.parse_amount(amount)
        call = TransactionCall(
            to=self.network.token_address,
            data=encode_call(ERC20_TRANSFER_SELECTOR, to_address, units),
        )
        logger.debug(f"Built transfer of {units} units to {to_address} on {self.network.network_id}")
        return self._wrap(from_address, [call])

    def build_approval(self, from_address: str, spender: str, amount) -> TransactionPayload:
        """Build an approval payload for ``spender``, validated like a transfer."""
        errors = self.validate_transfer(from_address, spender, amount)
        if errors:
            raise ValidationError([e.replace("recipient", "spender") for e in errors])

        units = self.parse_amount(amount)
        call = TransactionCall(
            to=self.network.token_address,
            data=encode_call(ERC20_APPROVE_SELECTOR, spender, units),
        )
        return self._wrap(from_address, [call])

    def build_batch_transfer(self, from_address: str, transfers: list[tuple[str, object]]) -> BatchTransfer:
        """Build one call per recipient.

        The total is for display only; balance sufficiency is left to the chain.

        Raises:
            ValidationError: Every violation of every entry, prefixed with its index
        """
        if not transfers:
            raise ValidationError(["Batch must contain at least one transfer"])

        errors: list[str] = []
        for index, (to_address, amount) in enumerate(transfers):
            problems = self.validate_transfer(from_address, to_address, amount)
            errors.extend(f"Transfer {index + 1}: {e}" for e in problems)
        if errors:
            raise ValidationError(errors)

        calls = []
        total_units = 0
        for to_address, amount in transfers:
            units = self.parse_amount(amount)
            total_units += units
            calls.append(
                TransactionCall(
                    to=self.network.token_address,
                    data=encode_call(ERC20_TRANSFER_SELECTOR, to_address, units),
                )
            )

        return BatchTransfer(
            payload=self._wrap(from_address, calls),
            total_amount=self.format_amount(total_units),
            recipients=len(calls),
        )

    def summarize(self, payload: TransactionPayload) -> str:
        """Human-readable summary decoded from the payload's call data."""
        symbol = self.network.token_symbol
        if len(payload.calls) > 1:
            total = sum(decode_call_data(c.data)[2] for c in payload.calls)
            return (
                f"Batch transfer of {self.format_amount(total)} {symbol} to {len(payload.calls)} recipients "
                f"on {self.network.network_name}"
            )

        selector, address, units = decode_call_data(payload.calls[0].data)
        action = _SELECTOR_NAMES.get(selector, "call")
        if action == "approve":
            return f"Approve {address} to spend {self.format_amount(units)} {symbol} on {self.network.network_name}"
        return f"Send {self.format_amount(units)} {symbol} to {address} on {self.network.network_name}"

    def transaction_url(self, tx_hash: str) -> str:
        return f"{self.network.explorer_url}/tx/{tx_hash}"

    def address_url(self, address: str) -> str:
        return f"{self.network.explorer_url}/address/{address}"

    def token_url(self) -> str:
        return f"{self.network.explorer_url}/token/{self.network.token_address}"

    def _wrap(self, from_address: str, calls: list[TransactionCall]) -> TransactionPayload:
        return TransactionPayload(
            version="1.0",
            from_address=from_address,
            chain_id=self.network.chain_id_hex,
            calls=calls,
        )
