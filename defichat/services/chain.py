"""Chain-data reader interface and implementations."""

from typing import Any, Protocol

import httpx

from defichat.errors import ChainReadError
from defichat.services.transactions import encode_address
from defichat.utils.logging import get_logger

logger = get_logger(__name__)

ERC20_BALANCE_OF_SELECTOR = "0x70a08231"


class ChainReader(Protocol):
    """Read-only access to chain state. All amounts are integer base units."""

    async def read_token_balance(self, token_address: str, address: str) -> int:
        """Get the token balance of ``address`` in the token's smallest unit."""
        ...

    async def read_native_balance(self, address: str) -> int:
        """Get the native balance of ``address`` in wei."""
        ...

    async def read_gas_price(self) -> int:
        """Get the current gas price in wei."""
        ...

    async def read_block_number(self) -> int:
        """Get the latest block number."""
        ...

    async def read_chain_id(self) -> int:
        """Get the chain id reported by the node."""
        ...

    async def read_code(self, address: str) -> str:
        """Get deployed bytecode at ``address`` (``0x`` when none)."""
        ...

    async def estimate_gas(self, transaction: dict[str, Any]) -> int:
        """Estimate gas units for a call ``{from, to, data, value}``."""
        ...


class InMemoryChainReader:
    """In-memory chain reader for development and tests.

    Balances, code and node readings are plain attributes; set ``fail`` to make
    every read raise ChainReadError.
    """

    def __init__(
        self,
        chain_id: int = 84532,
        token_balances: dict[str, int] | None = None,
        native_balances: dict[str, int] | None = None,
        contracts: set[str] | None = None,
        gas_price: int = 1_000_000_000,
        block_number: int = 1_000_000,
        gas_estimate: int | None = 52_000,
    ):
        self.chain_id = chain_id
        self.token_balances = {k.lower(): v for k, v in (token_balances or {}).items()}
        self.native_balances = {k.lower(): v for k, v in (native_balances or {}).items()}
        self.contracts = {c.lower() for c in (contracts or set())}
        self.gas_price = gas_price
        self.block_number = block_number
        self.gas_estimate = gas_estimate
        self.fail = False
        self.calls: list[str] = []

    def _record(self, method: str) -> None:
        self.calls.append(method)
        if self.fail:
            raise ChainReadError(f"{method} unavailable")

    async def read_token_balance(self, token_address: str, address: str) -> int:
        self._record("read_token_balance")
        return self.token_balances.get(address.lower(), 0)

    async def read_native_balance(self, address: str) -> int:
        self._record("read_native_balance")
        return self.native_balances.get(address.lower(), 0)

    async def read_gas_price(self) -> int:
        self._record("read_gas_price")
        return self.gas_price

    async def read_block_number(self) -> int:
        self._record("read_block_number")
        return self.block_number

    async def read_chain_id(self) -> int:
        self._record("read_chain_id")
        return self.chain_id

    async def read_code(self, address: str) -> str:
        self._record("read_code")
        return "0x6080" if address.lower() in self.contracts else "0x"

    async def estimate_gas(self, transaction: dict[str, Any]) -> int:
        self._record("estimate_gas")
        if self.gas_estimate is None:
            raise ChainReadError("execution reverted")
        return self.gas_estimate


class JsonRpcChainReader:
    """Chain reader speaking Ethereum JSON-RPC over HTTP."""

    timeout_s = 10

    def __init__(self, rpc_url: str, transport: httpx.AsyncBaseTransport | None = None):
        """Initialize the reader.

        Args:
            rpc_url: JSON-RPC endpoint of the network
            transport: Optional httpx transport, used to stub the node in tests
        """
        self.rpc_url = rpc_url
        self.transport = transport
        self._request_id = 0

    async def _rpc(self, method: str, params: list[Any]) -> Any:
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "method": method, "params": params, "id": self._request_id}

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout_s) as client:
                response = await client.post(self.rpc_url, json=payload, headers={"Content-Type": "application/json"})
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"RPC {method} failed: {e}")
            raise ChainReadError(f"RPC request {method} failed: {e}", original=e) from e

        if "error" in data:
            raise ChainReadError(f"RPC error from {method}: {data['error']}")
        if "result" not in data:
            raise ChainReadError(f"RPC response for {method} has no result")
        return data["result"]

    async def _rpc_int(self, method: str, params: list[Any]) -> int:
        result = await self._rpc(method, params)
        try:
            return int(result, 16)
        except (TypeError, ValueError) as e:
            raise ChainReadError(f"Malformed quantity from {method}: {result!r}", original=e) from e

    async def read_token_balance(self, token_address: str, address: str) -> int:
        call = {"to": token_address, "data": ERC20_BALANCE_OF_SELECTOR + encode_address(address)}
        result = await self._rpc("eth_call", [call, "latest"])
        if result in ("0x", ""):
            return 0
        return int(result, 16)

    async def read_native_balance(self, address: str) -> int:
        return await self._rpc_int("eth_getBalance", [address, "latest"])

    async def read_gas_price(self) -> int:
        return await self._rpc_int("eth_gasPrice", [])

    async def read_block_number(self) -> int:
        return await self._rpc_int("eth_blockNumber", [])

    async def read_chain_id(self) -> int:
        return await self._rpc_int("eth_chainId", [])

    async def read_code(self, address: str) -> str:
        return await self._rpc("eth_getCode", [address, "latest"])

    async def estimate_gas(self, transaction: dict[str, Any]) -> int:
        return await self._rpc_int("eth_estimateGas", [transaction])
