"""Chain collaborators: state reader, JSON-RPC client and transaction transport.

The batch pipeline only depends on the two protocols below. The JSON-RPC
implementations talk to a single endpoint over httpx.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

import httpx
from web3 import Web3

from .exceptions import ConfirmationTimeout, RPCError, SigningError, SubmissionError
from .models import BatchPayload, TransactionReceipt
from .signer import Signer

logger = logging.getLogger(__name__)

GAS_LIMIT_BUFFER_PERCENT = 20
DEFAULT_PRIORITY_FEE_WEI = 1_000_000_000  # 1 gwei
DEFAULT_POLL_INTERVAL = 2.0  # seconds


class ChainStateReader(Protocol):
    async def get_chain_id(self) -> int:
        ...

    async def get_nonce(self, address: str) -> int:
        ...

    async def get_code(self, address: str) -> bytes:
        ...

    async def get_balance(self, address: str) -> int:
        ...


class TransactionTransport(Protocol):
    async def submit(self, payload: BatchPayload) -> str:
        """Sign and broadcast the batch call, returning the tx hash."""
        ...

    async def await_confirmation(
        self, tx_hash: str, timeout_seconds: float
    ) -> TransactionReceipt:
        """Wait for inclusion; raises ConfirmationTimeout at the deadline."""
        ...


class JsonRpcClient:
    """Minimal async Ethereum JSON-RPC client."""

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._rpc_url = rpc_url
        self._timeout = timeout
        self._http_client = http_client
        self._owns_client = http_client is None
        self._request_id = 0

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Make a JSON-RPC call and return its result."""
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }

        client = await self._get_client()
        try:
            response = await client.post(
                self._rpc_url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPError as e:
            raise RPCError(f"RPC transport error calling {method}: {e}", method=method) from e
        except ValueError as e:
            raise RPCError(f"RPC returned invalid JSON for {method}", method=method) from e

        if "error" in result:
            error = result["error"] or {}
            raise RPCError(
                f"RPC error from {method}: {error.get('message', error)}",
                method=method,
                code=error.get("code"),
                data=error.get("data"),
            )
        return result.get("result")

    async def get_chain_id(self) -> int:
        return int(await self.call("eth_chainId"), 16)

    async def get_nonce(self, address: str, block: str = "latest") -> int:
        return int(await self.call("eth_getTransactionCount", [address, block]), 16)

    async def get_code(self, address: str) -> bytes:
        code = await self.call("eth_getCode", [address, "latest"])
        return bytes.fromhex((code or "0x")[2:])

    async def get_balance(self, address: str) -> int:
        return int(await self.call("eth_getBalance", [address, "latest"]), 16)

    async def get_gas_price(self) -> int:
        return int(await self.call("eth_gasPrice"), 16)

    async def get_max_priority_fee(self) -> int:
        """Priority fee suggestion; falls back for chains without the method."""
        try:
            return int(await self.call("eth_maxPriorityFeePerGas"), 16)
        except RPCError:
            return DEFAULT_PRIORITY_FEE_WEI

    async def get_base_fee(self) -> Optional[int]:
        block = await self.call("eth_getBlockByNumber", ["latest", False])
        if not block or block.get("baseFeePerGas") is None:
            return None
        return int(block["baseFeePerGas"], 16)

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        return int(await self.call("eth_estimateGas", [tx]), 16)

    async def send_raw_transaction(self, signed_tx: bytes) -> str:
        return await self.call("eth_sendRawTransaction", ["0x" + signed_tx.hex()])

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return await self.call("eth_getTransactionReceipt", [tx_hash])

    async def close(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None


class RpcTransactionTransport:
    """Signs the outer batch transaction locally and broadcasts it via RPC.

    Exactly one broadcast attempt is made per submit().
    """

    def __init__(
        self,
        rpc: JsonRpcClient,
        signer: Signer,
        gas_price_strategy: str = "auto",
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        if gas_price_strategy not in ("auto", "legacy"):
            raise ValueError(f"Unknown gas price strategy: {gas_price_strategy}")
        self._rpc = rpc
        self._signer = signer
        self._strategy = gas_price_strategy
        self._poll_interval = poll_interval

    async def submit(self, payload: BatchPayload) -> str:
        sender = self._signer.address
        try:
            tx = await self._build_transaction(sender, payload)
        except RPCError as e:
            raise SubmissionError(f"Could not prepare batch transaction: {e.message}") from e

        try:
            raw = self._signer.sign_transaction(tx)
        except Exception as e:
            raise SigningError(f"Signing the batch transaction failed: {e}") from e

        try:
            tx_hash = await self._rpc.send_raw_transaction(raw)
        except RPCError as e:
            raise SubmissionError(f"Batch transaction rejected: {e.message}") from e

        logger.info(
            "Batch transaction broadcast: hash=%s nonce=%d gas=%d value=%d",
            tx_hash,
            tx["nonce"],
            tx["gas"],
            tx["value"],
        )
        return tx_hash

    async def _build_transaction(self, sender: str, payload: BatchPayload) -> Dict[str, Any]:
        chain_id = await self._rpc.get_chain_id()
        nonce = await self._rpc.get_nonce(sender, "pending")
        data = "0x" + payload.data.hex()

        gas = payload.gas_limit
        if gas is None:
            estimated = await self._rpc.estimate_gas(
                {
                    "from": sender,
                    "to": payload.to,
                    "data": data,
                    "value": hex(payload.value),
                }
            )
            gas = estimated * (100 + GAS_LIMIT_BUFFER_PERCENT) // 100

        tx: Dict[str, Any] = {
            "chainId": chain_id,
            "nonce": nonce,
            "to": Web3.to_checksum_address(payload.to),
            "value": payload.value,
            "data": data,
            "gas": gas,
        }

        base_fee = await self._rpc.get_base_fee() if self._strategy == "auto" else None
        if base_fee is None:
            tx["gasPrice"] = await self._rpc.get_gas_price()
        else:
            priority_fee = await self._rpc.get_max_priority_fee()
            tx["type"] = 2
            tx["maxPriorityFeePerGas"] = priority_fee
            tx["maxFeePerGas"] = 2 * base_fee + priority_fee
        return tx

    async def await_confirmation(
        self, tx_hash: str, timeout_seconds: float
    ) -> TransactionReceipt:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_seconds

        while True:
            try:
                receipt = await self._rpc.get_transaction_receipt(tx_hash)
            except RPCError as e:
                logger.warning("Receipt lookup for %s failed: %s", tx_hash, e.message)
                receipt = None

            if receipt:
                parsed = TransactionReceipt.from_rpc(receipt)
                logger.info(
                    "Transaction %s mined in block %d (status=%d, gas_used=%d)",
                    tx_hash,
                    parsed.block_number,
                    parsed.status,
                    parsed.gas_used,
                )
                return parsed

            remaining = deadline - loop.time()
            if remaining <= 0:
                raise ConfirmationTimeout(tx_hash, timeout_seconds)
            await asyncio.sleep(min(self._poll_interval, remaining))


@dataclass(frozen=True)
class AccountStatus:
    """Presentation snapshot of an account."""
    address: str
    code: Optional[bytes]
    balance: Optional[int]
    errors: tuple = ()

    @property
    def has_code(self) -> bool:
        return bool(self.code)

    @property
    def delegated_to(self) -> Optional[str]:
        """Delegation target when the code is an EIP-7702 designator (0xef0100 || address)."""
        if self.code and len(self.code) == 23 and self.code[:3] == b"\xef\x01\x00":
            return Web3.to_checksum_address(self.code[3:])
        return None

    @property
    def balance_ether(self) -> Optional[float]:
        if self.balance is None:
            return None
        return float(Web3.from_wei(self.balance, "ether"))


async def inspect_account(reader: ChainStateReader, address: str) -> AccountStatus:
    """Read code and balance; lookup failures are reported, not raised."""
    errors = []
    code: Optional[bytes] = None
    balance: Optional[int] = None

    try:
        code = await reader.get_code(address)
    except RPCError as e:
        logger.warning("Could not read code for %s: %s", address, e.message)
        errors.append(f"code: {e.message}")

    try:
        balance = await reader.get_balance(address)
    except RPCError as e:
        logger.warning("Could not read balance for %s: %s", address, e.message)
        errors.append(f"balance: {e.message}")

    return AccountStatus(address=address, code=code, balance=balance, errors=tuple(errors))
