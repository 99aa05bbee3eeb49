"""
Pytest configuration for hexbatch tests.
"""
from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add package source to path
package_src = Path(__file__).parent.parent / "src"
if str(package_src) not in sys.path:
    sys.path.insert(0, str(package_src))

from hexbatch.config import BatchConfig
from hexbatch.exceptions import ConfirmationTimeout
from hexbatch.models import BatchPayload, TransactionReceipt
from hexbatch.signer import LocalAccountSigner

# Foundry / Hardhat default accounts
PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
ACCOUNT = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
IMPLEMENTATION = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
TARGET_A = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
TARGET_B = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"

ONE_ETHER = 10**18
TX_HASH = "0x" + "ab" * 32


class FakeChain:
    """In-memory ChainStateReader that counts calls."""

    def __init__(self, chain_id: int = 31337, nonce: int = 7):
        self.chain_id = chain_id
        self.nonce = nonce
        self.calls: List[str] = []
        self.code: Dict[str, bytes] = {}
        self.balances: Dict[str, int] = {}

    async def get_chain_id(self) -> int:
        self.calls.append("get_chain_id")
        return self.chain_id

    async def get_nonce(self, address: str) -> int:
        self.calls.append("get_nonce")
        return self.nonce

    async def get_code(self, address: str) -> bytes:
        self.calls.append("get_code")
        return self.code.get(address, b"")

    async def get_balance(self, address: str) -> int:
        self.calls.append("get_balance")
        return self.balances.get(address, 0)


class FakeTransport:
    """TransactionTransport double with scripted outcomes."""

    def __init__(
        self,
        receipt_status: int = 1,
        submit_error: Optional[Exception] = None,
        confirm_timeout: bool = False,
    ):
        self.receipt_status = receipt_status
        self.submit_error = submit_error
        self.confirm_timeout = confirm_timeout
        self.submitted: List[BatchPayload] = []
        self.waited: List[Any] = []

    async def submit(self, payload: BatchPayload) -> str:
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append(payload)
        return TX_HASH

    async def await_confirmation(self, tx_hash: str, timeout_seconds: float) -> TransactionReceipt:
        self.waited.append((tx_hash, timeout_seconds))
        if self.confirm_timeout:
            await asyncio.sleep(0)
            raise ConfirmationTimeout(tx_hash, timeout_seconds)
        return TransactionReceipt(
            tx_hash=tx_hash,
            status=self.receipt_status,
            gas_used=84_000,
            block_number=123,
        )


@pytest.fixture
def signer():
    return LocalAccountSigner.from_key(PRIVATE_KEY)


@pytest.fixture
def config():
    return BatchConfig(
        implementation_address=IMPLEMENTATION,
        rpc_url="http://127.0.0.1:8545",
        max_single_transaction_value=ONE_ETHER,
        max_batch_total_value=5 * ONE_ETHER,
    )


@pytest.fixture
def fake_chain():
    return FakeChain()


@pytest.fixture
def fake_transport():
    return FakeTransport()


ENV_VARS = (
    "PRIVATE_KEY",
    "RPC_URL",
    "SMART_ACCOUNT_ADDRESS",
    "NETWORK",
    "ENABLE_HEX_BATCH",
    "GAS_LIMIT",
    "GAS_PRICE_STRATEGY",
    "TRANSACTION_TIMEOUT",
    "MAX_SINGLE_TRANSACTION_VALUE",
    "MAX_BATCH_TOTAL_VALUE",
    "ENABLE_ADDRESS_WHITELIST",
    "ALLOWED_TARGETS",
    "HEX_BATCH_CONFIG_FILE",
    "LOG_LEVEL",
    "LOG_JSON",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Isolate settings from the host environment and any local .env file."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


@pytest.fixture
def ready_env(clean_env):
    clean_env.setenv("PRIVATE_KEY", PRIVATE_KEY)
    clean_env.setenv("RPC_URL", "http://127.0.0.1:8545")
    clean_env.setenv("SMART_ACCOUNT_ADDRESS", IMPLEMENTATION)
    clean_env.setenv("ENABLE_HEX_BATCH", "true")
    return clean_env



@pytest.fixture
def restore_logging():
    """The CLI reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
