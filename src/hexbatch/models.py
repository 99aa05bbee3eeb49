"""Domain models for the authorization-and-batch pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

UINT256_MAX = 2**256 - 1


def checked_add_uint256(a: int, b: int) -> int:
    """Add two uint256 values, raising OverflowError instead of wrapping."""
    total = a + b
    if total > UINT256_MAX:
        raise OverflowError("uint256 addition overflow")
    return total


@dataclass(frozen=True)
class RawTransaction:
    """A sub-transaction as read from a batch file, not yet validated."""
    target: Any
    value: Any
    hex_data: Union[str, bytes, None] = None
    is_contract_call: bool = False
    description: str = ""


@dataclass(frozen=True)
class SubTransaction:
    """A validated sub-transaction."""
    target: str  # EIP-55 checksummed
    value: int  # wei
    payload: bytes = b""
    is_contract_call: bool = False
    description: str = ""

    def as_abi_tuple(self) -> Tuple[str, int, bytes, bool]:
        return (self.target, self.value, self.payload, self.is_contract_call)


@dataclass(frozen=True)
class ValidatedBatch:
    """Accepted sub-transactions and their exact aggregate value."""
    transactions: Tuple[SubTransaction, ...]
    total_value: int

    def __len__(self) -> int:
        return len(self.transactions)


@dataclass(frozen=True)
class AuthorizationRecord:
    """Signed delegation of an EOA to a smart-account implementation."""
    chain_id: int
    nonce: int
    implementation: str
    y_parity: int
    r: bytes
    s: bytes

    def as_abi_tuple(self) -> Tuple[int, int, str, int, bytes, bytes]:
        return (
            self.chain_id,
            self.nonce,
            self.implementation,
            self.y_parity,
            self.r,
            self.s,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chainId": self.chain_id,
            "nonce": self.nonce,
            "implementation": self.implementation,
            "yParity": self.y_parity,
            "r": "0x" + self.r.hex(),
            "s": "0x" + self.s.hex(),
        }


@dataclass(frozen=True)
class BatchPayload:
    """Call data and value for the outer batch transaction."""
    to: str
    data: bytes
    value: int
    transaction_count: int
    gas_limit: Optional[int] = None

    def to_tx_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "to": self.to,
            "data": "0x" + self.data.hex(),
            "value": self.value,
        }
        if self.gas_limit is not None:
            params["gas"] = self.gas_limit
        return params


@dataclass(frozen=True)
class TransactionReceipt:
    """Subset of an execution receipt the pipeline reads back."""
    tx_hash: str
    status: int
    gas_used: int
    block_number: int
    effective_gas_price: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1

    @classmethod
    def from_rpc(cls, receipt: Dict[str, Any]) -> "TransactionReceipt":
        """Build from a raw eth_getTransactionReceipt result."""
        gas_price = receipt.get("effectiveGasPrice")
        return cls(
            tx_hash=receipt["transactionHash"],
            status=_to_int(receipt.get("status", "0x0")),
            gas_used=_to_int(receipt.get("gasUsed", "0x0")),
            block_number=_to_int(receipt.get("blockNumber", "0x0")),
            effective_gas_price=_to_int(gas_price) if gas_price is not None else None,
        )


class RunState(str, Enum):
    """Orchestrator states. CONFIRMED and FAILED are terminal."""
    IDLE = "idle"
    VALIDATING = "validating"
    AUTHORIZING = "authorizing"
    ENCODING = "encoding"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class PreparedBatch:
    """Output of validate -> authorize -> encode, before submission."""
    batch: ValidatedBatch
    authorization: AuthorizationRecord
    payload: BatchPayload


@dataclass
class BatchRunResult:
    """Outcome of a single orchestrator run."""
    run_id: str
    state: RunState
    prepared: PreparedBatch
    tx_hash: Optional[str] = None
    receipt: Optional[TransactionReceipt] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None


def _to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    return int(value, 16)
