"""Exception hierarchy for hexbatch.

Every error raised by the batch pipeline inherits from HexBatchError, so a
single run can be terminated and reported at the top level:

    try:
        result = await orchestrator.run(transactions)
    except ConfirmationTimeout as e:
        # outcome unknown, e.tx_hash can be checked later
        ...
    except HexBatchError as e:
        console.print(e.to_dict())

All exceptions have:
- error_code: Machine-readable error code (e.g., "BATCH_LIMIT_EXCEEDED")
- message: Human-readable error message
- details: Additional context (index, value, limit, tx hash, ...)
"""
from __future__ import annotations

from typing import Any, Optional


class HexBatchError(Exception):
    """Base exception for all hexbatch errors."""

    error_code: str = "HEXBATCH_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a serializable report."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Configuration
# =============================================================================

class ConfigurationError(HexBatchError):
    """Missing or invalid settings; raised before any chain interaction."""

    error_code = "CONFIGURATION_ERROR"

    def __init__(
        self,
        message: str,
        setting: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if setting:
            details["setting"] = setting
        super().__init__(message, details=details)


# =============================================================================
# Policy validation
# =============================================================================

class ValidationError(HexBatchError):
    """A batch violates the configured policy. The whole batch is rejected."""

    error_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        index: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if index is not None:
            details["index"] = index
        self.index = index
        super().__init__(message, details=details)


class EmptyBatch(ValidationError):
    error_code = "EMPTY_BATCH"

    def __init__(self) -> None:
        super().__init__("Batch must contain at least one transaction")


class InvalidAddress(ValidationError):
    error_code = "INVALID_ADDRESS"

    def __init__(self, index: int, target: Any) -> None:
        self.target = target
        super().__init__(
            f"Transaction {index + 1}: invalid target address {target!r}",
            index=index,
            details={"target": str(target)},
        )


class MissingValue(ValidationError):
    error_code = "MISSING_VALUE"

    def __init__(self, index: int) -> None:
        super().__init__(f"Transaction {index + 1}: missing value", index=index)


class ValueOutOfRange(ValidationError):
    """Value is not an unsigned 256-bit integer."""

    error_code = "VALUE_OUT_OF_RANGE"

    def __init__(self, index: int, value: Any) -> None:
        self.value = value
        super().__init__(
            f"Transaction {index + 1}: value {value!r} is not a uint256",
            index=index,
            details={"value": str(value)},
        )


class SingleLimitExceeded(ValidationError):
    error_code = "SINGLE_LIMIT_EXCEEDED"

    def __init__(self, index: int, value: int, limit: int) -> None:
        self.value = value
        self.limit = limit
        super().__init__(
            f"Transaction {index + 1}: value {value} wei exceeds single "
            f"transaction limit {limit} wei",
            index=index,
            details={"value": str(value), "limit": str(limit)},
        )


class TargetNotAllowed(ValidationError):
    error_code = "TARGET_NOT_ALLOWED"

    def __init__(self, index: int, target: str) -> None:
        self.target = target
        super().__init__(
            f"Transaction {index + 1}: target {target} is not in the allow-list",
            index=index,
            details={"target": target},
        )


class InvalidPayload(ValidationError):
    error_code = "INVALID_PAYLOAD"

    def __init__(self, index: int, payload: Any) -> None:
        super().__init__(
            f"Transaction {index + 1}: hex data is not valid hex",
            index=index,
            details={"payload": str(payload)[:66]},
        )


class InvalidCallFlag(ValidationError):
    """isContractCall is not a boolean."""

    error_code = "INVALID_CALL_FLAG"

    def __init__(self, index: int, flag: Any) -> None:
        super().__init__(
            f"Transaction {index + 1}: isContractCall {flag!r} is not a boolean",
            index=index,
            details={"isContractCall": str(flag)},
        )


class BatchLimitExceeded(ValidationError):
    error_code = "BATCH_LIMIT_EXCEEDED"

    def __init__(self, total: int, limit: int) -> None:
        self.total = total
        self.limit = limit
        super().__init__(
            f"Batch total {total} wei exceeds batch limit {limit} wei",
            details={"total": str(total), "limit": str(limit)},
        )


class ValueOverflow(ValidationError):
    """Summing batch values left the uint256 range."""

    error_code = "VALUE_OVERFLOW"

    def __init__(self, index: int) -> None:
        super().__init__(
            f"Transaction {index + 1}: batch total overflows uint256",
            index=index,
        )


# =============================================================================
# Signing
# =============================================================================

class SigningError(HexBatchError):
    """Signer capability unavailable or the signature primitive failed."""

    error_code = "SIGNING_ERROR"


# =============================================================================
# Chain interaction
# =============================================================================

class RPCError(HexBatchError):
    """JSON-RPC call returned an error or could not be performed."""

    error_code = "RPC_ERROR"

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        code: Optional[int] = None,
        data: Any = None,
    ) -> None:
        self.method = method
        self.code = code
        self.data = data
        details: dict[str, Any] = {}
        if method:
            details["method"] = method
        if code is not None:
            details["code"] = code
        super().__init__(message, details=details)


class SubmissionError(HexBatchError):
    """The transport rejected the batch call. Not retried."""

    error_code = "SUBMISSION_ERROR"


class ConfirmationTimeout(HexBatchError):
    """Inclusion was not observed in time.

    The outcome is unknown: the transaction may still be mined later and
    tx_hash stays valid for external inquiry.
    """

    error_code = "CONFIRMATION_TIMEOUT"

    def __init__(self, tx_hash: str, timeout_seconds: float) -> None:
        self.tx_hash = tx_hash
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Transaction {tx_hash} not confirmed after {timeout_seconds}s; "
            "status unknown, check again later",
            details={"tx_hash": tx_hash, "timeout_seconds": timeout_seconds},
        )


class TransactionReverted(HexBatchError):
    """The batch call was mined but execution reverted."""

    error_code = "TRANSACTION_REVERTED"

    def __init__(self, tx_hash: str, receipt: Any = None) -> None:
        self.tx_hash = tx_hash
        self.receipt = receipt
        super().__init__(
            f"Transaction {tx_hash} reverted on-chain",
            details={"tx_hash": tx_hash},
        )
