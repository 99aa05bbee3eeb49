"""Delegated smart-account authorization and atomic hex batch execution."""

from .authorization import (
    authorization_digest,
    authorize,
    eth_signed_digest,
    normalize_y_parity,
    recover_authorizer,
)
from .chain import (
    AccountStatus,
    ChainStateReader,
    JsonRpcClient,
    RpcTransactionTransport,
    TransactionTransport,
    inspect_account,
)
from .config import (
    BatchConfig,
    BatchFile,
    HexBatchSettings,
    load_batch_file,
    load_settings,
    merge_config,
)
from .encoder import (
    BATCH_EXECUTOR_ABI,
    BATCH_FUNCTION_SELECTOR,
    BATCH_FUNCTION_SIGNATURE,
    aggregate_value,
    encode_batch,
)
from .exceptions import (
    BatchLimitExceeded,
    ConfigurationError,
    ConfirmationTimeout,
    EmptyBatch,
    HexBatchError,
    InvalidAddress,
    InvalidCallFlag,
    InvalidPayload,
    MissingValue,
    RPCError,
    SigningError,
    SingleLimitExceeded,
    SubmissionError,
    TargetNotAllowed,
    TransactionReverted,
    ValidationError,
    ValueOutOfRange,
    ValueOverflow,
)
from .models import (
    AuthorizationRecord,
    BatchPayload,
    BatchRunResult,
    PreparedBatch,
    RawTransaction,
    RunState,
    SubTransaction,
    TransactionReceipt,
    ValidatedBatch,
)
from .orchestrator import BatchOrchestrator
from .policy import validate_batch
from .signer import LocalAccountSigner, Signer

__all__ = [
    "AccountStatus",
    "AuthorizationRecord",
    "BATCH_EXECUTOR_ABI",
    "BATCH_FUNCTION_SELECTOR",
    "BATCH_FUNCTION_SIGNATURE",
    "BatchConfig",
    "BatchFile",
    "BatchLimitExceeded",
    "BatchOrchestrator",
    "BatchPayload",
    "BatchRunResult",
    "ChainStateReader",
    "ConfigurationError",
    "ConfirmationTimeout",
    "EmptyBatch",
    "HexBatchError",
    "HexBatchSettings",
    "InvalidAddress",
    "InvalidCallFlag",
    "InvalidPayload",
    "JsonRpcClient",
    "LocalAccountSigner",
    "MissingValue",
    "PreparedBatch",
    "RPCError",
    "RawTransaction",
    "RpcTransactionTransport",
    "RunState",
    "Signer",
    "SigningError",
    "SingleLimitExceeded",
    "SubTransaction",
    "SubmissionError",
    "TargetNotAllowed",
    "TransactionReceipt",
    "TransactionReverted",
    "TransactionTransport",
    "ValidatedBatch",
    "ValidationError",
    "ValueOutOfRange",
    "ValueOverflow",
    "aggregate_value",
    "authorization_digest",
    "authorize",
    "encode_batch",
    "eth_signed_digest",
    "inspect_account",
    "load_batch_file",
    "load_settings",
    "merge_config",
    "normalize_y_parity",
    "recover_authorizer",
    "validate_batch",
]
