"""Batch policy validation.

Enforces, in order per entry:
- well-formed 20-byte target address
- value present and within uint256
- per-transaction value ceiling (inclusive)
- target allow-list, when enabled
- hex data decodes
- contract-call flag is a boolean

and then the aggregate batch ceiling (inclusive). Validation is
all-or-nothing: the first violation rejects the entire batch.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence, Union

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from web3 import Web3

from .config import BatchConfig
from .exceptions import (
    BatchLimitExceeded,
    EmptyBatch,
    InvalidAddress,
    InvalidCallFlag,
    InvalidPayload,
    MissingValue,
    SingleLimitExceeded,
    TargetNotAllowed,
    ValueOutOfRange,
    ValueOverflow,
)
from .models import (
    UINT256_MAX,
    RawTransaction,
    SubTransaction,
    ValidatedBatch,
    checked_add_uint256,
)

logger = logging.getLogger(__name__)

_BOOL = TypeAdapter(bool)

TransactionInput = Union[RawTransaction, Mapping[str, Any]]


def validate_batch(
    config: BatchConfig,
    transactions: Sequence[TransactionInput],
) -> ValidatedBatch:
    """Validate a batch against the configured policy.

    Args:
        config: Policy ceilings and allow-list
        transactions: Ordered raw sub-transactions (RawTransaction or
            batch-file style mappings)

    Returns:
        ValidatedBatch with checksummed targets and the exact total value

    Raises:
        ValidationError subclass naming the offending index
    """
    if not transactions:
        raise EmptyBatch()

    accepted = []
    total = 0

    for index, item in enumerate(transactions):
        raw = _coerce(item, index)

        target = _validate_target(raw.target, index)
        value = _validate_value(raw.value, index)

        if value > config.max_single_transaction_value:
            raise SingleLimitExceeded(index, value, config.max_single_transaction_value)

        if config.enable_address_whitelist and target not in config.allowed_targets:
            raise TargetNotAllowed(index, target)

        payload = _decode_payload(raw.hex_data, index)
        is_contract_call = _validate_flag(raw.is_contract_call, index)

        try:
            total = checked_add_uint256(total, value)
        except OverflowError:
            raise ValueOverflow(index) from None

        accepted.append(
            SubTransaction(
                target=target,
                value=value,
                payload=payload,
                is_contract_call=is_contract_call,
                description=raw.description or f"Transaction {index + 1}",
            )
        )

    if total > config.max_batch_total_value:
        raise BatchLimitExceeded(total, config.max_batch_total_value)

    logger.info(
        "Batch validated: %d transaction(s), total %d wei (limit %d wei)",
        len(accepted),
        total,
        config.max_batch_total_value,
    )
    return ValidatedBatch(transactions=tuple(accepted), total_value=total)


def _coerce(item: TransactionInput, index: int) -> RawTransaction:
    if isinstance(item, RawTransaction):
        return item
    if isinstance(item, Mapping):
        return RawTransaction(
            target=item.get("target"),
            value=item.get("value"),
            hex_data=item.get("hexData", item.get("hex_data")),
            is_contract_call=item.get("isContractCall", item.get("is_contract_call", False)),
            description=item.get("description") or "",
        )
    raise InvalidAddress(index, item)


def _validate_target(target: Any, index: int) -> str:
    if (
        not isinstance(target, str)
        or len(target) != 42
        or not target.startswith("0x")
        or not Web3.is_address(target)
    ):
        raise InvalidAddress(index, target)
    return Web3.to_checksum_address(target)


def _validate_value(value: Any, index: int) -> int:
    if value is None:
        raise MissingValue(index)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueOutOfRange(index, value)
    if value < 0 or value > UINT256_MAX:
        raise ValueOutOfRange(index, value)
    return value


def _decode_payload(hex_data: Any, index: int) -> bytes:
    if hex_data is None or hex_data in ("", "0x", b""):
        return b""
    if isinstance(hex_data, (bytes, bytearray)):
        return bytes(hex_data)
    if not isinstance(hex_data, str):
        raise InvalidPayload(index, hex_data)
    if not hex_data.startswith("0x") or len(hex_data) % 2:
        raise InvalidPayload(index, hex_data)
    try:
        return bytes.fromhex(hex_data[2:])
    except ValueError as e:
        raise InvalidPayload(index, hex_data) from e


def _validate_flag(flag: Any, index: int) -> bool:
    # same lax coercion as the batch file model: "false", 0, "no" are False
    try:
        return _BOOL.validate_python(flag)
    except PydanticValidationError as e:
        raise InvalidCallFlag(index, flag) from e
