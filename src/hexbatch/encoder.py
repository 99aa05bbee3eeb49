"""Call-data encoding for the smart account's batch entry point.

Target function (payable, no outputs):

    executeHexBatchWithAuthorization(
        (uint256 chainId, uint256 nonce, address implementation,
         uint8 yParity, bytes32 r, bytes32 s) authorization,
        (address target, uint256 value, bytes hexData, bool isContractCall)[] transactions
    )

Field order and types must match the deployed contract exactly; changing
them is a breaking change.
"""
from __future__ import annotations

from typing import Optional, Sequence

from eth_abi import encode
from web3 import Web3

from .exceptions import ValueOverflow
from .models import AuthorizationRecord, BatchPayload, SubTransaction, checked_add_uint256

AUTHORIZATION_TUPLE = "(uint256,uint256,address,uint8,bytes32,bytes32)"
SUBTRANSACTION_TUPLE = "(address,uint256,bytes,bool)"

BATCH_FUNCTION_NAME = "executeHexBatchWithAuthorization"
BATCH_FUNCTION_SIGNATURE = (
    f"{BATCH_FUNCTION_NAME}({AUTHORIZATION_TUPLE},{SUBTRANSACTION_TUPLE}[])"
)
BATCH_FUNCTION_SELECTOR = bytes(Web3.keccak(text=BATCH_FUNCTION_SIGNATURE)[:4])

BATCH_EXECUTOR_ABI = [
    {
        "inputs": [
            {
                "components": [
                    {"name": "chainId", "type": "uint256"},
                    {"name": "nonce", "type": "uint256"},
                    {"name": "implementation", "type": "address"},
                    {"name": "yParity", "type": "uint8"},
                    {"name": "r", "type": "bytes32"},
                    {"name": "s", "type": "bytes32"},
                ],
                "name": "authorization",
                "type": "tuple",
            },
            {
                "components": [
                    {"name": "target", "type": "address"},
                    {"name": "value", "type": "uint256"},
                    {"name": "hexData", "type": "bytes"},
                    {"name": "isContractCall", "type": "bool"},
                ],
                "name": "transactions",
                "type": "tuple[]",
            },
        ],
        "name": BATCH_FUNCTION_NAME,
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    }
]


def aggregate_value(transactions: Sequence[SubTransaction]) -> int:
    """Exact uint256 sum of sub-transaction values."""
    total = 0
    for index, tx in enumerate(transactions):
        try:
            total = checked_add_uint256(total, tx.value)
        except OverflowError:
            raise ValueOverflow(index) from None
    return total


def encode_batch(
    authorization: AuthorizationRecord,
    transactions: Sequence[SubTransaction],
    gas_limit: Optional[int] = None,
) -> BatchPayload:
    """Encode the batch call and the value to attach. Pure and deterministic."""
    params = encode(
        [AUTHORIZATION_TUPLE, f"{SUBTRANSACTION_TUPLE}[]"],
        [
            authorization.as_abi_tuple(),
            [tx.as_abi_tuple() for tx in transactions],
        ],
    )
    return BatchPayload(
        to=authorization.implementation,
        data=BATCH_FUNCTION_SELECTOR + params,
        value=aggregate_value(transactions),
        transaction_count=len(transactions),
        gas_limit=gas_limit,
    )
