"""Delegation authorization digest construction and signing.

The smart-account implementation verifies authorizations as:

    inner  = keccak256(abi.encodePacked(uint256 chainId, uint256 nonce, address implementation))
    signed = MessageHashUtils.toEthSignedMessageHash(inner)
           = keccak256("\\x19Ethereum Signed Message:\\n32" || inner)
    ECDSA.recover(signed, v, r, s) == account

so both hashes must be bit-exact. The nonce is the signer's transaction
count at signing time; it is never refreshed here, and an authorization
signed before another transaction from the same account is mined will be
rejected on-chain.
"""
from __future__ import annotations

import logging
from typing import Optional

from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from .exceptions import SigningError
from .models import UINT256_MAX, AuthorizationRecord
from .signer import Signer

logger = logging.getLogger(__name__)

ETH_SIGNED_MESSAGE_PREFIX = b"\x19Ethereum Signed Message:\n32"


def authorization_digest(chain_id: int, nonce: int, implementation: str) -> bytes:
    """keccak256 over the packed (chainId, nonce, implementation) tuple."""
    if not 0 <= chain_id <= UINT256_MAX or not 0 <= nonce <= UINT256_MAX:
        raise SigningError("chain id and nonce must be uint256 values")
    return bytes(
        Web3.solidity_keccak(
            ["uint256", "uint256", "address"],
            [chain_id, nonce, Web3.to_checksum_address(implementation)],
        )
    )


def eth_signed_digest(inner_hash: bytes) -> bytes:
    """Apply the personal-message prefix once over a 32-byte digest."""
    if len(inner_hash) != 32:
        raise SigningError("inner digest must be 32 bytes")
    return bytes(Web3.keccak(ETH_SIGNED_MESSAGE_PREFIX + inner_hash))


def normalize_y_parity(v: int) -> int:
    """Map a recovery id to {0, 1}.

    Accepts 0/1 and the legacy 27/28 encoding. Anything else (including
    EIP-155 style values) is rejected.
    """
    if v in (0, 1):
        return v
    if v in (27, 28):
        return v - 27
    raise SigningError(f"Unexpected signature recovery id v={v}")


def authorize(
    signer: Optional[Signer],
    chain_id: int,
    nonce: int,
    implementation: str,
) -> AuthorizationRecord:
    """Sign a delegation of the signer's account to ``implementation``.

    Raises:
        SigningError: signer missing, bad inputs, or the primitive failed.
            No partial record is ever returned.
    """
    if signer is None:
        raise SigningError("No signer capability available")

    try:
        implementation = Web3.to_checksum_address(implementation)
    except (ValueError, TypeError) as e:
        raise SigningError(f"Invalid implementation address {implementation!r}") from e

    inner = authorization_digest(chain_id, nonce, implementation)
    signed_hash = eth_signed_digest(inner)

    try:
        v, r, s = signer.sign_hash(signed_hash)
    except SigningError:
        raise
    except Exception as e:
        raise SigningError(f"Signing failed: {e}") from e

    y_parity = normalize_y_parity(v)
    try:
        r_bytes = int(r).to_bytes(32, "big")
        s_bytes = int(s).to_bytes(32, "big")
    except (OverflowError, ValueError, TypeError) as e:
        raise SigningError("Signature scalars do not fit in 32 bytes") from e

    record = AuthorizationRecord(
        chain_id=chain_id,
        nonce=nonce,
        implementation=implementation,
        y_parity=y_parity,
        r=r_bytes,
        s=s_bytes,
    )
    logger.info(
        "Authorization signed: account=%s chain_id=%d nonce=%d implementation=%s",
        signer.address,
        chain_id,
        nonce,
        implementation,
    )
    return record


def recover_authorizer(record: AuthorizationRecord) -> str:
    """Recover the account that signed ``record``, as the contract would."""
    inner = authorization_digest(record.chain_id, record.nonce, record.implementation)
    return Account.recover_message(
        encode_defunct(primitive=inner),
        vrs=(
            record.y_parity + 27,
            int.from_bytes(record.r, "big"),
            int.from_bytes(record.s, "big"),
        ),
    )
