"""Signer capability used for authorization digests and outer transactions."""
from __future__ import annotations

import logging
from typing import Any, Dict, Protocol, Tuple

from eth_account import Account
from eth_account.signers.local import LocalAccount

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class Signer(Protocol):
    """Opaque signing capability. Key custody stays with the implementation."""

    @property
    def address(self) -> str:
        ...

    def sign_hash(self, message_hash: bytes) -> Tuple[int, int, int]:
        """Sign a raw 32-byte digest, returning (v, r, s)."""
        ...

    def sign_transaction(self, tx: Dict[str, Any]) -> bytes:
        """Sign a transaction dict, returning the raw signed transaction."""
        ...


class LocalAccountSigner:
    """Signer backed by an in-process eth-account key."""

    def __init__(self, account: LocalAccount):
        self._account = account

    @classmethod
    def from_key(cls, private_key: str) -> "LocalAccountSigner":
        try:
            account = Account.from_key(private_key)
        except (ValueError, TypeError) as e:
            # never echo the key itself
            raise ConfigurationError("PRIVATE_KEY is not a valid secp256k1 key", setting="PRIVATE_KEY") from e
        return cls(account)

    @property
    def address(self) -> str:
        return self._account.address

    def sign_hash(self, message_hash: bytes) -> Tuple[int, int, int]:
        signed = self._account.unsafe_sign_hash(message_hash)
        return signed.v, signed.r, signed.s

    def sign_transaction(self, tx: Dict[str, Any]) -> bytes:
        signed = self._account.sign_transaction(tx)
        return bytes(signed.raw_transaction)

    def __repr__(self) -> str:
        return f"LocalAccountSigner(address={self.address})"
