"""Configuration surface for hexbatch.

Three layers, merged into one immutable BatchConfig value:

1. HexBatchSettings - process environment and ``.env`` (pydantic-settings)
2. Batch file ``settings`` block - policy overrides shipped with the batch
3. Explicit overrides - e.g. CLI flags

Nothing here mutates shared state: merge_config always returns a new value.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, FrozenSet, List, Literal, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict
from web3 import Web3

from .exceptions import ConfigurationError
from .models import RawTransaction

logger = logging.getLogger(__name__)

DEFAULT_MAX_SINGLE_TRANSACTION_VALUE = Web3.to_wei(1, "ether")
DEFAULT_MAX_BATCH_TOTAL_VALUE = Web3.to_wei(5, "ether")
DEFAULT_TRANSACTION_TIMEOUT = 300  # seconds
DEFAULT_CONFIG_FILE = "call_data/hex-batch-config.json"

GasPriceStrategy = Literal["auto", "legacy"]


@dataclass(frozen=True)
class BatchConfig:
    """Validated, read-only configuration for one orchestration run."""
    implementation_address: str
    rpc_url: str = ""
    network: str = ""
    max_single_transaction_value: int = DEFAULT_MAX_SINGLE_TRANSACTION_VALUE
    max_batch_total_value: int = DEFAULT_MAX_BATCH_TOTAL_VALUE
    enable_address_whitelist: bool = False
    allowed_targets: FrozenSet[str] = frozenset()
    gas_limit: Optional[int] = None
    gas_price_strategy: GasPriceStrategy = "auto"
    transaction_timeout: float = DEFAULT_TRANSACTION_TIMEOUT

    def __post_init__(self) -> None:
        # Allow-list entries are compared in checksummed form.
        object.__setattr__(
            self,
            "allowed_targets",
            frozenset(_checksum_or_raise(t, "allowed_targets") for t in self.allowed_targets),
        )
        if self.implementation_address:
            object.__setattr__(
                self,
                "implementation_address",
                _checksum_or_raise(self.implementation_address, "SMART_ACCOUNT_ADDRESS"),
            )
        if self.max_single_transaction_value < 0 or self.max_batch_total_value < 0:
            raise ConfigurationError("Value ceilings must be non-negative")
        if self.transaction_timeout <= 0:
            raise ConfigurationError(
                "Transaction timeout must be positive", setting="TRANSACTION_TIMEOUT"
            )
        if self.gas_limit is not None and self.gas_limit <= 0:
            raise ConfigurationError("Gas limit must be positive", setting="GAS_LIMIT")


def merge_config(base: BatchConfig, *overrides: Optional[Mapping[str, Any]]) -> BatchConfig:
    """Apply override mappings left to right and return a new BatchConfig.

    Keys are BatchConfig field names; None values leave the field unchanged.
    """
    known = {f.name for f in fields(BatchConfig)}
    changes: dict[str, Any] = {}
    for layer in overrides:
        if not layer:
            continue
        for key, value in layer.items():
            if key not in known:
                raise ConfigurationError(f"Unknown configuration key: {key}", setting=key)
            if value is None:
                continue
            if key == "allowed_targets":
                value = frozenset(value)
            changes[key] = value
    return replace(base, **changes)


class HexBatchSettings(BaseSettings):
    """Environment-derived settings. Variable names match the ``.env`` file."""

    private_key: Optional[SecretStr] = None
    rpc_url: str = ""
    smart_account_address: str = ""
    network: str = ""
    enable_hex_batch: bool = False
    gas_limit: Optional[int] = None
    gas_price_strategy: GasPriceStrategy = "auto"
    transaction_timeout: int = DEFAULT_TRANSACTION_TIMEOUT
    max_single_transaction_value: int = DEFAULT_MAX_SINGLE_TRANSACTION_VALUE
    max_batch_total_value: int = DEFAULT_MAX_BATCH_TOTAL_VALUE
    enable_address_whitelist: bool = False
    allowed_targets: str = ""  # comma-separated
    hex_batch_config_file: str = DEFAULT_CONFIG_FILE
    log_level: str = "INFO"
    log_json: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @field_validator("gas_limit", mode="before")
    @classmethod
    def empty_gas_limit(cls, v):
        """Treat GAS_LIMIT= as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def allowed_target_list(self) -> List[str]:
        return [t.strip() for t in self.allowed_targets.split(",") if t.strip()]

    def require_ready(self) -> None:
        """Fail fast if the settings cannot drive a run."""
        if self.private_key is None or not self.private_key.get_secret_value():
            raise ConfigurationError("PRIVATE_KEY is not set", setting="PRIVATE_KEY")
        if not self.rpc_url:
            raise ConfigurationError("RPC_URL is not set", setting="RPC_URL")
        if not self.smart_account_address:
            raise ConfigurationError(
                "SMART_ACCOUNT_ADDRESS is not set", setting="SMART_ACCOUNT_ADDRESS"
            )
        if not self.enable_hex_batch:
            raise ConfigurationError(
                "Hex batch execution is disabled; set ENABLE_HEX_BATCH=true",
                setting="ENABLE_HEX_BATCH",
            )

    def to_config(self) -> BatchConfig:
        return BatchConfig(
            implementation_address=self.smart_account_address,
            rpc_url=self.rpc_url,
            network=self.network,
            max_single_transaction_value=self.max_single_transaction_value,
            max_batch_total_value=self.max_batch_total_value,
            enable_address_whitelist=self.enable_address_whitelist,
            allowed_targets=frozenset(self.allowed_target_list),
            gas_limit=self.gas_limit,
            gas_price_strategy=self.gas_price_strategy,
            transaction_timeout=self.transaction_timeout,
        )


def load_settings(**values: Any) -> HexBatchSettings:
    """Read settings from the environment, reporting bad values as ConfigurationError."""
    try:
        return HexBatchSettings(**values)
    except PydanticValidationError as e:
        first = e.errors()[0]
        setting = ".".join(str(part) for part in first.get("loc", ())).upper()
        raise ConfigurationError(
            f"Invalid setting {setting}: {first.get('msg')}", setting=setting or None
        ) from e


# ============ Batch file ============


class BatchFileSettings(BaseModel):
    """Optional ``settings`` block of a batch file."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    max_single_transaction_value: Optional[int] = Field(None, alias="maxSingleTransactionValue")
    max_batch_total_value: Optional[int] = Field(None, alias="maxBatchTotalValue")
    enable_address_whitelist: Optional[bool] = Field(None, alias="enableAddressWhitelist")
    allowed_targets: Optional[List[str]] = Field(None, alias="allowedTargets")

    @field_validator("max_single_transaction_value", "max_batch_total_value", mode="before")
    @classmethod
    def wei_text(cls, v):
        """Accept decimal or 0x-prefixed strings, like transaction values."""
        if isinstance(v, str):
            return _wei_from_text(v)
        return v

    def to_overrides(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class BatchFileTransaction(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    target: str = Field(min_length=1)
    value: int | str
    hex_data: Optional[str] = Field(None, alias="hexData")
    is_contract_call: bool = Field(False, alias="isContractCall")
    description: Optional[str] = None


class BatchFileModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    settings: Optional[BatchFileSettings] = None
    transactions: List[BatchFileTransaction]


@dataclass(frozen=True)
class BatchFile:
    """Parsed batch file: policy overrides plus raw sub-transactions."""
    path: Path
    overrides: Mapping[str, Any]
    transactions: Tuple[RawTransaction, ...]


def load_batch_file(path: str | Path) -> BatchFile:
    """Read and structurally check a batch file.

    Structural problems (missing file, bad JSON, missing target/value) raise
    ConfigurationError. Policy checks are left to the validator.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Batch file not found: {path}", setting="HEX_BATCH_CONFIG_FILE")

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(
            f"Batch file could not be read: {path}: {e}", setting="HEX_BATCH_CONFIG_FILE"
        ) from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Batch file is not valid JSON: {e}") from e

    try:
        model = BatchFileModel.model_validate(data)
    except PydanticValidationError as e:
        raise ConfigurationError(_describe_file_error(e)) from e

    transactions = tuple(
        RawTransaction(
            target=entry.target,
            value=_parse_wei(entry.value, index),
            hex_data=entry.hex_data or "0x",
            is_contract_call=entry.is_contract_call,
            description=entry.description or f"Transaction {index + 1}",
        )
        for index, entry in enumerate(model.transactions)
    )
    overrides = model.settings.to_overrides() if model.settings else {}

    logger.info(
        "Loaded batch file %s: %d transaction(s), overrides=%s",
        path,
        len(transactions),
        sorted(overrides),
    )
    return BatchFile(path=path, overrides=overrides, transactions=transactions)


def _parse_wei(value: int | str, index: int) -> int:
    if isinstance(value, int):
        return value
    try:
        return _wei_from_text(value)
    except ValueError as e:
        raise ConfigurationError(
            f"Transaction {index + 1}: value {value!r} is not an integer wei amount"
        ) from e


def _wei_from_text(value: str) -> int:
    text = value.strip()
    if text.lower().startswith("0x"):
        return int(text, 16)
    return int(text, 10)


def _describe_file_error(error: PydanticValidationError) -> str:
    first = error.errors()[0]
    loc = first.get("loc", ())
    if len(loc) >= 3 and loc[0] == "transactions" and isinstance(loc[1], int):
        field_name = loc[2]
        if first.get("type") == "missing" or first.get("input") is None or field_name == "target":
            return f"Transaction {loc[1] + 1}: missing {field_name} field"
        return f"Transaction {loc[1] + 1}: invalid {field_name} field"
    if loc == ("transactions",):
        return "Batch file must contain a transactions array"
    return "Invalid batch file: " + ".".join(str(part) for part in loc)


def _checksum_or_raise(address: str, setting: str) -> str:
    if not isinstance(address, str) or not Web3.is_address(address):
        raise ConfigurationError(f"Invalid address in {setting}: {address!r}", setting=setting)
    return Web3.to_checksum_address(address)
