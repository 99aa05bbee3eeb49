"""Tests for settings, config merging and batch file loading."""
import json
from dataclasses import FrozenInstanceError

import pytest

from conftest import IMPLEMENTATION, ONE_ETHER, PRIVATE_KEY, TARGET_A, TARGET_B
from hexbatch.config import (
    DEFAULT_MAX_BATCH_TOTAL_VALUE,
    DEFAULT_MAX_SINGLE_TRANSACTION_VALUE,
    BatchConfig,
    load_batch_file,
    load_settings,
    merge_config,
)
from hexbatch.exceptions import ConfigurationError


def write_batch(tmp_path, data, name="batch.json"):
    path = tmp_path / name
    path.write_text(json.dumps(data) if not isinstance(data, str) else data)
    return path


class TestBatchConfig:
    def test_defaults(self):
        config = BatchConfig(implementation_address=IMPLEMENTATION)

        assert config.max_single_transaction_value == DEFAULT_MAX_SINGLE_TRANSACTION_VALUE
        assert config.max_batch_total_value == DEFAULT_MAX_BATCH_TOTAL_VALUE
        assert config.max_single_transaction_value == ONE_ETHER
        assert config.enable_address_whitelist is False
        assert config.gas_price_strategy == "auto"

    def test_is_immutable(self, config):
        with pytest.raises(FrozenInstanceError):
            config.max_batch_total_value = 0

    def test_addresses_are_checksummed(self):
        config = BatchConfig(
            implementation_address=IMPLEMENTATION.lower(),
            allowed_targets=frozenset({TARGET_A.lower()}),
        )

        assert config.implementation_address == IMPLEMENTATION
        assert config.allowed_targets == frozenset({TARGET_A})

    def test_invalid_allowed_target(self):
        with pytest.raises(ConfigurationError):
            BatchConfig(implementation_address=IMPLEMENTATION, allowed_targets=frozenset({"0x12"}))

    def test_invalid_implementation(self):
        with pytest.raises(ConfigurationError):
            BatchConfig(implementation_address="not-an-address")

    def test_negative_ceiling(self):
        with pytest.raises(ConfigurationError):
            BatchConfig(implementation_address=IMPLEMENTATION, max_batch_total_value=-1)

    def test_non_positive_timeout(self):
        with pytest.raises(ConfigurationError):
            BatchConfig(implementation_address=IMPLEMENTATION, transaction_timeout=0)

    @pytest.mark.parametrize("gas_limit", [0, -21_000])
    def test_non_positive_gas_limit(self, config, gas_limit):
        with pytest.raises(ConfigurationError) as exc:
            merge_config(config, {"gas_limit": gas_limit})

        assert exc.value.details["setting"] == "GAS_LIMIT"

    def test_negative_gas_limit_from_environment(self, ready_env):
        ready_env.setenv("GAS_LIMIT", "-1")

        with pytest.raises(ConfigurationError):
            load_settings().to_config()


class TestMergeConfig:
    def test_later_layers_win(self, config):
        merged = merge_config(
            config,
            {"max_single_transaction_value": 1, "gas_limit": 100_000},
            {"max_single_transaction_value": 2},
        )

        assert merged.max_single_transaction_value == 2
        assert merged.gas_limit == 100_000

    def test_base_is_untouched(self, config):
        merge_config(config, {"max_batch_total_value": 1})

        assert config.max_batch_total_value == 5 * ONE_ETHER

    def test_none_values_are_ignored(self, config):
        merged = merge_config(config, {"transaction_timeout": None}, None, {})

        assert merged == config

    def test_zero_is_a_real_override(self, config):
        merged = merge_config(config, {"max_single_transaction_value": 0})

        assert merged.max_single_transaction_value == 0

    def test_allowed_targets_list(self, config):
        merged = merge_config(
            config,
            {"enable_address_whitelist": True, "allowed_targets": [TARGET_A.lower(), TARGET_B]},
        )

        assert merged.enable_address_whitelist is True
        assert merged.allowed_targets == frozenset({TARGET_A, TARGET_B})

    def test_unknown_key(self, config):
        with pytest.raises(ConfigurationError):
            merge_config(config, {"maxSingleTransactionValue": 1})


class TestSettings:
    def test_reads_environment(self, ready_env):
        ready_env.setenv("MAX_SINGLE_TRANSACTION_VALUE", "5")
        ready_env.setenv("ENABLE_ADDRESS_WHITELIST", "true")
        ready_env.setenv("ALLOWED_TARGETS", f"{TARGET_A}, {TARGET_B}")
        ready_env.setenv("GAS_LIMIT", "")

        settings = load_settings()
        settings.require_ready()
        config = settings.to_config()

        assert settings.private_key.get_secret_value() == PRIVATE_KEY
        assert PRIVATE_KEY not in repr(settings)
        assert settings.allowed_target_list == [TARGET_A, TARGET_B]
        assert config.implementation_address == IMPLEMENTATION
        assert config.max_single_transaction_value == 5
        assert config.enable_address_whitelist is True
        assert config.allowed_targets == frozenset({TARGET_A, TARGET_B})
        assert config.gas_limit is None

    def test_reads_dotenv_file(self, clean_env, tmp_path):
        (tmp_path / ".env").write_text(
            f"RPC_URL=http://node:8545\nSMART_ACCOUNT_ADDRESS={IMPLEMENTATION}\n"
        )

        settings = load_settings()

        assert settings.rpc_url == "http://node:8545"
        assert settings.smart_account_address == IMPLEMENTATION

    @pytest.mark.parametrize(
        "missing,setting",
        [
            ("PRIVATE_KEY", "PRIVATE_KEY"),
            ("RPC_URL", "RPC_URL"),
            ("SMART_ACCOUNT_ADDRESS", "SMART_ACCOUNT_ADDRESS"),
            ("ENABLE_HEX_BATCH", "ENABLE_HEX_BATCH"),
        ],
    )
    def test_require_ready(self, ready_env, missing, setting):
        ready_env.delenv(missing)

        with pytest.raises(ConfigurationError) as exc:
            load_settings().require_ready()

        assert exc.value.details["setting"] == setting

    def test_empty_private_key(self, ready_env):
        ready_env.setenv("PRIVATE_KEY", "")

        with pytest.raises(ConfigurationError):
            load_settings().require_ready()

    def test_invalid_value(self, clean_env):
        clean_env.setenv("TRANSACTION_TIMEOUT", "soon")

        with pytest.raises(ConfigurationError) as exc:
            load_settings()

        assert "TRANSACTION_TIMEOUT" in exc.value.message

    def test_invalid_gas_strategy(self, clean_env):
        clean_env.setenv("GAS_PRICE_STRATEGY", "turbo")

        with pytest.raises(ConfigurationError):
            load_settings()


class TestLoadBatchFile:
    def test_loads_transactions_and_overrides(self, tmp_path):
        path = write_batch(
            tmp_path,
            {
                "settings": {
                    "maxSingleTransactionValue": 10**17,
                    "enableAddressWhitelist": True,
                    "allowedTargets": [TARGET_A],
                },
                "transactions": [
                    {"target": TARGET_A, "value": "1000", "hexData": "0x", "description": "tip"},
                    {"target": TARGET_B, "value": "0x10", "hexData": "0xabcd", "isContractCall": True},
                    {"target": TARGET_B, "value": 7},
                ],
            },
        )

        batch_file = load_batch_file(path)

        assert batch_file.path == path
        assert batch_file.overrides == {
            "max_single_transaction_value": 10**17,
            "enable_address_whitelist": True,
            "allowed_targets": [TARGET_A],
        }
        first, second, third = batch_file.transactions
        assert (first.value, first.hex_data, first.description) == (1000, "0x", "tip")
        assert (second.value, second.hex_data, second.is_contract_call) == (16, "0xabcd", True)
        assert third.hex_data == "0x"
        assert third.description == "Transaction 3"

    def test_overrides_merge_into_config(self, tmp_path, config):
        path = write_batch(
            tmp_path,
            {"settings": {"maxBatchTotalValue": 0}, "transactions": []},
        )

        merged = merge_config(config, load_batch_file(path).overrides)

        assert merged.max_batch_total_value == 0

    def test_empty_transactions_are_allowed(self, tmp_path):
        path = write_batch(tmp_path, {"transactions": []})

        assert load_batch_file(path).transactions == ()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc:
            load_batch_file(tmp_path / "absent.json")

        assert "not found" in exc.value.message

    def test_invalid_json(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_batch_file(write_batch(tmp_path, "{not json"))

    def test_missing_transactions_array(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc:
            load_batch_file(write_batch(tmp_path, {"settings": {}}))

        assert "transactions" in exc.value.message

    def test_missing_target(self, tmp_path):
        path = write_batch(tmp_path, {"transactions": [{"target": TARGET_A, "value": 1}, {"value": 1}]})

        with pytest.raises(ConfigurationError) as exc:
            load_batch_file(path)

        assert exc.value.message == "Transaction 2: missing target field"

    def test_missing_value(self, tmp_path):
        path = write_batch(tmp_path, {"transactions": [{"target": TARGET_A}]})

        with pytest.raises(ConfigurationError) as exc:
            load_batch_file(path)

        assert exc.value.message == "Transaction 1: missing value field"

    def test_non_numeric_value(self, tmp_path):
        path = write_batch(tmp_path, {"transactions": [{"target": TARGET_A, "value": "1 ether"}]})

        with pytest.raises(ConfigurationError):
            load_batch_file(path)

    def test_hex_ceilings(self, tmp_path):
        path = write_batch(
            tmp_path,
            {
                "settings": {
                    "maxSingleTransactionValue": "0xde0b6b3a7640000",
                    "maxBatchTotalValue": "5000000000000000000",
                },
                "transactions": [],
            },
        )

        overrides = load_batch_file(path).overrides

        assert overrides["max_single_transaction_value"] == ONE_ETHER
        assert overrides["max_batch_total_value"] == 5 * ONE_ETHER

    def test_invalid_ceiling_text(self, tmp_path):
        path = write_batch(
            tmp_path, {"settings": {"maxBatchTotalValue": "5 ether"}, "transactions": []}
        )

        with pytest.raises(ConfigurationError) as exc:
            load_batch_file(path)

        assert "maxBatchTotalValue" in exc.value.message

    def test_not_utf8(self, tmp_path):
        path = tmp_path / "batch.json"
        path.write_bytes(b'{"transactions": [{"target": "\xff\xfe", "value": 1}]}')

        with pytest.raises(ConfigurationError) as exc:
            load_batch_file(path)

        assert exc.value.details["setting"] == "HEX_BATCH_CONFIG_FILE"

    def test_directory_instead_of_file(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc:
            load_batch_file(tmp_path)

        assert "could not be read" in exc.value.message
