"""Tests for attest_node.config."""

from __future__ import annotations

import json

import pytest

from attest_node.config import OperatorConfig, OracleConfig, config_from_dict, load_config
from attest_node.errors import ConfigError


def _write(tmp_path, data: dict):
    path = tmp_path / "node.json"
    path.write_text(json.dumps(data))
    return path


class TestConfigFromDict:
    def test_defaults(self) -> None:
        config = config_from_dict({})
        assert config.port == 8480
        assert config.response_window == 30
        assert config.challenge_window == 100
        assert config.db_path == ""
        assert config.operators == []

    def test_operators_parsed(self) -> None:
        config = config_from_dict({
            "operators": [
                {"operator_id": "op-1", "secret_key": "01" * 32, "stakes": {"0": 70, "1": 67}},
            ],
        })
        (op,) = config.operators
        assert op.stakes == {0: 70, 1: 67}

    def test_operator_without_key(self) -> None:
        with pytest.raises(ConfigError, match="secret_key or pubkey"):
            config_from_dict({"operators": [{"operator_id": "op-1"}]})

    def test_operator_missing_id(self) -> None:
        with pytest.raises(ConfigError):
            config_from_dict({"operators": [{"secret_key": "01" * 32}]})

    def test_duplicate_operator(self) -> None:
        op = {"operator_id": "op-1", "secret_key": "01" * 32}
        with pytest.raises(ConfigError, match="Duplicate"):
            config_from_dict({"operators": [op, op]})

    def test_negative_window(self) -> None:
        with pytest.raises(ConfigError):
            config_from_dict({"challenge_window": -5})

    def test_bad_number(self) -> None:
        with pytest.raises(ConfigError):
            config_from_dict({"port": "eighty"})

    def test_ground_truth_entry_checked(self) -> None:
        with pytest.raises(ConfigError, match="ground_truth"):
            config_from_dict({"ground_truth": [{"wallet": "0x1", "owner": "0x2"}]})


class TestValidate:
    def test_negative_stake(self) -> None:
        config = OracleConfig(operators=[
            OperatorConfig("op-1", secret_key="01" * 32, stakes={0: -1}),
        ])
        with pytest.raises(ConfigError, match="negative stake"):
            config.validate()

    def test_negative_block_time(self) -> None:
        with pytest.raises(ConfigError):
            OracleConfig(block_time=-1).validate()


class TestLoadConfig:
    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path) -> None:
        path = tmp_path / "node.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError, match="not valid JSON"):
            load_config(path)

    def test_env_overrides(self, tmp_path) -> None:
        path = _write(tmp_path, {"port": 9000})
        config = load_config(path, environ={
            "ATTEST_PORT": "9100",
            "ATTEST_DATA_DIR": "/var/lib/attest",
            "ATTEST_DB_PATH": "/var/lib/attest/state.db",
        })
        assert config.port == 9100
        assert config.data_dir == "/var/lib/attest"
        assert config.db_path == "/var/lib/attest/state.db"

    def test_cli_overrides_beat_env(self, tmp_path) -> None:
        path = _write(tmp_path, {"port": 9000})
        config = load_config(
            path,
            overrides={"port": 9200, "data_dir": None},
            environ={"ATTEST_PORT": "9100"},
        )
        assert config.port == 9200
        assert config.data_dir == "./attest-data"

    def test_bad_env_value(self, tmp_path) -> None:
        path = _write(tmp_path, {})
        with pytest.raises(ConfigError, match="ATTEST_PORT"):
            load_config(path, environ={"ATTEST_PORT": "not-a-port"})
