"""Node configuration.

Loaded from a JSON file, then overridden by environment variables and
finally by CLI flags:

    ATTEST_DATA_DIR:  Override data directory
    ATTEST_PORT:      Override listening port
    ATTEST_DB_PATH:   Override SQLite state database path

Example::

    {
      "port": 8480,
      "data_dir": "./attest-data",
      "db_path": "./attest-data/state.db",
      "response_window": 30,
      "challenge_window": 100,
      "block_time": 12.0,
      "operators": [
        {"operator_id": "op-1", "secret_key": "<hex>", "stakes": {"0": 100}}
      ],
      "ground_truth": [
        {"wallet": "0xabc...", "owner": "0xdef...", "is_owner": true}
      ]
    }
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from attest_node.errors import ConfigError
from attest_node.oracle.task_manager import DEFAULT_CHALLENGE_WINDOW, DEFAULT_RESPONSE_WINDOW

ENV_OVERRIDES = {
    "ATTEST_DATA_DIR": ("data_dir", str),
    "ATTEST_PORT": ("port", int),
    "ATTEST_DB_PATH": ("db_path", str),
}


@dataclass
class OperatorConfig:
    """An operator known to the node's stake registry.

    Either ``secret_key`` (hex, the node derives key and proof of
    possession) or ``pubkey`` + ``pop`` (hex) must be given.
    """

    operator_id: str
    secret_key: str = ""
    pubkey: str = ""
    pop: str = ""
    stakes: dict[int, int] = field(default_factory=dict)


@dataclass
class OracleConfig:
    host: str = "0.0.0.0"
    port: int = 8480
    data_dir: str = "./attest-data"
    db_path: str = ""  # empty = in-memory state
    response_window: int = DEFAULT_RESPONSE_WINDOW
    challenge_window: int = DEFAULT_CHALLENGE_WINDOW
    block_time: float = 12.0  # seconds per block; 0 disables the ticker
    start_block: int = 0
    operators: list[OperatorConfig] = field(default_factory=list)
    ground_truth: list[dict[str, Any]] = field(default_factory=list)
    ground_truth_default: bool | None = None

    def validate(self) -> None:
        if self.response_window < 0:
            raise ConfigError(f"response_window must be >= 0, got {self.response_window}")
        if self.challenge_window < 0:
            raise ConfigError(f"challenge_window must be >= 0, got {self.challenge_window}")
        if self.block_time < 0:
            raise ConfigError(f"block_time must be >= 0, got {self.block_time}")
        if self.start_block < 0:
            raise ConfigError(f"start_block must be >= 0, got {self.start_block}")
        seen: set[str] = set()
        for op in self.operators:
            if op.operator_id in seen:
                raise ConfigError(f"Duplicate operator: {op.operator_id}")
            seen.add(op.operator_id)
            if not op.secret_key and not (op.pubkey and op.pop):
                raise ConfigError(
                    f"Operator {op.operator_id} needs secret_key or pubkey + pop"
                )
            for q, amount in op.stakes.items():
                if amount < 0:
                    raise ConfigError(
                        f"Operator {op.operator_id} has negative stake in quorum {q}"
                    )
        for entry in self.ground_truth:
            missing = {"wallet", "owner", "is_owner"} - set(entry)
            if missing:
                raise ConfigError(f"ground_truth entry missing {sorted(missing)}: {entry}")


def _parse_operator(raw: dict[str, Any]) -> OperatorConfig:
    try:
        return OperatorConfig(
            operator_id=raw["operator_id"],
            secret_key=raw.get("secret_key", ""),
            pubkey=raw.get("pubkey", ""),
            pop=raw.get("pop", ""),
            stakes={int(q): int(v) for q, v in raw.get("stakes", {}).items()},
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"Invalid operator entry {raw!r}: {e}") from e


def config_from_dict(raw: dict[str, Any]) -> OracleConfig:
    """Build and validate an OracleConfig from a plain dict."""
    try:
        config = OracleConfig(
            host=raw.get("host", "0.0.0.0"),
            port=int(raw.get("port", 8480)),
            data_dir=raw.get("data_dir", "./attest-data"),
            db_path=raw.get("db_path", ""),
            response_window=int(raw.get("response_window", DEFAULT_RESPONSE_WINDOW)),
            challenge_window=int(raw.get("challenge_window", DEFAULT_CHALLENGE_WINDOW)),
            block_time=float(raw.get("block_time", 12.0)),
            start_block=int(raw.get("start_block", 0)),
            operators=[_parse_operator(o) for o in raw.get("operators", [])],
            ground_truth=list(raw.get("ground_truth", [])),
            ground_truth_default=raw.get("ground_truth_default"),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
    config.validate()
    return config


def load_config(
    config_path: str | Path,
    overrides: dict[str, Any] | None = None,
    environ: dict[str, str] | None = None,
) -> OracleConfig:
    """Load node configuration from JSON, then apply env and CLI overrides."""
    path = Path(config_path).resolve()
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        raw = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config file is not valid JSON: {e}") from e

    env = os.environ if environ is None else environ
    for var, (key, cast) in ENV_OVERRIDES.items():
        if env.get(var):
            try:
                raw[key] = cast(env[var])
            except ValueError as e:
                raise ConfigError(f"Invalid {var}: {env[var]!r}") from e

    for key, value in (overrides or {}).items():
        if value is not None:
            raw[key] = value

    return config_from_dict(raw)
