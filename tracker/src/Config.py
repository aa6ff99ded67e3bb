"""Config: Tracker configuration loaded from a JSON file and the environment.

Values are resolved in order of precedence:
    1. Environment variables (``NETWORK``, ``RPC_URL``, ``TRACKER_CYCLE``, ...)
    2. The JSON config file (camelCase keys as written by operators)
    3. Built-in defaults

.. code-block:: python

    >>> cfg = TrackerConfig.load("config.json")
    >>> cfg.tracker_cycle
    30.0
    >>> cfg.trackers
    ['psr', 'gas']
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from eth_account import Account

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Raised when configuration is invalid. Fatal at load time."""

    pass


# Config file keys (camelCase) mapped to TrackerConfig fields.
_FILE_KEYS: dict[str, str] = {
    "network": "network",
    "nodeURL": "node_url",
    "contractAddress": "contract_address",
    "publicAddress": "public_address",
    "privateKey": "private_key",
    "trackerCycle": "tracker_cycle",
    "trackers": "trackers",
    "psrFile": "psr_file",
    "fetchTimeout": "fetch_timeout",
    "disputeThresholdPercent": "dispute_threshold_percent",
    "disputeTimeWindow": "dispute_time_window",
}

_ENV_KEYS: dict[str, str] = {
    "NETWORK": "network",
    "RPC_URL": "node_url",
    "CONTRACT_ADDRESS": "contract_address",
    "PUBLIC_ADDRESS": "public_address",
    "PRIVATE_KEY": "private_key",
    "TRACKER_CYCLE": "tracker_cycle",
    "TRACKERS": "trackers",
    "PSR_FILE": "psr_file",
    "FETCH_TIMEOUT": "fetch_timeout",
    "DISPUTE_THRESHOLD_PERCENT": "dispute_threshold_percent",
    "DISPUTE_TIME_WINDOW": "dispute_time_window",
}

_FLOAT_FIELDS = {
    "tracker_cycle",
    "fetch_timeout",
    "dispute_threshold_percent",
    "dispute_time_window",
}


@dataclass
class TrackerConfig:
    """Process-wide tracker configuration.

    :ivar network: Network name used to pick a default node URL.
    :ivar node_url: Explicit JSON-RPC URL, overrides the network default.
    :ivar contract_address: Address of the oracle master contract.
    :ivar public_address: Address whose balances and stake are tracked.
    :ivar private_key: Optional key; only used to derive public_address.
    :ivar tracker_cycle: Seconds between tracker runs (external scheduler).
    :ivar trackers: Names of the trackers to create.
    :ivar psr_file: Path to the pre-specified request definitions.
    :ivar fetch_timeout: Timeout for individual API fetches in seconds.
    :ivar dispute_threshold_percent: Deviation that flags a mined value.
    :ivar dispute_time_window: Seconds of local history compared per value.
    """

    network: str = "localnet"
    node_url: str | None = None
    contract_address: str | None = None
    public_address: str | None = None
    private_key: str | None = None
    tracker_cycle: float = 30.0
    trackers: list[str] = field(default_factory=lambda: ["psr"])
    psr_file: str = "psr.json"
    fetch_timeout: float = 10.0
    dispute_threshold_percent: float = 1.0
    dispute_time_window: float = 600.0

    def __post_init__(self) -> None:
        """Validate values and derive the public address.

        :raises ConfigurationError: If a value is out of range.
        """
        if self.tracker_cycle <= 0:
            raise ConfigurationError("tracker_cycle must be positive")
        if self.fetch_timeout <= 0:
            raise ConfigurationError("fetch_timeout must be positive")
        if self.dispute_threshold_percent <= 0:
            raise ConfigurationError("dispute_threshold_percent must be positive")
        if self.dispute_time_window <= 0:
            raise ConfigurationError("dispute_time_window must be positive")

        if not self.public_address and self.private_key:
            try:
                self.public_address = Account.from_key(self.private_key).address
            except (ValueError, TypeError) as e:
                raise ConfigurationError(f"Invalid private key: {e}") from e

    @classmethod
    def load(
        cls,
        path: str | Path | None = None,
        environ: dict[str, str] | None = None,
    ) -> TrackerConfig:
        """Load configuration from a JSON file and environment overrides.

        :param path: Optional path to a JSON config file.
        :param environ: Environment mapping (defaults to ``os.environ``).
        :returns: Validated TrackerConfig.
        :raises ConfigurationError: If the file is unreadable or a value is invalid.
        """
        values: dict[str, Any] = {}

        if path is not None:
            values.update(cls._read_file(Path(path)))

        env = os.environ if environ is None else environ
        for env_key, name in _ENV_KEYS.items():
            raw = env.get(env_key)
            if raw:
                values[name] = raw

        return cls(**cls._coerce(values))

    @staticmethod
    def _read_file(path: Path) -> dict[str, Any]:
        """Read a JSON config file into TrackerConfig field names.

        :param path: Path to the JSON file.
        :returns: Dict of field name to raw value.
        :raises ConfigurationError: If the file is missing, malformed or
            contains unknown keys.
        """
        try:
            with open(path, "r") as file:
                data = json.load(file)
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Malformed config file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a JSON object")

        unknown = [k for k in data if k not in _FILE_KEYS]
        if unknown:
            raise ConfigurationError(f"Unknown config keys in {path}: {unknown}")

        logger.debug(f"Loaded config file {path}")
        return {_FILE_KEYS[k]: v for k, v in data.items()}

    @staticmethod
    def _coerce(values: dict[str, Any]) -> dict[str, Any]:
        """Convert raw string values to the field types."""
        out = dict(values)
        for name in _FLOAT_FIELDS:
            if name in out:
                try:
                    out[name] = float(out[name])
                except (TypeError, ValueError) as e:
                    raise ConfigurationError(
                        f"{name} must be a number, got {out[name]!r}"
                    ) from e

        trackers = out.get("trackers")
        if isinstance(trackers, str):
            out["trackers"] = [t.strip() for t in trackers.split(",") if t.strip()]
        elif trackers is not None and not isinstance(trackers, list):
            raise ConfigurationError(f"trackers must be a list, got {trackers!r}")

        return out
