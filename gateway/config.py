"""
Gateway configuration.

Configuration is loaded from a JSON file (config/gateway_config.json):
{
    "tcp": {
        "host": "0.0.0.0",
        "port": 10000,
        "max_clients": 5,
        "read_size": 512,
        "poll_timeout_ms": 5,
        "socket_timeout_sec": 1.0,
        "max_line_bytes": null
    },
    "telemetry": {"broadcast_period_sec": 5.0},
    "loop": {"yield_sec": 0.005},
    "restart": {"delay_sec": 30, "max_restarts": 0},
    "bus": {"max_queue_size": 1024},
    "local_sensors": [
        {"class": "BME280TempPressureHumidity", "config": {"smbus": 1}}
    ],
    "local_sensor_interval_sec": 5.0
}

Every key is optional; missing keys take the defaults shown above.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from utils.config_lookup import get_nested


@dataclass
class OptionDef:
    """Definition of a numeric config option."""

    key_path: str
    attr: str
    default: int | float | None
    value_type: type = int
    min_val: int | float | None = None
    max_val: int | float | None = None
    nullable: bool = False


OPTIONS = [
    OptionDef("tcp.port", "port", 10000, min_val=0, max_val=65535),
    OptionDef("tcp.max_clients", "max_clients", 5, min_val=1, max_val=1024),
    OptionDef("tcp.read_size", "read_size", 512, min_val=1, max_val=65536),
    OptionDef("tcp.poll_timeout_ms", "poll_timeout_ms", 5, min_val=0, max_val=1000),
    OptionDef(
        "tcp.socket_timeout_sec", "socket_timeout_sec", 1.0,
        value_type=float, min_val=0.001, max_val=60.0,
    ),
    OptionDef(
        "tcp.max_line_bytes", "max_line_bytes", None,
        min_val=2, nullable=True,
    ),
    OptionDef(
        "telemetry.broadcast_period_sec", "broadcast_period_sec", 5.0,
        value_type=float, min_val=0.01, max_val=3600.0,
    ),
    OptionDef(
        "loop.yield_sec", "yield_sec", 0.005,
        value_type=float, min_val=0.0, max_val=1.0,
    ),
    OptionDef(
        "restart.delay_sec", "restart_delay_sec", 30.0,
        value_type=float, min_val=0.0, max_val=3600.0,
    ),
    OptionDef("restart.max_restarts", "max_restarts", 0, min_val=0),
    OptionDef("bus.max_queue_size", "bus_max_queue_size", 1024, min_val=1),
    OptionDef(
        "local_sensor_interval_sec", "local_sensor_interval_sec", 5.0,
        value_type=float, min_val=0.1,
    ),
]


@dataclass
class GatewayConfig:
    """Typed view of the gateway configuration with defaults applied."""

    host: str = "0.0.0.0"
    port: int = 10000
    max_clients: int = 5  # listen backlog
    read_size: int = 512
    poll_timeout_ms: int = 5
    socket_timeout_sec: float = 1.0
    max_line_bytes: int | None = None  # None = unbounded line buffer
    broadcast_period_sec: float = 5.0
    yield_sec: float = 0.005
    restart_delay_sec: float = 30.0
    max_restarts: int = 0  # 0 = unlimited
    bus_max_queue_size: int = 1024
    local_sensors: list[dict] = field(default_factory=list)
    local_sensor_interval_sec: float = 5.0

    @classmethod
    def from_dict(cls, config: dict) -> GatewayConfig:
        """
        Build a config from a parsed JSON dict.

        Raises:
            ValueError: If an option has the wrong type or is out of range
        """
        values: dict[str, Any] = {}
        for opt in OPTIONS:
            values[opt.attr] = _read_option(config, opt)

        host = get_nested(config, "tcp.host", "0.0.0.0")
        if not isinstance(host, str):
            raise ValueError(f"tcp.host must be a string, got {host!r}")

        local_sensors = config.get("local_sensors", [])
        if not isinstance(local_sensors, list):
            raise ValueError("local_sensors must be a list")

        return cls(host=host, local_sensors=local_sensors, **values)


def _read_option(config: dict, opt: OptionDef) -> int | float | None:
    raw = get_nested(config, opt.key_path, opt.default)
    if raw is None:
        if opt.nullable:
            return None
        raise ValueError(f"{opt.key_path} is required")

    if isinstance(raw, bool):
        raise ValueError(f"invalid value for {opt.key_path}: {raw!r}")
    try:
        val = opt.value_type(raw)
    except (TypeError, ValueError):
        raise ValueError(f"invalid value for {opt.key_path}: {raw!r}") from None
    if opt.value_type is int and val != raw:
        raise ValueError(f"{opt.key_path} must be an integer, got {raw!r}")

    if opt.min_val is not None and val < opt.min_val:
        raise ValueError(f"{opt.key_path} out of range: {val} < {opt.min_val}")
    if opt.max_val is not None and val > opt.max_val:
        raise ValueError(f"{opt.key_path} out of range: {val} > {opt.max_val}")
    return val


def load_config(config_path: str) -> dict:
    """Load gateway configuration from JSON file."""
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path) as f:
        return json.load(f)
