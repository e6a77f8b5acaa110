from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Sequence

DEFAULT_BUS_PATH = "/dev/i2c-1"
DEFAULT_ADDRESS = 0x76


@dataclass(frozen=True)
class RegisterMap:
    calib_temp_press: int = 0x88
    calib_temp_press_len: int = 24
    calib_hum1: int = 0xA1
    calib_hum1_len: int = 1
    calib_hum2: int = 0xE1
    calib_hum2_len: int = 7
    ctrl_hum: int = 0xF2
    ctrl_meas: int = 0xF4
    config: int = 0xF5
    data: int = 0xF7
    data_len: int = 8


REGISTERS = RegisterMap()


@dataclass(frozen=True)
class OperatingPolicy:
    """Control register values written by ``Bme280.configure``."""

    ctrl_hum: int = 0x01  # humidity oversampling x1
    ctrl_meas: int = 0x27  # temp x1, pressure x1, normal mode
    config: int = 0xA0  # standby 1000 ms, filter off

    def writes(self) -> list[tuple[int, int]]:
        # ctrl_hum only takes effect after the following ctrl_meas write
        return [
            (REGISTERS.ctrl_hum, self.ctrl_hum),
            (REGISTERS.ctrl_meas, self.ctrl_meas),
            (REGISTERS.config, self.config),
        ]

    @staticmethod
    def from_mapping(data: Dict[str, Any]) -> "OperatingPolicy":
        values: Dict[str, int] = {}
        for key in ("ctrl_hum", "ctrl_meas", "config"):
            if key not in data:
                continue
            value = _as_int(data[key])
            if not 0 <= value <= 0xFF:
                raise ValueError(f"policy.{key} must fit in one byte, got {value}")
            values[key] = value
        return OperatingPolicy(**values)


DEFAULT_POLICY = OperatingPolicy()


@dataclass
class HostRuntime:
    stats_log_interval: float = 60.0


@dataclass
class DriverConfig:
    bus_path: str = DEFAULT_BUS_PATH
    address: int = DEFAULT_ADDRESS
    interval_sec: float = 1.0
    output_csv: Path | None = None
    policy: OperatingPolicy = field(default_factory=OperatingPolicy)
    host: HostRuntime = field(default_factory=HostRuntime)


# section -> keys accepted by --set; "" is the top level
_OVERRIDE_KEYS: Dict[str, tuple[str, ...]] = {
    "": ("bus_path", "address", "interval_sec", "output_csv"),
    "policy": ("ctrl_hum", "ctrl_meas", "config"),
    "host": ("stats_log_interval",),
}


def load_config(path: Path | str | None = None, overrides: Sequence[str] | None = None) -> DriverConfig:
    """
    Load a driver configuration from JSON and apply CLI-style overrides.

    Overrides are expressed as `key=value` or `section.key=value` pairs, e.g.:
        ["address=0x77", "policy.ctrl_meas=0x27"]
    Without a path the built-in defaults are used as the base.
    """
    settings = _read_settings(Path(path)) if path is not None else {}
    for override in overrides or []:
        _apply_override(settings, override)
    address = _as_int(settings.get("address", DEFAULT_ADDRESS))
    if not 0 <= address <= 0x7F:
        raise ValueError(f"address must be a 7-bit I2C address, got 0x{address:X}")
    host_data = settings.get("host") or {}
    return DriverConfig(
        bus_path=str(settings.get("bus_path", DEFAULT_BUS_PATH)),
        address=address,
        interval_sec=float(settings.get("interval_sec", 1.0)),
        output_csv=Path(settings["output_csv"]) if settings.get("output_csv") else None,
        policy=OperatingPolicy.from_mapping(settings.get("policy") or {}),
        host=HostRuntime(
            stats_log_interval=float(host_data.get("stats_log_interval", 60.0)),
        ),
    )


def _read_settings(path: Path) -> Dict[str, Any]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path}: config must be a JSON object")
    return data


def _apply_override(settings: Dict[str, Any], item: str) -> None:
    key, sep, raw_value = item.partition("=")
    key = key.strip()
    if not sep or not key:
        raise ValueError(f"Override '{item}' must use key=value syntax")
    section, _, name = key.rpartition(".")
    if name not in _OVERRIDE_KEYS.get(section, ()):
        raise ValueError(f"Unknown config key '{key}'")
    target = settings
    if section:
        target = settings[section] = dict(settings.get(section) or {})
    target[name] = _coerce_value(raw_value.strip())


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Expected an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value, 0)
    raise ValueError(f"Expected an integer, got {value!r}")


def _coerce_value(raw: str) -> Any:
    try:
        return int(raw, 0)
    except ValueError:
        pass
    try:
        return float(raw)
    except ValueError:
        return raw
