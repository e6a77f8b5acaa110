from __future__ import annotations

import json
import struct
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Dict

from .config import REGISTERS
from .errors import InvalidArgumentError

_TEMP_PRESS_LAYOUT = struct.Struct("<HhhHhhhhhhhh")

# name -> (min, max) for each coefficient's storage type
_RANGES: Dict[str, tuple[int, int]] = {
    "dig_T1": (0, 0xFFFF),
    "dig_T2": (-0x8000, 0x7FFF),
    "dig_T3": (-0x8000, 0x7FFF),
    "dig_P1": (0, 0xFFFF),
    **{f"dig_P{idx}": (-0x8000, 0x7FFF) for idx in range(2, 10)},
    "dig_H1": (0, 0xFF),
    "dig_H2": (-0x8000, 0x7FFF),
    "dig_H3": (0, 0xFF),
    "dig_H4": (0, 0xFFF),
    "dig_H5": (0, 0xFFF),
    "dig_H6": (-0x80, 0x7F),
}


@dataclass(frozen=True)
class CalibrationCoefficients:
    """Factory trimming values read from the sensor's NVM."""

    dig_T1: int
    dig_T2: int
    dig_T3: int
    dig_P1: int
    dig_P2: int
    dig_P3: int
    dig_P4: int
    dig_P5: int
    dig_P6: int
    dig_P7: int
    dig_P8: int
    dig_P9: int
    dig_H1: int
    dig_H2: int
    dig_H3: int
    dig_H4: int
    dig_H5: int
    dig_H6: int


def _sign_extend(value: int, bits: int) -> int:
    sign = 1 << (bits - 1)
    return (value & (sign - 1)) - (value & sign)


def _expect_length(name: str, blob: bytes, expected: int) -> None:
    if blob is None:
        raise InvalidArgumentError(f"{name} is required")
    if len(blob) != expected:
        raise InvalidArgumentError(f"{name} must be {expected} bytes, got {len(blob)}")


def decode_calibration(primary: bytes, h1: bytes, humidity: bytes) -> CalibrationCoefficients:
    """
    Decode the three calibration bursts.

    ``primary`` is the 24-byte block at 0x88 (T1..T3, P1..P9), ``h1`` the
    single byte at 0xA1 and ``humidity`` the 7-byte block at 0xE1. H4 and H5
    share the nibbles of 0xE5:

        H4 = 0xE4[7:0] << 4 | 0xE5[3:0]
        H5 = 0xE6[7:0] << 4 | 0xE5[7:4]

    both kept as unsigned 12-bit values.
    """
    _expect_length("primary calibration block", primary, REGISTERS.calib_temp_press_len)
    _expect_length("H1 calibration byte", h1, REGISTERS.calib_hum1_len)
    _expect_length("humidity calibration block", humidity, REGISTERS.calib_hum2_len)

    t1, t2, t3, p1, p2, p3, p4, p5, p6, p7, p8, p9 = _TEMP_PRESS_LAYOUT.unpack(bytes(primary))
    e1, e2, e3, e4, e5, e6, e7 = bytes(humidity)

    return CalibrationCoefficients(
        dig_T1=t1,
        dig_T2=t2,
        dig_T3=t3,
        dig_P1=p1,
        dig_P2=p2,
        dig_P3=p3,
        dig_P4=p4,
        dig_P5=p5,
        dig_P6=p6,
        dig_P7=p7,
        dig_P8=p8,
        dig_P9=p9,
        dig_H1=bytes(h1)[0],
        dig_H2=_sign_extend(e1 | (e2 << 8), 16),
        dig_H3=e3,
        dig_H4=(e4 << 4) | (e5 & 0x0F),
        dig_H5=(e6 << 4) | (e5 >> 4),
        dig_H6=_sign_extend(e7, 8),
    )


def calibration_from_mapping(data: Dict[str, object]) -> CalibrationCoefficients:
    values: Dict[str, int] = {}
    for item in fields(CalibrationCoefficients):
        if item.name not in data:
            raise ValueError(f"Calibration missing field '{item.name}'")
        raw = data[item.name]
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise ValueError(f"Calibration field '{item.name}' must be an integer")
        low, high = _RANGES[item.name]
        if not low <= raw <= high:
            raise ValueError(f"Calibration field '{item.name}'={raw} outside [{low}, {high}]")
        values[item.name] = raw
    return CalibrationCoefficients(**values)


def calibration_metadata(calib: CalibrationCoefficients) -> Dict[str, str]:
    return {
        "calib_t1": str(calib.dig_T1),
        "calib_p1": str(calib.dig_P1),
        "calib_h1": str(calib.dig_H1),
    }


def save_calibration(path: Path, calib: CalibrationCoefficients) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(calib), indent=2), encoding="utf-8")


def load_calibration(path: Path) -> CalibrationCoefficients:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Calibration JSON must be an object")
    return calibration_from_mapping(data)
