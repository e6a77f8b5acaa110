"""
Datasheet floating-point compensation for the BME280.

Temperature must be compensated first: it yields the fine temperature
(``t_fine``) that both the pressure and the humidity formulas consume. The
carry is returned to the caller and passed on explicitly, never stored.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np

from .calibration import CalibrationCoefficients
from .errors import CompensationError, InvalidArgumentError

HUMIDITY_MIN = 0.0
HUMIDITY_MAX = 100.0


@dataclass(frozen=True)
class RawSample:
    adc_p: int
    adc_t: int
    adc_h: int

    @staticmethod
    def from_burst(data: bytes) -> "RawSample":
        """Split the 8-byte 0xF7..0xFE burst into the three ADC codes."""
        if data is None or len(data) != 8:
            raise InvalidArgumentError(f"data burst must be 8 bytes, got {0 if data is None else len(data)}")
        return RawSample(
            adc_p=(data[0] << 12) | (data[1] << 4) | (data[2] >> 4),
            adc_t=(data[3] << 12) | (data[4] << 4) | (data[5] >> 4),
            adc_h=(data[6] << 8) | data[7],
        )


@dataclass(frozen=True)
class Reading:
    temperature_c: float
    temperature_f: float
    pressure_hpa: float
    humidity_rh: float


def _to_int32(value: int) -> int:
    return ((value + 0x80000000) & 0xFFFFFFFF) - 0x80000000


def compensate_temperature(adc_t: int, calib: CalibrationCoefficients) -> Tuple[float, int]:
    """Return ``(celsius, t_fine)``."""
    var1 = (adc_t / 16384.0 - calib.dig_T1 / 1024.0) * calib.dig_T2
    var2 = (adc_t / 131072.0 - calib.dig_T1 / 8192.0) * (adc_t / 131072.0 - calib.dig_T1 / 8192.0) * calib.dig_T3
    t_fine = _to_int32(int(var1 + var2))
    return (var1 + var2) / 5120.0, t_fine


def compensate_pressure(adc_p: int, calib: CalibrationCoefficients, t_fine: int) -> float:
    """Return pressure in Pa. Raises ``CompensationError`` on a zero denominator."""
    var1 = t_fine / 2.0 - 64000.0
    var2 = var1 * var1 * calib.dig_P6 / 32768.0
    var2 = var2 + var1 * calib.dig_P5 * 2.0
    var2 = var2 / 4.0 + calib.dig_P4 * 65536.0
    var1 = (calib.dig_P3 * var1 * var1 / 524288.0 + calib.dig_P2 * var1) / 524288.0
    var1 = (1.0 + var1 / 32768.0) * calib.dig_P1
    if var1 == 0.0:
        raise CompensationError(f"pressure denominator is zero (t_fine={t_fine})")
    p = 1048576.0 - adc_p
    p = (p - var2 / 4096.0) * 6250.0 / var1
    var1 = calib.dig_P9 * p * p / 2147483648.0
    var2 = p * calib.dig_P8 / 32768.0
    return p + (var1 + var2 + calib.dig_P7) / 16.0


def compensate_humidity(adc_h: int, calib: CalibrationCoefficients, t_fine: int) -> float:
    """Return relative humidity in %, saturated to [0, 100]."""
    var_h = t_fine - 76800.0
    var_h = (adc_h - (calib.dig_H4 * 64.0 + calib.dig_H5 / 16384.0 * var_h)) * (
        calib.dig_H2
        / 65536.0
        * (1.0 + calib.dig_H6 / 67108864.0 * var_h * (1.0 + calib.dig_H3 / 67108864.0 * var_h))
    )
    var_h = var_h * (1.0 - calib.dig_H1 * var_h / 524288.0)
    return min(max(var_h, HUMIDITY_MIN), HUMIDITY_MAX)


def compensate(raw: RawSample, calib: CalibrationCoefficients) -> Reading:
    celsius, t_fine = compensate_temperature(raw.adc_t, calib)
    pressure_pa = compensate_pressure(raw.adc_p, calib, t_fine)
    humidity = compensate_humidity(raw.adc_h, calib, t_fine)
    return Reading(
        temperature_c=celsius,
        temperature_f=celsius * 1.8 + 32.0,
        pressure_hpa=pressure_pa / 100.0,
        humidity_rh=humidity,
    )


def compensate_arrays(
    adc_t: np.ndarray,
    adc_p: np.ndarray,
    adc_h: np.ndarray,
    calib: CalibrationCoefficients,
) -> Dict[str, np.ndarray]:
    """
    Vectorised variant of :func:`compensate` for logged raw samples.
    Keys match the ``Reading`` field names.
    """
    t = np.asarray(adc_t, dtype=float)
    p_raw = np.asarray(adc_p, dtype=float)
    h_raw = np.asarray(adc_h, dtype=float)
    if not (t.shape == p_raw.shape == h_raw.shape):
        raise InvalidArgumentError("adc_t, adc_p and adc_h must have the same shape")

    var1 = (t / 16384.0 - calib.dig_T1 / 1024.0) * calib.dig_T2
    var2 = np.square(t / 131072.0 - calib.dig_T1 / 8192.0) * calib.dig_T3
    celsius = (var1 + var2) / 5120.0
    t_fine = np.trunc(var1 + var2).astype(np.int64)
    t_fine = (((t_fine + 0x80000000) & 0xFFFFFFFF) - 0x80000000).astype(float)

    var1 = t_fine / 2.0 - 64000.0
    var2 = var1 * var1 * calib.dig_P6 / 32768.0
    var2 = var2 + var1 * calib.dig_P5 * 2.0
    var2 = var2 / 4.0 + calib.dig_P4 * 65536.0
    var1 = (calib.dig_P3 * var1 * var1 / 524288.0 + calib.dig_P2 * var1) / 524288.0
    var1 = (1.0 + var1 / 32768.0) * calib.dig_P1
    if np.any(var1 == 0.0):
        raise CompensationError(f"pressure denominator is zero for {int(np.count_nonzero(var1 == 0.0))} sample(s)")
    p = 1048576.0 - p_raw
    p = (p - var2 / 4096.0) * 6250.0 / var1
    var1 = calib.dig_P9 * p * p / 2147483648.0
    var2 = p * calib.dig_P8 / 32768.0
    pressure_pa = p + (var1 + var2 + calib.dig_P7) / 16.0

    var_h = t_fine - 76800.0
    var_h = (h_raw - (calib.dig_H4 * 64.0 + calib.dig_H5 / 16384.0 * var_h)) * (
        calib.dig_H2
        / 65536.0
        * (1.0 + calib.dig_H6 / 67108864.0 * var_h * (1.0 + calib.dig_H3 / 67108864.0 * var_h))
    )
    var_h = var_h * (1.0 - calib.dig_H1 * var_h / 524288.0)

    return {
        "temperature_c": celsius,
        "temperature_f": celsius * 1.8 + 32.0,
        "pressure_hpa": pressure_pa / 100.0,
        "humidity_rh": np.clip(var_h, HUMIDITY_MIN, HUMIDITY_MAX),
    }
