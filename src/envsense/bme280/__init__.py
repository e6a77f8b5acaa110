"""
Driver for the Bosch BME280 temperature / pressure / humidity sensor on a
Linux I2C bus.

The subpackage exposes the protocol sequencer (`Bme280`), the calibration
decoder, the datasheet compensation formulas, and the host-side helpers used
by the command line tools.
"""

from .calibration import CalibrationCoefficients, decode_calibration, load_calibration, save_calibration
from .compensation import RawSample, Reading, compensate, compensate_arrays
from .config import DEFAULT_ADDRESS, DEFAULT_BUS_PATH, REGISTERS, DriverConfig, OperatingPolicy, load_config
from .errors import (
    AddressSelectionError,
    Bme280Error,
    BusOpenError,
    BusReadError,
    BusWriteError,
    CompensationError,
    ErrorKind,
    InvalidArgumentError,
    NotInitializedError,
    describe_error,
)
from .sensor import Bme280, State
from .transport import BusTransport, SmbusTransport

__all__ = [
    "CalibrationCoefficients",
    "decode_calibration",
    "load_calibration",
    "save_calibration",
    "RawSample",
    "Reading",
    "compensate",
    "compensate_arrays",
    "DEFAULT_ADDRESS",
    "DEFAULT_BUS_PATH",
    "REGISTERS",
    "DriverConfig",
    "OperatingPolicy",
    "load_config",
    "AddressSelectionError",
    "Bme280Error",
    "BusOpenError",
    "BusReadError",
    "BusWriteError",
    "CompensationError",
    "ErrorKind",
    "InvalidArgumentError",
    "NotInitializedError",
    "describe_error",
    "Bme280",
    "State",
    "BusTransport",
    "SmbusTransport",
]
