from __future__ import annotations

import enum
from typing import Optional


class ErrorKind(enum.IntEnum):
    OK = 0
    BUS_OPEN = 1
    ADDRESS_SELECT = 2
    WRITE = 3
    READ = 4
    INVALID_ARGUMENT = 5
    NOT_INITIALIZED = 6
    COMPUTATION = 7


_DESCRIPTIONS = {
    ErrorKind.OK: "Success",
    ErrorKind.BUS_OPEN: "Failed to open I2C bus",
    ErrorKind.ADDRESS_SELECT: "Failed to set I2C slave address",
    ErrorKind.WRITE: "I2C write operation failed",
    ErrorKind.READ: "I2C read operation failed",
    ErrorKind.INVALID_ARGUMENT: "Invalid or missing argument",
    ErrorKind.NOT_INITIALIZED: "Device not initialized",
    ErrorKind.COMPUTATION: "Compensation produced an undefined result",
}

UNKNOWN_ERROR = "Unknown error"


def describe_error(code: int) -> str:
    """Human-readable text for an error kind or raw integer code."""
    try:
        kind = ErrorKind(code)
    except ValueError:
        return UNKNOWN_ERROR
    return _DESCRIPTIONS.get(kind, UNKNOWN_ERROR)


class Bme280Error(Exception):
    kind: ErrorKind = ErrorKind.OK

    def __init__(self, detail: Optional[str] = None) -> None:
        self.detail = detail
        message = describe_error(self.kind)
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)

    @property
    def description(self) -> str:
        return describe_error(self.kind)


class BusOpenError(Bme280Error):
    kind = ErrorKind.BUS_OPEN


class AddressSelectionError(Bme280Error):
    kind = ErrorKind.ADDRESS_SELECT


class BusWriteError(Bme280Error):
    kind = ErrorKind.WRITE


class BusReadError(Bme280Error):
    kind = ErrorKind.READ


class InvalidArgumentError(Bme280Error, ValueError):
    kind = ErrorKind.INVALID_ARGUMENT


class NotInitializedError(Bme280Error):
    kind = ErrorKind.NOT_INITIALIZED


class CompensationError(Bme280Error, ArithmeticError):
    kind = ErrorKind.COMPUTATION
