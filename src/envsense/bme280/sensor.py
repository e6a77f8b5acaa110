from __future__ import annotations

import enum
import logging
from typing import Callable, Optional

from .calibration import CalibrationCoefficients, decode_calibration
from .compensation import RawSample, Reading, compensate
from .config import DEFAULT_ADDRESS, DEFAULT_BUS_PATH, DEFAULT_POLICY, REGISTERS, OperatingPolicy
from .errors import (
    AddressSelectionError,
    BusOpenError,
    BusReadError,
    BusWriteError,
    InvalidArgumentError,
    NotInitializedError,
)
from .transport import BusTransport, RegisterPointerError, SmbusTransport

logger = logging.getLogger(__name__)


class State(enum.IntEnum):
    CLOSED = 0
    OPEN = 1
    CALIBRATED = 2
    CONFIGURED = 3


class Bme280:
    """
    One BME280 on one bus.

    Lifecycle: ``init`` → ``read_calibration`` → ``configure`` → ``sample``
    (repeatable). ``close`` is valid from any state and idempotent. Each step
    requires the previous one to have succeeded at least once; otherwise
    ``NotInitializedError`` is raised without touching the bus. Not
    thread-safe: guard a shared instance externally.
    """

    def __init__(
        self,
        transport_factory: Callable[[], BusTransport] = SmbusTransport,
        policy: OperatingPolicy = DEFAULT_POLICY,
    ) -> None:
        self._transport_factory = transport_factory
        self._transport: Optional[BusTransport] = None
        self._policy = policy
        self._state = State.CLOSED
        self._address: Optional[int] = None
        self._calibration: Optional[CalibrationCoefficients] = None

    @property
    def state(self) -> State:
        return self._state

    @property
    def address(self) -> Optional[int]:
        return self._address

    @property
    def calibration(self) -> Optional[CalibrationCoefficients]:
        return self._calibration

    def __enter__(self) -> "Bme280":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def init(self, path: str = DEFAULT_BUS_PATH, address: int = DEFAULT_ADDRESS) -> None:
        if not path:
            raise InvalidArgumentError("bus path is required")
        if isinstance(address, bool) or not isinstance(address, int) or not 0 <= address <= 0x7F:
            raise InvalidArgumentError(f"address must be a 7-bit I2C address, got {address!r}")
        if self._state is not State.CLOSED:
            self.close()

        transport = self._transport_factory()
        try:
            transport.open(path)
        except OSError as exc:
            logger.warning("Failed to open %s: %s", path, exc)
            raise BusOpenError(f"{path}: {exc}") from exc
        try:
            transport.select_address(address)
        except OSError as exc:
            logger.warning("Failed to select address 0x%02X on %s: %s", address, path, exc)
            _release(transport)
            raise AddressSelectionError(f"0x{address:02X}: {exc}") from exc

        self._transport = transport
        self._address = address
        self._calibration = None
        self._advance(State.OPEN)

    def read_calibration(self) -> CalibrationCoefficients:
        self._require(State.OPEN, "read_calibration")
        primary = self._read(REGISTERS.calib_temp_press, REGISTERS.calib_temp_press_len)
        h1 = self._read(REGISTERS.calib_hum1, REGISTERS.calib_hum1_len)
        humidity = self._read(REGISTERS.calib_hum2, REGISTERS.calib_hum2_len)
        calibration = decode_calibration(primary, h1, humidity)
        self._calibration = calibration
        if self._state < State.CALIBRATED:
            self._advance(State.CALIBRATED)
        return calibration

    def configure(self) -> None:
        self._require(State.CALIBRATED, "configure")
        for register, value in self._policy.writes():
            self._write(register, value)
        self._advance(State.CONFIGURED)

    def read_raw(self) -> RawSample:
        self._require(State.CONFIGURED, "sample")
        return RawSample.from_burst(self._read(REGISTERS.data, REGISTERS.data_len))

    def sample(self) -> Reading:
        raw = self.read_raw()
        assert self._calibration is not None
        return compensate(raw, self._calibration)

    def close(self) -> None:
        transport, self._transport = self._transport, None
        if transport is not None:
            _release(transport)
            logger.debug("Closed BME280 at 0x%02X", self._address or 0)
        self._state = State.CLOSED

    def _require(self, minimum: State, operation: str) -> None:
        if self._state < minimum:
            raise NotInitializedError(f"{operation} requires state {minimum.name}, current state is {self._state.name}")

    def _advance(self, state: State) -> None:
        logger.debug("BME280 state %s -> %s", self._state.name, state.name)
        self._state = state

    def _read(self, register: int, length: int) -> bytes:
        assert self._transport is not None
        try:
            data = self._transport.transact(register, length)
        except RegisterPointerError as exc:
            logger.warning("Register pointer write of 0x%02X failed: %s", register, exc)
            raise BusWriteError(f"register pointer 0x{register:02X}: {exc}") from exc
        except OSError as exc:
            logger.warning("Read of %d bytes at 0x%02X failed: %s", length, register, exc)
            raise BusReadError(f"register 0x{register:02X}: {exc}") from exc
        if data is None or len(data) != length:
            got = 0 if data is None else len(data)
            logger.warning("Short read at 0x%02X (expected=%d, actual=%d)", register, length, got)
            raise BusReadError(f"register 0x{register:02X}: expected {length} bytes, got {got}")
        return bytes(data)

    def _write(self, register: int, value: int) -> None:
        assert self._transport is not None
        try:
            self._transport.write_register(register, value)
        except OSError as exc:
            logger.warning("Write of 0x%02X to 0x%02X failed: %s", value, register, exc)
            raise BusWriteError(f"register 0x{register:02X}: {exc}") from exc


def _release(transport: BusTransport) -> None:
    try:
        transport.close()
    except Exception as exc:
        logger.debug("Ignoring error while closing transport: %s", exc)

