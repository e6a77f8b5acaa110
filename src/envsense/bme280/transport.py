"""
Register-level access to an I2C device node.

``Bme280`` only relies on the small ``BusTransport`` protocol below, so tests
and alternative buses can plug in their own implementation. Failures are
reported as ``OSError``; the sequencer turns them into typed driver errors.
A register read is two bus transfers: the one-byte register pointer write,
then the data read. A failure of the pointer write is raised as
``RegisterPointerError`` so it can be told apart from a failed data read.
"""

from __future__ import annotations

import logging
from fcntl import ioctl
from typing import Optional, Protocol

from smbus2 import SMBus, i2c_msg

logger = logging.getLogger(__name__)

I2C_SLAVE = 0x0703


class RegisterPointerError(OSError):
    """Writing the register pointer ahead of a read failed."""


class BusTransport(Protocol):
    def open(self, path: str) -> None: ...

    def select_address(self, address: int) -> None: ...

    def transact(self, register: int, length: int) -> bytes: ...

    def write_register(self, register: int, value: int) -> None: ...

    def close(self) -> None: ...


class SmbusTransport:
    """``BusTransport`` backed by :mod:`smbus2` on a ``/dev/i2c-N`` node."""

    def __init__(self) -> None:
        self._bus: Optional[SMBus] = None
        self._address: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self._bus is not None

    def open(self, path: str) -> None:
        if self._bus is not None:
            raise OSError("transport already open")
        self._bus = SMBus(path)
        logger.debug("Opened I2C bus %s", path)

    def select_address(self, address: int) -> None:
        bus = self._require_bus()
        ioctl(bus.fd, I2C_SLAVE, address)
        self._address = address

    def transact(self, register: int, length: int) -> bytes:
        bus = self._require_bus()
        address = self._require_address()
        try:
            bus.i2c_rdwr(i2c_msg.write(address, [register]))
        except OSError as exc:
            raise RegisterPointerError(*exc.args) from exc
        read = i2c_msg.read(address, length)
        bus.i2c_rdwr(read)
        return bytes(read)

    def write_register(self, register: int, value: int) -> None:
        bus = self._require_bus()
        address = self._require_address()
        bus.i2c_rdwr(i2c_msg.write(address, [register, value]))

    def close(self) -> None:
        if self._bus is None:
            return
        try:
            self._bus.close()
        finally:
            self._bus = None
            self._address = None

    def _require_bus(self) -> SMBus:
        if self._bus is None:
            raise OSError("transport is not open")
        return self._bus

    def _require_address(self) -> int:
        if self._address is None:
            raise OSError("no target address selected")
        return self._address
