from __future__ import annotations

import struct
from typing import Dict, List, Optional, Tuple

from envsense.bme280.transport import RegisterPointerError

DATASHEET_COEFFS = {
    "dig_T1": 27504,
    "dig_T2": 26435,
    "dig_T3": -1000,
    "dig_P1": 36477,
    "dig_P2": -10685,
    "dig_P3": 3024,
    "dig_P4": 2855,
    "dig_P5": 140,
    "dig_P6": -7,
    "dig_P7": 15500,
    "dig_P8": -14600,
    "dig_P9": 6000,
    "dig_H1": 75,
    "dig_H2": 362,
    "dig_H3": 0,
    "dig_H4": 313,
    "dig_H5": 50,
    "dig_H6": 30,
}

PRIMARY_BLOCK = struct.pack(
    "<HhhHhhhhhhhh",
    27504, 26435, -1000,
    36477, -10685, 3024, 2855, 140, -7, 15500, -14600, 6000,
)
H1_BYTE = bytes([75])
# H2=362, H3=0, H4=0x139 / H5=0x032 packed across 0xE4..0xE6, H6=30
HUMIDITY_BLOCK = bytes([0x6A, 0x01, 0x00, 0x13, 0x29, 0x03, 0x1E])

ADC_T = 519888
ADC_P = 415148
ADC_H = 30000


def pack_burst(adc_p: int, adc_t: int, adc_h: int) -> bytes:
    return bytes(
        [
            (adc_p >> 12) & 0xFF,
            (adc_p >> 4) & 0xFF,
            (adc_p & 0x0F) << 4,
            (adc_t >> 12) & 0xFF,
            (adc_t >> 4) & 0xFF,
            (adc_t & 0x0F) << 4,
            (adc_h >> 8) & 0xFF,
            adc_h & 0xFF,
        ]
    )


def register_image() -> Dict[int, bytes]:
    return {
        0x88: PRIMARY_BLOCK,
        0xA1: H1_BYTE,
        0xE1: HUMIDITY_BLOCK,
        0xF7: pack_burst(ADC_P, ADC_T, ADC_H),
    }


class FakeTransport:
    def __init__(self, registers: Dict[int, bytes], *, fail: Optional[Dict[str, object]] = None) -> None:
        self.registers = registers
        self.fail = fail or {}
        self.path: Optional[str] = None
        self.address: Optional[int] = None
        self.reads: List[Tuple[int, int]] = []
        self.writes: List[Tuple[int, int]] = []
        self.close_calls = 0

    def open(self, path: str) -> None:
        if self.fail.get("open"):
            raise FileNotFoundError(2, "No such file or directory", path)
        self.path = path

    def select_address(self, address: int) -> None:
        if self.fail.get("select"):
            raise OSError(16, "Device or resource busy")
        self.address = address

    def transact(self, register: int, length: int) -> bytes:
        self.reads.append((register, length))
        if self.fail.get("pointer") == register:
            raise RegisterPointerError(121, "Remote I/O error")
        if self.fail.get("read") == register:
            raise OSError(121, "Remote I/O error")
        if self.fail.get("short") == register:
            return self.registers[register][: length - 1]
        return self.registers[register][:length]

    def write_register(self, register: int, value: int) -> None:
        if self.fail.get("write") == register:
            raise OSError(121, "Remote I/O error")
        self.writes.append((register, value))

    def close(self) -> None:
        self.close_calls += 1


class FakeTransportFactory:
    """Callable handed to ``Bme280`` as ``transport_factory``."""

    def __init__(self, registers: Optional[Dict[int, bytes]] = None, **fail: object) -> None:
        self.registers = registers if registers is not None else register_image()
        self.fail = dict(fail)
        self.instances: List[FakeTransport] = []

    def __call__(self) -> FakeTransport:
        transport = FakeTransport(self.registers, fail=self.fail)
        self.instances.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.instances[-1]
